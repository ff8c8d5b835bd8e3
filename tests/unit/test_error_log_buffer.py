from __future__ import annotations

import json
import re
from pathlib import Path

from boq_ingest.logging.error_log import ErrorLogBuffer
from boq_ingest.models.error_record import ErrorRecord

KEYS = {"timestamp", "source", "sheet", "row", "error_type", "reference", "message"}


def test_error_record_json_line():
    rec = ErrorRecord.create("grn.xlsx", "Consolidated Invoice Data", 7, "INVALID_INVOICE_DATE", "INV-003", "bad date")
    data = json.loads(rec.to_json_line())
    assert set(data) == KEYS
    assert data["row"] == 7
    assert data["timestamp"].endswith("Z")


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.record("grn.xlsx", "Sheet", 3, "SUPPLIER_NOT_FOUND", "INV-1", "Unknown Co")
    buf.record("masters.xlsx", "Materials", -1, "MASTER_INSERT_ERROR", "master_materials", "boom")
    assert len(buf) == 2
    path = buf.flush()
    assert path is not None
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["error_type"] for line in lines] == ["SUPPLIER_NOT_FOUND", "MASTER_INSERT_ERROR"]
    assert len(buf) == 0


def test_flush_without_records_creates_no_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_non_ascii_kept(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.record("grn.xlsx", "S", 1, "SUPPLIER_NOT_FOUND", "INV-1", "Shree Ganesh Traders – ₹")
    path = buf.flush()
    assert "₹" in path.read_text(encoding="utf-8")
