from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import psycopg2

from boq_ingest.cli.__main__ import main as cli_main
from boq_ingest.db.memory import InMemoryStore

"""Exit code contract: 0 success, 2 completed with per-record errors, 1 fatal."""

MATERIALS = [["Material", "Unit"], ["Cement", "Bag"]]
SUPPLIERS = [["Supplier"], ["ABC Corp"]]


def _write_masters(temp_workdir: Path, workbook_factory) -> None:
    path = workbook_factory("masters.xlsx", {"Materials": MATERIALS, "Suppliers": SUPPLIERS})
    (temp_workdir / "data" / "masters.xlsx").write_bytes(path.read_bytes())


def test_exit_code_fatal_without_config(temp_workdir: Path, capsys):
    code = cli_main(["import-masters"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config:" in out


def test_exit_code_all_success(temp_workdir: Path, write_config, workbook, capsys):
    _write_masters(temp_workdir, workbook)
    code = cli_main(["import-masters"])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY materials_created=1 materials_existing=0 suppliers_created=1" in out
    assert not list((temp_workdir / "logs").iterdir())


def test_exit_code_partial_failure(temp_workdir: Path, write_config, workbook, monkeypatch, capsys):
    rows = [
        ["Invoice No"] + [None] * 9,
        [None] * 10,
        ["INV-1", "ABC Corp", 1, "N/A", "Cement", 1, "Bag", 1, 1, 1],
    ]
    src = workbook("grn.xlsx", {"Consolidated Invoice Data": rows})
    (temp_workdir / "data" / "grn.xlsx").write_bytes(src.read_bytes())
    seeded = InMemoryStore({"sites": [{"id": "site-1", "name": "Tower Block A"}]})

    @contextmanager
    def seeded_store(db_cfg):
        yield seeded

    monkeypatch.setattr("boq_ingest.cli.__main__.open_store", seeded_store)
    code = cli_main(["import-grn"])
    out = capsys.readouterr().out
    assert code == 2
    assert "errors=1" in out
    logs = list((temp_workdir / "logs").iterdir())
    assert len(logs) == 1
    assert "INVALID_INVOICE_DATE" in logs[0].read_text(encoding="utf-8")


def test_exit_code_fatal_on_connection_failure(temp_workdir: Path, write_config, monkeypatch, capsys):
    monkeypatch.delenv("DISABLE_DB_CONNECT")

    def refuse(dsn):
        raise psycopg2.OperationalError("could not connect to server")

    monkeypatch.setattr("boq_ingest.db.connect.psycopg2.connect", refuse)
    code = cli_main(["import-grn"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR import-grn: could not connect to server" in out


def test_exit_code_fatal_on_missing_site(temp_workdir: Path, write_config, workbook, capsys):
    code = cli_main(["import-grn"])
    out = capsys.readouterr().out
    assert code == 1
    assert "not found" in out
