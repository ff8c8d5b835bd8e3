# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from boq_ingest.db.memory import InMemoryStore
from boq_ingest.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
        yield p


def make_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write a header-less workbook, one sheet per entry, rows as given."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def boq_rows() -> list[list[object]]:
    return [
        ["PACKAGE A - CIVIL WORKS"],
        ["S.No", "Description", "Location", "Unit", "Qty"],
        [1, "PCC WORK"],
        [1.1, "Excavation", "Block A", "cum", 120],
        [1.2, "PCC 1:4:8", "", "cum", "45.5"],
        [2, "RCC WORK"],
        [2.1, "Footings", "Block B", "cum", 30],
    ]


@pytest.fixture()
def sample_config_yaml() -> str:
    return """env_file: .env.local
logs_directory: logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
masters:
  workbook: data/masters.xlsx
grn:
  workbook: data/grn.xlsx
  site_name_pattern: "%Block A%"
documents:
  source_directory: data/invoices
  storage_root: storage
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def site_store() -> InMemoryStore:
    return InMemoryStore(
        {
            "sites": [{"id": "site-1", "name": "Tower Block A"}, {"id": "site-2", "name": "Annex"}],
            "suppliers": [{"id": "sup-1", "supplier_name": "ABC Corp"}],
            "master_materials": [{"id": "mat-1", "name": "Cement", "unit": "Bag"}],
        }
    )


@pytest.fixture()
def workbook(tmp_path: Path):
    """Factory: workbook("name.xlsx", {"Sheet": rows}) -> path under tmp_path."""
    def _make(name: str, sheets: dict[str, list[list[object]]]) -> Path:
        return make_workbook(tmp_path / name, sheets)
    return _make
