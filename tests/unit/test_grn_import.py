from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from pathlib import Path

import pytest

from boq_ingest.config.loader import POLICY_DROP, POLICY_FAIL_INVOICE, GrnConfig
from boq_ingest.db.memory import InMemoryStore
from boq_ingest.db.store import StoreError
from boq_ingest.logging.error_log import ErrorLogBuffer
from boq_ingest.services.grn_import import (
    UnresolvedMaterialReference,
    import_grn,
    parse_invoice_date,
    parse_invoice_rows,
)
from boq_ingest.services.sites import SiteNotFoundError

HEADER = ["Invoice No", "Supplier", "Invoice Amount", "Date", "Material", "Qty", "Unit", "Rate", "Amount", "Amount incl GST"]
SUB_HEADER = [None, None, None, None, None, None, None, None, "excl. GST", "incl. GST"]

ROWS = [
    HEADER,
    SUB_HEADER,
    ["INV-001", "ABC Corp", 101180, "05-Jan-2025", "Cement", 10, "Bag", 100, 1000, 1180],
    [None, None, None, None, "Steel", 2, "MT", 50000, 100000, 118000],
    [None, None, None, None, "Water", 0, "ltr", 0, 0, 0],
    ["INV-002", "New Supplier", 590, "31-Dec-2024", "Sand", 5, None, 100, 500, 590],
    ["INV-003", "ABC Corp", 118, "N/A", "Cement", 1, "Bag", 100, 100, 118],
]


class FailingTableStore(InMemoryStore):
    def __init__(self, tables=None, failing=()):
        super().__init__(tables)
        self.failing = set(failing)

    def insert(self, table, rows, returning=None):
        if table in self.failing:
            raise StoreError(f"insert into {table} failed")
        return super().insert(table, rows, returning)


@pytest.fixture()
def cfg() -> GrnConfig:
    return GrnConfig(workbook=Path("grn.xlsx"), site_name_pattern="%Block A%")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("05-Jan-2025", "2025-01-05"),
        ("31-Dec-2024", "2024-12-31"),
        ("Date: 5-Mar-2025 (rev)", "2025-03-05"),
        ("N/A", None),
        ("31-Feb-2024", None),
        ("05-Foo-2025", None),
        ("", None),
        (None, None),
        (datetime(2025, 1, 5, 10, 30), "2025-01-05"),
        (date(2024, 12, 31), "2024-12-31"),
    ],
)
def test_parse_invoice_date(value, expected):
    assert parse_invoice_date(value) == expected


def test_parse_invoice_rows_groups_material_rows():
    invoices = parse_invoice_rows(ROWS)
    assert [i.invoice_number for i in invoices] == ["INV-001", "INV-002", "INV-003"]
    first = invoices[0]
    assert first.supplier_name == "ABC Corp"
    assert first.invoice_date == "2025-01-05"
    assert first.row == 3
    # zero quantity rows are not line items
    assert [li.material_name for li in first.line_items] == ["Cement", "Steel"]
    assert first.line_items[1].amount_with_gst == 118000.0
    assert invoices[1].line_items[0].unit == "Nos"
    assert invoices[2].invoice_date is None


def test_material_rows_before_first_invoice_are_ignored():
    rows = [HEADER, SUB_HEADER, [None, None, None, None, "Cement", 3, "Bag"]]
    assert parse_invoice_rows(rows) == []


def test_import_creates_masters_invoices_and_lines(site_store, cfg):
    log = ErrorLogBuffer()
    report = import_grn(site_store, cfg, log, rows=ROWS)

    assert report.site_id == "site-1"
    assert report.parsed_invoices == 3
    assert report.parsed_line_items == 4
    assert report.suppliers_created == 1
    assert report.materials_created == 2
    assert report.invoices_created == 2
    assert report.line_items_created == 3
    assert report.errors == 1
    assert report.final_invoice_count == 2
    assert report.final_line_item_count == 3
    assert [(r.error_type, r.reference, r.row) for r in log.records] == [
        ("INVALID_INVOICE_DATE", "INV-003", 7)
    ]

    header = site_store.select("grn_invoices", ["id", "supplier_id", "grn_date"], {"invoice_number": "INV-001"})[0]
    assert header["supplier_id"] == "sup-1"
    assert header["grn_date"] == "2025-01-05"
    lines = site_store.select(
        "grn_line_items", ["material_id", "quantity", "gst_rate", "unit"], {"grn_invoice_id": header["id"]}
    )
    assert lines[0] == {"material_id": "mat-1", "quantity": 10.0, "gst_rate": 18.0, "unit": "Bag"}


def test_rerun_skips_existing_invoices(site_store, cfg):
    import_grn(site_store, cfg, rows=ROWS)
    second = import_grn(site_store, cfg, rows=ROWS)
    assert second.skipped_existing == 2
    assert second.invoices_created == 0
    assert second.suppliers_created == 0
    assert second.materials_created == 0
    assert site_store.count("grn_invoices") == 2


def test_repeated_invoice_number_in_sheet_is_imported_once(site_store, cfg):
    rows = ROWS[:4] + [["inv-001 ", "ABC Corp", 1, "06-Jan-2025", "Cement", 1, "Bag", 1, 1, 1]]
    report = import_grn(site_store, cfg, rows=rows)
    assert report.invoices_created == 1
    assert report.skipped_existing == 1


def test_unresolved_supplier_is_an_error(site_store, cfg):
    rows = ROWS[:2] + [["INV-9", None, 1, "05-Jan-2025", "Cement", 1, "Bag", 1, 1, 1]]
    log = ErrorLogBuffer()
    report = import_grn(site_store, cfg, log, rows=rows)
    assert report.invoices_created == 0
    assert report.errors == 1
    assert log.records[0].error_type == "SUPPLIER_NOT_FOUND"


def test_failed_supplier_batch_continues_run(cfg):
    store = FailingTableStore(
        {
            "sites": [{"id": "site-1", "name": "Tower Block A"}],
            "suppliers": [{"id": "sup-1", "supplier_name": "ABC Corp"}],
            "master_materials": [{"id": "mat-1", "name": "Cement", "unit": "Bag"}],
        },
        failing={"suppliers"},
    )
    log = ErrorLogBuffer()
    report = import_grn(store, cfg, log, rows=ROWS)
    types = [r.error_type for r in log.records]
    assert types[0] == "MASTER_INSERT_ERROR"
    assert "SUPPLIER_NOT_FOUND" in types
    assert report.invoices_created == 1  # INV-001 only


def test_unresolved_material_dropped_by_default(cfg):
    store = FailingTableStore(
        {
            "sites": [{"id": "site-1", "name": "Tower Block A"}],
            "suppliers": [{"id": "sup-1", "supplier_name": "ABC Corp"}],
            "master_materials": [{"id": "mat-1", "name": "Cement", "unit": "Bag"}],
        },
        failing={"master_materials"},
    )
    log = ErrorLogBuffer()
    report = import_grn(store, cfg, log, rows=ROWS[:4])
    assert report.invoices_created == 1
    assert report.line_items_created == 1
    assert report.dropped_line_items == 1
    dropped = [r for r in log.records if r.error_type == UnresolvedMaterialReference.error_type]
    assert len(dropped) == 1
    assert "Steel" in dropped[0].message


def test_unresolved_material_fails_invoice_when_configured(cfg):
    store = FailingTableStore(
        {
            "sites": [{"id": "site-1", "name": "Tower Block A"}],
            "suppliers": [{"id": "sup-1", "supplier_name": "ABC Corp"}],
            "master_materials": [{"id": "mat-1", "name": "Cement", "unit": "Bag"}],
        },
        failing={"master_materials"},
    )
    strict = replace(cfg, unresolved_material_policy=POLICY_FAIL_INVOICE)
    report = import_grn(store, strict, rows=ROWS[:4])
    assert report.invoices_created == 0
    assert report.errors == 1
    assert store.count("grn_invoices") == 0


def test_unresolved_material_reference_is_a_record():
    ref = UnresolvedMaterialReference("INV-001", "Steel", 2.0)
    assert not isinstance(ref, Exception)
    assert ref.error_type == "UNRESOLVED_MATERIAL_REFERENCE"
    assert str(ref) == "invoice INV-001: material not found: Steel (qty 2)"


def test_drop_is_the_default_policy():
    assert GrnConfig(workbook=Path("g.xlsx"), site_name_pattern="%A%").unresolved_material_policy == POLICY_DROP


def test_line_failure_rolls_back_invoice_header(cfg):
    store = FailingTableStore(
        {
            "sites": [{"id": "site-1", "name": "Tower Block A"}],
            "suppliers": [{"id": "sup-1", "supplier_name": "ABC Corp"}],
            "master_materials": [{"id": "mat-1", "name": "Cement", "unit": "Bag"}],
        },
        failing={"grn_line_items"},
    )
    log = ErrorLogBuffer()
    report = import_grn(store, cfg, log, rows=ROWS[:3])
    assert report.invoices_created == 0
    assert report.errors == 1
    assert store.count("grn_invoices") == 0
    assert log.records[0].error_type == "INVOICE_INSERT_ERROR"


def test_missing_site_is_fatal(site_store, cfg):
    with pytest.raises(SiteNotFoundError):
        import_grn(site_store, replace(cfg, site_name_pattern="%Nowhere%"), rows=ROWS)
    assert site_store.count("grn_invoices") == 0


def test_import_reads_configured_sheet(site_store, cfg, workbook):
    path = workbook("grn.xlsx", {"Consolidated Invoice Data": ROWS})
    report = import_grn(site_store, replace(cfg, workbook=path))
    assert report.invoices_created == 2
    assert report.line_items_created == 3
