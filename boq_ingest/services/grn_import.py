from __future__ import annotations

import logging
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, ClassVar

from boq_ingest.config.loader import DEFAULT_CATEGORY, POLICY_FAIL_INVOICE, GrnConfig
from boq_ingest.db.store import RecordStore, StoreError
from boq_ingest.excel.cells import cell_text, float_or_zero, is_blank
from boq_ingest.excel.reader import read_sheet_rows
from boq_ingest.logging.error_log import ErrorLogBuffer
from boq_ingest.models.import_result import GrnImportReport
from boq_ingest.models.invoice import InvoiceCandidate, InvoiceLineCandidate

from .progress import ProgressTracker
from .reconcile import (
    MATERIALS,
    SUPPLIERS,
    MasterLookup,
    ReconcileError,
    load_lookup,
    normalize_name,
    reconcile_master,
)
from .sites import find_site

"""GRN (goods receipt note) invoice import.

Consolidated invoice sheet layout, data from row index 2 (two header rows):
    0 invoice no. | 1 supplier | 2 invoice amount | 3 date (DD-MMM-YYYY) |
    4 material | 5 qty | 6 unit | 7 rate | 8 amount excl. GST | 9 amount incl. GST

A row with an invoice number opens a new invoice; following rows with a
material and qty > 0 become its line items.

The run is re-runnable: invoice numbers already stored for the site are
skipped, and each invoice's header and line items are written in one unit of
work, so a crash leaves whole invoices only.
"""

logger = logging.getLogger(__name__)

MONTHS = {
    "Jan": "01", "Feb": "02", "Mar": "03", "Apr": "04",
    "May": "05", "Jun": "06", "Jul": "07", "Aug": "08",
    "Sep": "09", "Oct": "10", "Nov": "11", "Dec": "12",
}
_DATE = re.compile(r"(\d{1,2})-(\w{3})-(\d{4})")

COL_INVOICE = 0
COL_SUPPLIER = 1
COL_DATE = 3
COL_MATERIAL = 4
COL_QTY = 5
COL_UNIT = 6
COL_RATE = 7
COL_AMOUNT_EXCL = 8
COL_AMOUNT_INCL = 9


@dataclass(frozen=True)
class UnresolvedMaterialReference:
    """A line item whose material name has no master material."""

    error_type: ClassVar[str] = "UNRESOLVED_MATERIAL_REFERENCE"

    invoice_number: str
    material_name: str
    quantity: float

    def __str__(self) -> str:
        return f"invoice {self.invoice_number}: material not found: {self.material_name} (qty {self.quantity:g})"


def parse_invoice_date(value: Any) -> str | None:
    """DD-MMM-YYYY text (or a date cell) -> YYYY-MM-DD; anything else -> None."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    m = _DATE.search(str(value))
    if m is None:
        return None
    month = MONTHS.get(m.group(2))
    if month is None:
        return None
    try:
        return date(int(m.group(3)), int(month), int(m.group(1))).isoformat()
    except ValueError:
        return None


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def parse_invoice_rows(
    rows: Sequence[Sequence[Any]], start_row: int = 2, default_unit: str = "Nos"
) -> list[InvoiceCandidate]:
    invoices: list[InvoiceCandidate] = []
    current: InvoiceCandidate | None = None
    for index in range(start_row, len(rows)):
        row = rows[index]
        invoice_no = cell_text(_cell(row, COL_INVOICE))
        if invoice_no:
            current = InvoiceCandidate(
                invoice_number=invoice_no,
                supplier_name=cell_text(_cell(row, COL_SUPPLIER)),
                invoice_date=parse_invoice_date(_cell(row, COL_DATE)),
                row=index + 1,
            )
            invoices.append(current)

        material = cell_text(_cell(row, COL_MATERIAL))
        qty = float_or_zero(_cell(row, COL_QTY))
        if material and current is not None and qty > 0:
            current.line_items.append(
                InvoiceLineCandidate(
                    material_name=material,
                    quantity=qty,
                    unit=cell_text(_cell(row, COL_UNIT)) or default_unit,
                    rate=float_or_zero(_cell(row, COL_RATE)),
                    amount_without_gst=float_or_zero(_cell(row, COL_AMOUNT_EXCL)),
                    amount_with_gst=float_or_zero(_cell(row, COL_AMOUNT_INCL)),
                )
            )
    return invoices


def missing_master_candidates(
    invoices: Sequence[InvoiceCandidate],
    suppliers: MasterLookup,
    materials: MasterLookup,
    default_unit: str = "Nos",
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Suppliers and materials referenced by the invoices but absent from the lookups."""
    new_suppliers = []
    new_materials = []
    for inv in invoices:
        if inv.supplier_name and inv.supplier_name not in suppliers:
            new_suppliers.append({"supplier_name": inv.supplier_name})
        for item in inv.line_items:
            if item.material_name not in materials:
                new_materials.append(
                    {
                        "name": item.material_name,
                        "unit": item.unit or default_unit,
                        "category": DEFAULT_CATEGORY,
                        "is_active": True,
                    }
                )
    return new_suppliers, new_materials


def existing_invoice_numbers(store: RecordStore, site_id: Any) -> set[str]:
    rows = store.select("grn_invoices", ["invoice_number"], {"site_id": site_id})
    return {normalize_name(r["invoice_number"]) for r in rows if r.get("invoice_number")}


def import_grn(
    store: RecordStore,
    cfg: GrnConfig,
    error_log: ErrorLogBuffer | None = None,
    rows: Sequence[Sequence[Any]] | None = None,
) -> GrnImportReport:
    """Import GRN invoices for the configured site.

    Raises:
        SiteNotFoundError: target site not found
        WorkbookReadError: workbook or sheet cannot be read
    """
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    started = time.perf_counter()
    report = GrnImportReport()
    source = cfg.workbook.name

    site = find_site(store, cfg.site_name_pattern)
    site_id = site["id"]
    report.site_id, report.site_name = site_id, site["name"]
    logger.info("site: %s (%s)", site["name"], site_id)

    suppliers = load_lookup(store, SUPPLIERS)
    materials = load_lookup(store, MATERIALS)
    logger.info("existing suppliers=%d materials=%d", len(suppliers), len(materials))

    if rows is None:
        rows = read_sheet_rows(cfg.workbook, cfg.sheet)
    invoices = parse_invoice_rows(rows, cfg.data_start_row, cfg.default_unit)
    report.parsed_invoices = len(invoices)
    report.parsed_line_items = sum(len(inv.line_items) for inv in invoices)
    logger.info(
        "parsed %d invoice(s) with %d line item(s)", report.parsed_invoices, report.parsed_line_items
    )

    new_suppliers, new_materials = missing_master_candidates(
        invoices, suppliers, materials, cfg.default_unit
    )
    for master, candidates, lookup in (
        (SUPPLIERS, new_suppliers, suppliers),
        (MATERIALS, new_materials, materials),
    ):
        if not candidates:
            continue
        try:
            outcome = reconcile_master(store, master, candidates, lookup=lookup)
        except ReconcileError as e:
            logger.error("error creating %s: %s", master.table, e.message)
            error_log.record(source, cfg.sheet, -1, "MASTER_INSERT_ERROR", master.table, e.message)
            continue
        if master is SUPPLIERS:
            report.suppliers_created = outcome.created
        else:
            report.materials_created = outcome.created

    seen = existing_invoice_numbers(store, site_id)
    logger.info("found %d existing GRN invoice(s) for this site", len(seen))
    pending = [inv for inv in invoices if normalize_name(inv.invoice_number) not in seen]
    report.skipped_existing = len(invoices) - len(pending)
    if not pending:
        logger.info("no new invoices to import")

    with ProgressTracker(len(pending), description="Importing invoices", unit="invoice") as progress:
        for inv in pending:
            key = normalize_name(inv.invoice_number)
            if key in seen:
                # repeated invoice number within the sheet
                report.skipped_existing += 1
                progress.advance(inv.invoice_number)
                continue
            if _import_invoice(store, cfg, inv, site_id, suppliers, materials, report, error_log, source):
                seen.add(key)
            progress.advance(
                inv.invoice_number,
                created=report.invoices_created,
                errors=report.errors,
            )

    report.final_invoice_count = store.count("grn_invoices", {"site_id": site_id})
    report.final_line_item_count = store.count("grn_line_items")
    report.elapsed_seconds = time.perf_counter() - started
    return report


def _import_invoice(
    store: RecordStore,
    cfg: GrnConfig,
    inv: InvoiceCandidate,
    site_id: Any,
    suppliers: MasterLookup,
    materials: MasterLookup,
    report: GrnImportReport,
    error_log: ErrorLogBuffer,
    source: str,
) -> bool:
    """Write one invoice (header + resolved lines). Returns True when created."""
    supplier_id = suppliers.resolve_id(inv.supplier_name)
    if supplier_id is None:
        logger.error("supplier not found: %r (invoice %s)", inv.supplier_name, inv.invoice_number)
        error_log.record(
            source, cfg.sheet, inv.row, "SUPPLIER_NOT_FOUND", inv.invoice_number, inv.supplier_name
        )
        report.errors += 1
        return False

    if inv.invoice_date is None:
        logger.error("invalid date for invoice: %s", inv.invoice_number)
        error_log.record(
            source, cfg.sheet, inv.row, "INVALID_INVOICE_DATE", inv.invoice_number, "unparseable invoice date"
        )
        report.errors += 1
        return False

    resolved: list[tuple[Any, Any]] = []
    unresolved: list[UnresolvedMaterialReference] = []
    for item in inv.line_items:
        material_id = materials.resolve_id(item.material_name)
        if material_id is None:
            unresolved.append(UnresolvedMaterialReference(inv.invoice_number, item.material_name, item.quantity))
        else:
            resolved.append((material_id, item))

    if unresolved and cfg.unresolved_material_policy == POLICY_FAIL_INVOICE:
        for ref in unresolved:
            error_log.record(source, cfg.sheet, inv.row, ref.error_type, inv.invoice_number, str(ref))
        logger.error("invoice %s skipped: %d unresolved material(s)", inv.invoice_number, len(unresolved))
        report.errors += 1
        return False

    try:
        with store.unit_of_work():
            header = store.insert_one(
                "grn_invoices",
                {
                    "site_id": site_id,
                    "supplier_id": supplier_id,
                    "invoice_number": inv.invoice_number,
                    "grn_date": inv.invoice_date,
                },
                returning=["id"],
            )
            if header is None:
                raise StoreError("insert returned no id")
            lines = [
                {
                    "grn_invoice_id": header["id"],
                    "material_id": material_id,
                    "material_name": item.material_name,
                    "quantity": item.quantity,
                    "unit": item.unit,
                    "rate": item.rate,
                    "gst_rate": cfg.gst_rate,
                    "amount_without_gst": item.amount_without_gst,
                    "amount_with_gst": item.amount_with_gst,
                }
                for material_id, item in resolved
            ]
            if lines:
                store.insert("grn_line_items", lines)
    except StoreError as e:
        logger.error("error creating GRN invoice %s: %s", inv.invoice_number, e)
        error_log.record(source, cfg.sheet, inv.row, "INVOICE_INSERT_ERROR", inv.invoice_number, str(e))
        report.errors += 1
        return False

    for ref in unresolved:
        logger.warning("%s: line dropped", ref)
        error_log.record(source, cfg.sheet, inv.row, ref.error_type, inv.invoice_number, str(ref))
    report.dropped_line_items += len(unresolved)
    report.invoices_created += 1
    report.line_items_created += len(resolved)
    return True
