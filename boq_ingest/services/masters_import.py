from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

from boq_ingest.config.loader import MastersConfig
from boq_ingest.db.store import RecordStore
from boq_ingest.excel.cells import cell_text
from boq_ingest.excel.reader import WorkbookReadError, read_workbook_rows
from boq_ingest.logging.error_log import ErrorLogBuffer
from boq_ingest.models.import_result import MasterClassReport, MasterImportReport

from .reconcile import MATERIALS, SUPPLIERS, MasterTable, ReconcileError, reconcile_master

"""Materials & suppliers master import.

Source workbook layout (first row is a header):
- Materials sheet: A = material name, B = unit (default "Nos")
- Suppliers sheet: A = supplier name

Each class is reconciled independently, so a failed materials batch does not
stop the suppliers import.
"""

logger = logging.getLogger(__name__)


def material_candidates(
    rows: Sequence[Sequence[Any]], default_unit: str = "Nos", default_category: str = "General"
) -> list[dict[str, Any]]:
    out = []
    for row in rows[1:]:
        name = cell_text(row[0]) if row else ""
        if not name:
            continue
        unit = cell_text(row[1]) if len(row) > 1 else ""
        out.append(
            {
                "name": name,
                "unit": unit or default_unit,
                "category": default_category,
                "is_active": True,
            }
        )
    return out


def supplier_candidates(rows: Sequence[Sequence[Any]]) -> list[dict[str, Any]]:
    out = []
    for row in rows[1:]:
        name = cell_text(row[0]) if row else ""
        if name:
            out.append({"supplier_name": name})
    return out


def _import_class(
    store: RecordStore,
    master: MasterTable,
    candidates: list[dict[str, Any]],
    report: MasterClassReport,
    error_log: ErrorLogBuffer,
    source: str,
    sheet: str,
) -> None:
    report.candidates = len(candidates)
    logger.info("%s: %d row(s) in workbook", master.table, len(candidates))
    try:
        outcome = reconcile_master(store, master, candidates)
    except ReconcileError as e:
        report.failed = True
        logger.error("error creating %s: %s", master.table, e.message)
        error_log.record(source, sheet, -1, "MASTER_INSERT_ERROR", master.table, e.message)
        return
    report.existing = outcome.existing
    report.created = outcome.created


def import_masters(
    store: RecordStore,
    cfg: MastersConfig,
    error_log: ErrorLogBuffer | None = None,
    sheets: dict[str, list[list[Any]]] | None = None,
) -> MasterImportReport:
    """Reconcile the materials and suppliers sheets against the store.

    ``sheets`` may be passed pre-read (tests); otherwise the configured
    workbook is read.

    Raises:
        WorkbookReadError: the workbook or one of its sheets is missing
    """
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    started = time.perf_counter()
    if sheets is None:
        sheets = read_workbook_rows(cfg.workbook, target_sheets=[cfg.materials_sheet, cfg.suppliers_sheet])
    for name in (cfg.materials_sheet, cfg.suppliers_sheet):
        if name not in sheets:
            raise WorkbookReadError(f"sheet '{name}' not found in {cfg.workbook}")

    source = cfg.workbook.name
    report = MasterImportReport()
    _import_class(
        store,
        MATERIALS,
        material_candidates(sheets[cfg.materials_sheet], cfg.default_unit, cfg.default_category),
        report.materials,
        error_log,
        source,
        cfg.materials_sheet,
    )
    _import_class(
        store,
        SUPPLIERS,
        supplier_candidates(sheets[cfg.suppliers_sheet]),
        report.suppliers,
        error_log,
        source,
        cfg.suppliers_sheet,
    )

    report.materials.final_count = store.count(MATERIALS.table)
    report.suppliers.final_count = store.count(SUPPLIERS.table)
    logger.info("materials in database: %d", report.materials.final_count)
    logger.info("suppliers in database: %d", report.suppliers.final_count)
    report.elapsed_seconds = time.perf_counter() - started
    return report
