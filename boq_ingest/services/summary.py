from __future__ import annotations

from boq_ingest.models.boq import ParseResult
from boq_ingest.models.import_result import (
    BoqLoadReport,
    DocumentReport,
    GrnImportReport,
    MasterImportReport,
)

"""SUMMARY line rendering.

Each command ends with one ``SUMMARY key=value ...`` line. The renderers
return the text after the ``SUMMARY `` label; log_summary adds the label.
Key order is fixed per command so the line can be grepped and parsed.
"""


def format_elapsed(seconds: float) -> str:
    """Render elapsed seconds without scientific notation.

    >>> format_elapsed(2.0)
    '2'
    >>> format_elapsed(0.0001234)
    '0.000123'
    """
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def _pairs(**values: object) -> str:
    return " ".join(f"{k}={v}" for k, v in values.items())


def render_parse_summary(result: ParseResult) -> str:
    return _pairs(
        success=str(result.success).lower(),
        sheets=len(result.data) if result.data else 0,
        headlines=result.headline_count,
        line_items=result.line_item_count,
        warnings=len(result.warnings),
    )


def render_boq_load_summary(report: BoqLoadReport) -> str:
    return _pairs(
        package=report.package_id,
        headlines=report.headlines_created,
        line_items=report.line_items_created,
    )


def render_masters_summary(report: MasterImportReport) -> str:
    m, s = report.materials, report.suppliers
    return _pairs(
        materials_created=m.created,
        materials_existing=m.existing,
        suppliers_created=s.created,
        suppliers_existing=s.existing,
        failed_classes=report.failed_classes,
        elapsed_sec=format_elapsed(report.elapsed_seconds),
    )


def render_grn_summary(report: GrnImportReport) -> str:
    return _pairs(
        invoices=f"{report.invoices_created}/{report.parsed_invoices}",
        line_items=report.line_items_created,
        skipped=report.skipped_existing,
        dropped_lines=report.dropped_line_items,
        suppliers_created=report.suppliers_created,
        materials_created=report.materials_created,
        errors=report.errors,
        elapsed_sec=format_elapsed(report.elapsed_seconds),
    )


def render_documents_summary(report: DocumentReport) -> str:
    return _pairs(
        matched=report.matched,
        unmatched=len(report.unmatched),
        uploaded=report.uploaded,
        skipped=report.skipped,
        errors=report.errors,
        elapsed_sec=format_elapsed(report.elapsed_seconds),
    )
