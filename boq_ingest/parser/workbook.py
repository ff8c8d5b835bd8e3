from __future__ import annotations

import logging

from boq_ingest.excel.reader import (
    EmptyWorkbookError,
    WorkbookReadError,
    WorkbookSource,
    read_workbook_rows,
)
from boq_ingest.models.boq import ParsedSheet, ParseErrorKind, ParseResult

from .sheet import parse_sheet

"""Workbook parser: every worksheet of an uploaded BOQ file -> ParseResult.

Parsing is a preview step with no side effects. Sheets are processed in
workbook order; a sheet that is not BOQ data only adds a warning. The whole
parse fails only when the file cannot be read or no sheet yields headlines.
"""

logger = logging.getLogger(__name__)

ERROR_EMPTY = "Failed to read the file"
ERROR_UNREADABLE = "Failed to parse Excel file. Please check the file format."
ERROR_NO_DATA = "No valid BOQ data found in the Excel file"


def parse_boq_workbook(source: WorkbookSource) -> ParseResult:
    """Parse a BOQ workbook from a path, raw bytes or a binary file object."""
    try:
        sheets = read_workbook_rows(source)
    except EmptyWorkbookError as e:
        logger.debug("empty workbook: %s", e)
        return ParseResult.failed(ParseErrorKind.EMPTY_INPUT, ERROR_EMPTY)
    except WorkbookReadError as e:
        logger.error("Excel parsing error: %s", e)
        return ParseResult.failed(ParseErrorKind.UNREADABLE, ERROR_UNREADABLE)

    results: list[ParsedSheet] = []
    warnings: list[str] = []
    for sheet_name, rows in sheets.items():
        outcome = parse_sheet(rows, sheet_name)
        warnings.extend(outcome.warnings)
        if outcome.sheet is not None:
            logger.debug(
                "sheet=%s package=%s headlines=%d line_items=%d",
                sheet_name,
                outcome.sheet.package_name,
                len(outcome.sheet.headlines),
                outcome.sheet.line_item_count,
            )
            results.append(outcome.sheet)

    if not results:
        return ParseResult.failed(ParseErrorKind.NO_MATCHING_SHEETS, ERROR_NO_DATA, warnings)

    return ParseResult.ok(results, warnings)
