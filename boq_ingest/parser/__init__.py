"""BOQ workbook parser: row classifier, sheet parser and workbook parser."""

from .classifier import HeadlineRow, LineItemRow, classify_row
from .sheet import HeadlineAccumulator, SheetOutcome, parse_sheet
from .workbook import parse_boq_workbook

__all__ = [
    "HeadlineRow",
    "LineItemRow",
    "classify_row",
    "HeadlineAccumulator",
    "SheetOutcome",
    "parse_sheet",
    "parse_boq_workbook",
]
