from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from boq_ingest.excel.cells import cell_text, float_or_zero, format_number, parse_float

"""Row classifier for BOQ sheets.

Column layout (A-E): serial no., description, location, unit, quantity.
A whole-number serial opens a headline, a fractional serial is a line item
of the open headline; anything else is skipped without a warning, since BOQ
sheets routinely carry blank and formatting rows.
"""

COL_SERIAL = 0
COL_DESCRIPTION = 1
COL_LOCATION = 2
COL_UNIT = 3
COL_QUANTITY = 4


@dataclass(frozen=True)
class HeadlineRow:
    serial_number: int
    name: str


@dataclass(frozen=True)
class LineItemRow:
    item_number: str
    serial: float  # parsed serial, used to synthesize a parent headline
    description: str
    location: str
    unit: str
    quantity: float


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def classify_row(row: Sequence[Any] | None) -> HeadlineRow | LineItemRow | None:
    """Classify one raw row; None means skip."""
    if not row or len(row) < 2:
        return None

    serial = parse_float(row[COL_SERIAL])
    if serial is None or not math.isfinite(serial):
        return None

    description = cell_text(_cell(row, COL_DESCRIPTION))
    if serial.is_integer():
        n = int(serial)
        return HeadlineRow(serial_number=n, name=description or f"Item {n}")

    return LineItemRow(
        item_number=format_number(serial),
        serial=serial,
        description=description,
        location=cell_text(_cell(row, COL_LOCATION)),
        unit=cell_text(_cell(row, COL_UNIT)),
        quantity=float_or_zero(_cell(row, COL_QUANTITY)),
    )
