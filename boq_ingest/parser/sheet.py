from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import reduce
from typing import Any

from boq_ingest.models.boq import Headline, LineItem, ParsedSheet

from .classifier import HeadlineRow, LineItemRow, classify_row

"""Sheet parser: one worksheet's raw rows -> ParsedSheet.

Steps:
1. Reject sheets with fewer than 3 rows
2. Take the package name from the first two rows (fallback: sheet name)
3. Locate the S.No header row within the first 10 rows (no guessing)
4. Fold the rows after the header through HeadlineAccumulator
5. Reject sheets that yield no headlines

Warnings are returned alongside the result; nothing is written to shared state.
"""

MIN_ROWS = 3
PACKAGE_NAME_SCAN_ROWS = 2
HEADER_SCAN_ROWS = 10
HEADER_MIN_CELLS = 4


@dataclass(frozen=True)
class SheetOutcome:
    sheet: ParsedSheet | None
    warnings: tuple[str, ...] = ()


@dataclass
class HeadlineAccumulator:
    """Fold state for the row loop.

    Two states: no open headline (``current`` is None) and headline open.
    ``closed`` holds the headlines already emitted, in input order. Rows are
    appended in place; ``finish`` freezes the result into tuples.
    """
    closed: list[Headline] = field(default_factory=list)
    current: Headline | None = None
    _items: list[LineItem] = field(default_factory=list, repr=False)

    def step(self, classified: HeadlineRow | LineItemRow | None) -> HeadlineAccumulator:
        if classified is None:
            return self
        if isinstance(classified, HeadlineRow):
            self._close_open()
            self.current = Headline(serial_number=classified.serial_number, name=classified.name)
            return self
        if self.current is None:
            n = math.floor(classified.serial)
            self.current = Headline(serial_number=n, name=f"Item {n}")
        self._items.append(
            LineItem(
                item_number=classified.item_number,
                description=classified.description,
                location=classified.location,
                unit=classified.unit,
                quantity=classified.quantity,
            )
        )
        return self

    def _close_open(self) -> None:
        if self.current is None:
            return
        self.closed.append(
            Headline(
                serial_number=self.current.serial_number,
                name=self.current.name,
                line_items=tuple(self._items),
            )
        )
        self.current = None
        self._items = []

    def finish(self) -> tuple[Headline, ...]:
        """Close the open headline (if any) and return every headline."""
        self._close_open()
        return tuple(self.closed)


def _is_header_cell(text: str) -> bool:
    return "s.no" in text or "sl.no" in text or text == "sno"


def find_package_name(rows: Sequence[Sequence[Any]], sheet_name: str) -> str:
    for row in rows[:PACKAGE_NAME_SCAN_ROWS]:
        if row and isinstance(row[0], str):
            value = row[0].strip()
            if value and "s.no" not in value.lower():
                return value
    return sheet_name


def find_header_row(rows: Sequence[Sequence[Any]]) -> int | None:
    for i, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if row and len(row) >= HEADER_MIN_CELLS:
            first = "" if row[0] is None else str(row[0]).lower().strip()
            if _is_header_cell(first):
                return i
    return None


def fold_rows(rows: Sequence[Sequence[Any]]) -> tuple[Headline, ...]:
    """Classify each row in order and assemble the headline tree."""
    acc = reduce(lambda a, row: a.step(classify_row(row)), rows, HeadlineAccumulator())
    return acc.finish()


def parse_sheet(rows: Sequence[Sequence[Any]], sheet_name: str) -> SheetOutcome:
    """Parse one worksheet. ``sheet`` is None when the sheet is not BOQ data."""
    if len(rows) < MIN_ROWS:
        return SheetOutcome(None, (f'Sheet "{sheet_name}" has insufficient data',))

    package_name = find_package_name(rows, sheet_name)

    header_index = find_header_row(rows)
    if header_index is None:
        return SheetOutcome(None, (f'No header row found in sheet "{sheet_name}"',))

    headlines = fold_rows(rows[header_index + 1:])
    if not headlines:
        return SheetOutcome(None, (f'No BOQ headlines found in sheet "{sheet_name}"',))

    return SheetOutcome(ParsedSheet(package_name=package_name, headlines=headlines))
