from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""BOQ tree models produced by the workbook parser.

A workbook parses into one ParsedSheet per worksheet, each holding an ordered
list of Headlines (whole-number serials) that own their LineItems
(fractional serials). The tree is immutable once the parser returns it;
persistence happens downstream in services.boq_loader.
"""

__all__ = [
    "LineItem",
    "Headline",
    "ParsedSheet",
    "ParseErrorKind",
    "ParseResult",
]


@dataclass(frozen=True)
class LineItem:
    """Leaf unit of billable work (e.g. "1.1 Excavation - Block A")."""
    item_number: str  # numeric serial rendered as text, never renumbered
    description: str
    location: str
    unit: str
    quantity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemNumber": self.item_number,
            "description": self.description,
            "location": self.location,
            "unit": self.unit,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class Headline:
    """Work category identified by a whole-number serial (e.g. "1 PCC WORK")."""
    serial_number: int
    name: str
    line_items: tuple[LineItem, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "serialNumber": self.serial_number,
            "name": self.name,
            "lineItems": [li.to_dict() for li in self.line_items],
        }


@dataclass(frozen=True)
class ParsedSheet:
    """One worksheet's BOQ tree."""
    package_name: str
    headlines: tuple[Headline, ...]

    @property
    def line_item_count(self) -> int:
        return sum(len(h.line_items) for h in self.headlines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageName": self.package_name,
            "headlines": [h.to_dict() for h in self.headlines],
        }


class ParseErrorKind(Enum):
    """Why a workbook produced no BOQ data.

    - EMPTY_INPUT: zero-byte input or a workbook without worksheets
    - UNREADABLE: the bytes could not be decoded as a spreadsheet
    - NO_MATCHING_SHEETS: readable workbook, but no sheet matched the BOQ layout
    """
    EMPTY_INPUT = "empty_input"
    UNREADABLE = "unreadable"
    NO_MATCHING_SHEETS = "no_matching_sheets"


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing a whole workbook.

    ``data`` is only set on success. ``warnings`` may accompany either outcome.
    """
    success: bool
    data: tuple[ParsedSheet, ...] | None = None
    error: str | None = None
    error_kind: ParseErrorKind | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def ok(cls, sheets: list[ParsedSheet], warnings: list[str]) -> ParseResult:
        return cls(success=True, data=tuple(sheets), warnings=tuple(warnings))

    @classmethod
    def failed(cls, kind: ParseErrorKind, error: str, warnings: list[str] | None = None) -> ParseResult:
        return cls(success=False, error=error, error_kind=kind, warnings=tuple(warnings or ()))

    @property
    def headline_count(self) -> int:
        return sum(len(s.headlines) for s in self.data or ())

    @property
    def line_item_count(self) -> int:
        return sum(s.line_item_count for s in self.data or ())

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing shape used by the preview (camelCase, optional keys omitted)."""
        out: dict[str, Any] = {"success": self.success}
        if self.success and self.data is not None:
            out["data"] = [s.to_dict() for s in self.data]
        if self.error is not None:
            out["error"] = self.error
            out["errorKind"] = self.error_kind.value if self.error_kind else None
        if self.warnings:
            out["warnings"] = list(self.warnings)
        return out
