from __future__ import annotations

from dataclasses import dataclass, field

"""GRN invoice candidates read from the consolidated invoice workbook.

Candidates are plain spreadsheet-derived values; supplier and material names
are resolved to store identities by services.grn_import.
"""

__all__ = [
    "InvoiceLineCandidate",
    "InvoiceCandidate",
]


@dataclass(frozen=True)
class InvoiceLineCandidate:
    material_name: str
    quantity: float
    unit: str
    rate: float
    amount_without_gst: float
    amount_with_gst: float


@dataclass
class InvoiceCandidate:
    """One invoice header plus the material rows that follow it in the sheet."""
    invoice_number: str
    supplier_name: str
    invoice_date: str | None  # ISO YYYY-MM-DD, None when unparseable
    row: int  # 1-based sheet row of the header line (error reporting)
    line_items: list[InvoiceLineCandidate] = field(default_factory=list)
