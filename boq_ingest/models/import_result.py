from __future__ import annotations

from dataclasses import dataclass, field

"""Run reports for the import commands.

Reports are accumulated while a run progresses and rendered into the SUMMARY
line by services.summary. None of them are persisted.
"""


@dataclass
class MasterClassReport:
    """Counts for one master entity class (materials or suppliers)."""
    table: str
    candidates: int = 0
    existing: int = 0
    created: int = 0
    failed: bool = False
    final_count: int | None = None


@dataclass
class MasterImportReport:
    materials: MasterClassReport = field(default_factory=lambda: MasterClassReport("master_materials"))
    suppliers: MasterClassReport = field(default_factory=lambda: MasterClassReport("suppliers"))
    elapsed_seconds: float = 0.0

    @property
    def failed_classes(self) -> int:
        return int(self.materials.failed) + int(self.suppliers.failed)


@dataclass
class GrnImportReport:
    """Counts for one GRN invoice import run.

    errors counts invoices that were not imported (missing supplier, missing
    date, failed write). dropped_line_items counts material rows discarded
    because their material could not be resolved.
    """
    site_id: str | None = None
    site_name: str | None = None
    parsed_invoices: int = 0
    parsed_line_items: int = 0
    suppliers_created: int = 0
    materials_created: int = 0
    skipped_existing: int = 0
    invoices_created: int = 0
    line_items_created: int = 0
    dropped_line_items: int = 0
    errors: int = 0
    elapsed_seconds: float = 0.0
    final_invoice_count: int | None = None
    final_line_item_count: int | None = None


@dataclass
class DocumentReport:
    matched: int = 0
    unmatched: list[str] = field(default_factory=list)
    uploaded: int = 0
    skipped: int = 0
    errors: int = 0
    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class BoqLoadReport:
    package_id: str
    headlines_created: int
    line_items_created: int
