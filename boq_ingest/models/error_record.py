from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for per-record import failures.

Each record names the source workbook, the sheet, the 1-based row (or -1 when
the failure is not tied to a row) and an UPPER_SNAKE error type such as
SUPPLIER_NOT_FOUND or UNRESOLVED_MATERIAL_REFERENCE.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: workbook or document file name
        sheet: sheet name within the workbook ("<RUN>" for run-level failures)
        row: row number (1-based). -1 when unknown
        error_type: error classification in UPPER_SNAKE_CASE
        reference: business key the failure concerns (invoice number, material name)
        message: human readable detail, usually the database message
    """
    timestamp: str
    source: str
    sheet: str
    row: int
    error_type: str
    reference: str
    message: str

    @staticmethod
    def create(
        source: str, sheet: str, row: int, error_type: str, reference: str, message: str
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            source=source,
            sheet=sheet,
            row=row,
            error_type=error_type,
            reference=reference,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
