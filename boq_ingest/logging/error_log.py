from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from boq_ingest.models.error_record import ErrorRecord

"""Error log buffering for import runs.

- JSON Lines with a fixed key set (see ErrorRecord)
- one file per run: ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC), created on first flush
- records are buffered in memory and flushed once at the end of a run
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    Runs are serial, so no locking.
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record(
        self, source: str, sheet: str, row: int, error_type: str, reference: str, message: str
    ) -> ErrorRecord:
        """Create and buffer a record in one call."""
        rec = ErrorRecord.create(source, sheet, row, error_type, reference, message)
        self._records.append(rec)
        return rec

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the run's log file.

        Returns the file path, or None when there was nothing to write (no
        empty log files are created for clean runs).
        """
        if not self._records:
            return self._file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
