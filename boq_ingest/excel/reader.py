from __future__ import annotations

import io
from collections.abc import Iterable
from pathlib import Path
from typing import IO, Any

import pandas as pd

"""Workbook reader.

Sheets are read without a header row and without pandas' NA-string
conversion, so that text such as "NA" in a location column survives. Each
sheet becomes a list of raw rows (RawRow): blank cells are None and trailing
blank cells are trimmed, so a fully blank row is an empty list.
"""

WorkbookSource = str | Path | bytes | IO[bytes]


class WorkbookReadError(Exception):
    """Raised when the source cannot be opened or decoded as a spreadsheet."""


class EmptyWorkbookError(WorkbookReadError):
    """Raised for zero-byte input or a workbook without sheets."""


def _stream_is_empty(stream: IO[bytes]) -> bool:
    pos = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(pos)
    return end <= pos


def _open(source: WorkbookSource) -> pd.ExcelFile:
    if isinstance(source, (bytes, bytearray)):
        if not source:
            raise EmptyWorkbookError("input is empty")
        source = io.BytesIO(source)
    elif isinstance(source, (str, Path)):
        p = Path(source)
        if not p.exists():
            raise WorkbookReadError(f"file not found: {p}")
        if p.stat().st_size == 0:
            raise EmptyWorkbookError(f"file is empty: {p}")
    elif source.seekable() and _stream_is_empty(source):
        raise EmptyWorkbookError("input is empty")
    try:
        return pd.ExcelFile(source)
    except Exception as e:
        raise WorkbookReadError(str(e)) from e


def frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    """Convert a header-less DataFrame into raw rows (None for blanks, trailing blanks trimmed)."""
    rows: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        row = [None if _is_blank(v) else v for v in raw]
        while row and row[-1] is None:
            row.pop()
        rows.append(row)
    return rows


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def read_workbook_rows(
    source: WorkbookSource, target_sheets: Iterable[str] | None = None
) -> dict[str, list[list[Any]]]:
    """Read every (or every targeted) sheet of a workbook as raw rows.

    Sheet order follows the workbook. Missing target sheets are simply absent
    from the result.

    Raises:
        EmptyWorkbookError: zero-byte input or no worksheets
        WorkbookReadError: the file cannot be decoded
    """
    xls = _open(source)
    try:
        if not xls.sheet_names:
            raise EmptyWorkbookError("workbook has no sheets")
        wanted = set(target_sheets) if target_sheets is not None else None
        out: dict[str, list[list[Any]]] = {}
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            try:
                df = xls.parse(name, header=None, keep_default_na=False, na_values=[""])
            except Exception as e:
                raise WorkbookReadError(f"sheet '{name}': {e}") from e
            out[str(name)] = frame_to_rows(df)
        return out
    finally:
        xls.close()


def read_sheet_rows(source: WorkbookSource, sheet_name: str) -> list[list[Any]]:
    """Read one named sheet; a missing sheet is a WorkbookReadError."""
    sheets = read_workbook_rows(source, target_sheets=[sheet_name])
    if sheet_name not in sheets:
        raise WorkbookReadError(f"sheet '{sheet_name}' not found")
    return sheets[sheet_name]
