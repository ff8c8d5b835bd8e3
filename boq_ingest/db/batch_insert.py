from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch insert.

One INSERT ... VALUES %s statement per call, expanded by
psycopg2.extras.execute_values in pages of ``page_size`` rows. When
``returning`` names columns, the generated rows come back from every page
(fetch=True), which is how new master entities and invoice headers get their
ids without a second SELECT.
"""

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def quote_ident(name: str) -> str:
    """Double-quote a table/column name; only plain identifiers are accepted."""
    if not _IDENT.match(name):
        raise BatchInsertError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: Sequence[str] | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table
    columns: insert columns, in the order of each row's values
    rows: row value sequences
    returning: columns to return for each inserted row (None = no RETURNING)
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the statement ran (not called for empty input)
    """
    if not columns:
        raise BatchInsertError(f"no columns to insert into {table}")

    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(quote_ident(c) for c in columns)
    base_sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s"
    if returning:
        base_sql += " RETURNING " + ",".join(quote_ident(c) for c in returning)

    start_time = time.time()
    try:
        returned = execute_values(
            cursor, base_sql, rows_list, page_size=page_size, fetch=bool(returning)
        )
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(
        inserted_rows=len(rows_list),
        returned_values=list(returned or []) if returning else None,
    )
