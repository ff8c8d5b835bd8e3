from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2

from .batch_insert import BatchInsertError, BatchMetrics, batch_insert, quote_ident

"""Record store used by the import services.

The services treat the database as named collections with equality filters,
a case-insensitive pattern lookup and batch insert. Every call outside a
unit of work is committed on its own; inside ``unit_of_work()`` the calls
commit together or not at all.
"""

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class StoreError(Exception):
    """A read or write against the store failed."""


class RecordStore(ABC):
    @abstractmethod
    def select(
        self, table: str, columns: Sequence[str], filters: Mapping[str, Any] | None = None
    ) -> list[Record]: ...

    @abstractmethod
    def select_ilike(
        self, table: str, columns: Sequence[str], column: str, pattern: str
    ) -> list[Record]:
        """Rows whose ``column`` matches a SQL LIKE pattern, ignoring case."""

    @abstractmethod
    def select_in(
        self, table: str, columns: Sequence[str], column: str, values: Sequence[Any]
    ) -> list[Record]: ...

    @abstractmethod
    def insert(
        self, table: str, rows: Sequence[Mapping[str, Any]], returning: Sequence[str] | None = None
    ) -> list[Record]:
        """Insert all rows in one batch; returns the ``returning`` columns per row."""

    @abstractmethod
    def update(self, table: str, values: Mapping[str, Any], filters: Mapping[str, Any]) -> int: ...

    @abstractmethod
    def count(self, table: str, filters: Mapping[str, Any] | None = None) -> int: ...

    @abstractmethod
    def unit_of_work(self) -> Any:
        """Context manager grouping writes into one commit."""

    def insert_one(
        self, table: str, row: Mapping[str, Any], returning: Sequence[str] | None = None
    ) -> Record | None:
        out = self.insert(table, [row], returning=returning)
        return out[0] if out else None


def _where(filters: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    if not filters:
        return "", []
    parts = [f"{quote_ident(k)} = %s" for k in filters]
    return " WHERE " + " AND ".join(parts), list(filters.values())


class PgRecordStore(RecordStore):
    """psycopg2-backed store. The connection must not be in autocommit mode."""

    def __init__(self, conn: Any, page_size: int = 1000) -> None:
        self._conn = conn
        self._page_size = page_size
        self._depth = 0

    def _finish(self, ok: bool) -> None:
        if self._depth:
            return
        if ok:
            self._conn.commit()
        else:
            self._conn.rollback()

    def _query(self, sql: str, params: Sequence[Any], columns: Sequence[str]) -> list[Record]:
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
        except psycopg2.Error as e:
            self._finish(False)
            raise StoreError(str(e)) from e
        self._finish(True)
        return [dict(zip(columns, r, strict=False)) for r in rows]

    def _execute(self, sql: str, params: Sequence[Any]) -> int:
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                affected = cur.rowcount
        except psycopg2.Error as e:
            self._finish(False)
            raise StoreError(str(e)) from e
        self._finish(True)
        return affected

    def select(self, table, columns, filters=None):
        where, params = _where(filters)
        cols = ",".join(quote_ident(c) for c in columns)
        return self._query(f"SELECT {cols} FROM {quote_ident(table)}{where}", params, columns)

    def select_ilike(self, table, columns, column, pattern):
        cols = ",".join(quote_ident(c) for c in columns)
        sql = f"SELECT {cols} FROM {quote_ident(table)} WHERE {quote_ident(column)} ILIKE %s"
        return self._query(sql, [pattern], columns)

    def select_in(self, table, columns, column, values):
        if not values:
            return []
        cols = ",".join(quote_ident(c) for c in columns)
        sql = f"SELECT {cols} FROM {quote_ident(table)} WHERE {quote_ident(column)} = ANY(%s)"
        return self._query(sql, [list(values)], columns)

    def insert(self, table, rows, returning=None):
        if not rows:
            return []
        columns = list(rows[0].keys())
        values = [[r.get(c) for c in columns] for r in rows]

        def _timing(m: BatchMetrics) -> None:
            logger.debug("insert table=%s rows=%d elapsed=%.4fs", table, m.batch_size, m.elapsed_seconds)

        try:
            with self._conn.cursor() as cur:
                result = batch_insert(
                    cur,
                    table,
                    columns,
                    values,
                    returning=returning,
                    page_size=self._page_size,
                    metrics_callback=_timing,
                )
        except BatchInsertError as e:
            self._finish(False)
            raise StoreError(str(e)) from e
        self._finish(True)
        if not returning:
            return []
        return [dict(zip(returning, rv, strict=False)) for rv in result.returned_values or []]

    def update(self, table, values, filters):
        sets = ",".join(f"{quote_ident(k)} = %s" for k in values)
        where, params = _where(filters)
        return self._execute(f"UPDATE {quote_ident(table)} SET {sets}{where}", [*values.values(), *params])

    def count(self, table, filters=None):
        where, params = _where(filters)
        rows = self._query(f"SELECT COUNT(*) FROM {quote_ident(table)}{where}", params, ["count"])
        return int(rows[0]["count"]) if rows else 0

    @contextmanager
    def unit_of_work(self) -> Iterator[PgRecordStore]:
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            try:
                self._conn.commit()
            except psycopg2.Error as e:
                self._conn.rollback()
                raise StoreError(f"commit failed: {e}") from e
