from __future__ import annotations

import copy
import re
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from .store import Record, RecordStore

"""In-memory record store (mock mode).

Used when DISABLE_DB_CONNECT=1 and by the test-suite. Rows get a uuid4 ``id``
unless one is supplied; a unit of work snapshots every table and restores
the snapshot when the block raises.
"""


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    out = []
    for ch in pattern:
        if ch == "%":
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append(re.escape(ch))
    return re.compile("".join(out), re.IGNORECASE | re.DOTALL)


class InMemoryStore(RecordStore):
    def __init__(self, tables: Mapping[str, Sequence[Mapping[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[Record]] = {}
        for name, rows in (tables or {}).items():
            self.tables[name] = [self._with_id(r) for r in rows]
        self.insert_calls: list[tuple[str, int]] = []

    @staticmethod
    def _with_id(row: Mapping[str, Any]) -> Record:
        rec = dict(row)
        rec.setdefault("id", str(uuid.uuid4()))
        return rec

    def _rows(self, table: str) -> list[Record]:
        return self.tables.setdefault(table, [])

    @staticmethod
    def _project(row: Record, columns: Sequence[str]) -> Record:
        return {c: row.get(c) for c in columns}

    @staticmethod
    def _matches(row: Record, filters: Mapping[str, Any] | None) -> bool:
        return all(row.get(k) == v for k, v in (filters or {}).items())

    def select(self, table, columns, filters=None):
        return [self._project(r, columns) for r in self._rows(table) if self._matches(r, filters)]

    def select_ilike(self, table, columns, column, pattern):
        rx = _like_to_regex(pattern)
        return [
            self._project(r, columns)
            for r in self._rows(table)
            if r.get(column) is not None and rx.fullmatch(str(r[column]))
        ]

    def select_in(self, table, columns, column, values):
        wanted = set(values)
        return [self._project(r, columns) for r in self._rows(table) if r.get(column) in wanted]

    def insert(self, table, rows, returning=None):
        created = [self._with_id(r) for r in rows]
        self._rows(table).extend(created)
        self.insert_calls.append((table, len(created)))
        if not returning:
            return []
        return [self._project(r, returning) for r in created]

    def update(self, table, values, filters):
        n = 0
        for r in self._rows(table):
            if self._matches(r, filters):
                r.update(values)
                n += 1
        return n

    def count(self, table, filters=None):
        return sum(1 for r in self._rows(table) if self._matches(r, filters))

    @contextmanager
    def unit_of_work(self) -> Iterator[InMemoryStore]:
        snapshot = copy.deepcopy(self.tables)
        try:
            yield self
        except BaseException:
            self.tables = snapshot
            raise
