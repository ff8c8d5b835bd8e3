from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from boq_ingest.db.store import RecordStore, StoreError

"""Master-entity reconciliation.

Materials and suppliers are keyed by normalized name (trimmed, lowercased).
A run:
1. loads every stored row of the master table into a MasterLookup
2. partitions the candidates into already-existing and new
3. inserts all new rows in one batch with RETURNING (the batch fails as a whole)
4. merges the returned rows into the lookup so later steps of the same run
   resolve them without re-reading the table

Re-running with the same candidates creates nothing.
"""

logger = logging.getLogger(__name__)


class ReconcileError(Exception):
    """The batch insert of new master rows failed."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{table}: {message}")
        self.table = table
        self.message = message


@dataclass(frozen=True)
class MasterTable:
    table: str
    key_column: str
    columns: tuple[str, ...]  # loaded into the lookup, always includes id + key_column


MATERIALS = MasterTable("master_materials", "name", ("id", "name", "unit"))
SUPPLIERS = MasterTable("suppliers", "supplier_name", ("id", "supplier_name"))


def normalize_name(name: Any) -> str:
    if name is None:
        return ""
    return str(name).strip().lower()


class MasterLookup:
    """Normalized name -> stored record for one master table."""

    def __init__(self, master: MasterTable, records: Iterable[Mapping[str, Any]] = ()) -> None:
        self.master = master
        self._by_key: dict[str, dict[str, Any]] = {}
        self.merge(records)

    def merge(self, records: Iterable[Mapping[str, Any]]) -> int:
        """Add records (first record per key wins). Returns how many keys were new."""
        added = 0
        for rec in records:
            key = normalize_name(rec.get(self.master.key_column))
            if not key or key in self._by_key:
                continue
            self._by_key[key] = dict(rec)
            added += 1
        return added

    def resolve(self, name: Any) -> dict[str, Any] | None:
        return self._by_key.get(normalize_name(name))

    def resolve_id(self, name: Any) -> Any:
        rec = self.resolve(name)
        return rec.get("id") if rec else None

    def __contains__(self, name: object) -> bool:
        return normalize_name(name) in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)


@dataclass(frozen=True)
class ReconcileOutcome:
    table: str
    existing: int  # candidates already present in the store
    created: int  # rows inserted by this run
    lookup: MasterLookup


def load_lookup(store: RecordStore, master: MasterTable) -> MasterLookup:
    rows = store.select(master.table, master.columns)
    return MasterLookup(master, rows)


def diff_candidates(
    candidates: Iterable[Mapping[str, Any]], lookup: MasterLookup
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Split candidates into (existing, new).

    Blank names are dropped. New candidates collapse on normalized name, the
    first occurrence wins; the key value is stored trimmed.
    """
    key_col = lookup.master.key_column
    existing: list[dict[str, Any]] = []
    new: dict[str, dict[str, Any]] = {}
    for cand in candidates:
        raw = cand.get(key_col)
        key = normalize_name(raw)
        if not key:
            continue
        if key in lookup:
            existing.append(dict(cand))
            continue
        if key not in new:
            row = dict(cand)
            row[key_col] = str(raw).strip()
            new[key] = row
    return existing, list(new.values())


def reconcile_master(
    store: RecordStore,
    master: MasterTable,
    candidates: Iterable[Mapping[str, Any]],
    lookup: MasterLookup | None = None,
) -> ReconcileOutcome:
    """Create the missing master rows and return the extended lookup.

    Raises:
        ReconcileError: when the batch insert fails. Nothing from the batch is
            merged into the lookup; earlier writes by the caller are untouched.
    """
    if lookup is None:
        lookup = load_lookup(store, master)

    existing, new = diff_candidates(candidates, lookup)
    logger.info(
        "%s: %d candidate(s) already exist, %d new", master.table, len(existing), len(new)
    )
    if not new:
        return ReconcileOutcome(master.table, existing=len(existing), created=0, lookup=lookup)

    try:
        inserted = store.insert(master.table, new, returning=master.columns)
    except StoreError as e:
        raise ReconcileError(master.table, str(e)) from e

    lookup.merge(inserted)
    logger.info("%s: created %d row(s)", master.table, len(inserted))
    return ReconcileOutcome(master.table, existing=len(existing), created=len(inserted), lookup=lookup)
