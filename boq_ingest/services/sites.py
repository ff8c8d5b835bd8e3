from __future__ import annotations

import logging
from typing import Any

from boq_ingest.db.store import RecordStore

logger = logging.getLogger(__name__)


class SiteNotFoundError(Exception):
    """No site name matches the configured pattern."""


def find_site(store: RecordStore, pattern: str) -> dict[str, Any]:
    """First site whose name matches ``pattern`` (SQL LIKE, case-insensitive)."""
    sites = store.select_ilike("sites", ["id", "name"], "name", pattern)
    if not sites:
        logger.error("site matching %r not found", pattern)
        for s in store.select("sites", ["id", "name"]):
            logger.info("  available site: %s (%s)", s["name"], s["id"])
        raise SiteNotFoundError(f"site matching {pattern!r} not found")
    return sites[0]
