from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from boq_ingest.db.store import RecordStore, StoreError
from boq_ingest.models.boq import ParsedSheet
from boq_ingest.models.import_result import BoqLoadReport

"""Persist a parsed BOQ tree under a package.

Headlines of all parsed sheets are flattened in order. Each headline and its
line items are written in one unit of work; the first failure stops the load
(headlines written before it stay committed).
"""

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"


class BoqLoadError(Exception):
    pass


def save_parsed_boq(store: RecordStore, package_id: Any, sheets: Sequence[ParsedSheet]) -> BoqLoadReport:
    if not store.select("packages", ["id"], {"id": package_id}):
        raise BoqLoadError(f"package not found: {package_id}")

    headlines = [h for sheet in sheets for h in sheet.headlines]
    if not headlines:
        raise BoqLoadError("no data to save")

    created_headlines = 0
    created_items = 0
    for headline in headlines:
        try:
            with store.unit_of_work():
                row = store.insert_one(
                    "boq_headlines",
                    {
                        "package_id": package_id,
                        "serial_number": headline.serial_number,
                        "name": headline.name,
                        "status": STATUS_PENDING,
                    },
                    returning=["id"],
                )
                if row is None:
                    raise StoreError("insert returned no id")
                if headline.line_items:
                    store.insert(
                        "boq_line_items",
                        [
                            {
                                "headline_id": row["id"],
                                "item_number": item.item_number,
                                "description": item.description,
                                "location": item.location or None,
                                "unit": item.unit,
                                "quantity": item.quantity,
                                "status": STATUS_PENDING,
                            }
                            for item in headline.line_items
                        ],
                    )
        except StoreError as e:
            logger.error("error inserting headline %s %r: %s", headline.serial_number, headline.name, e)
            raise BoqLoadError(
                f"failed at headline {headline.serial_number} ({headline.name}) after "
                f"{created_headlines} headline(s): {e}"
            ) from e
        created_headlines += 1
        created_items += len(headline.line_items)
        logger.debug("headline %s saved with %d line item(s)", headline.serial_number, len(headline.line_items))

    logger.info("imported %d BOQ headline(s), %d line item(s)", created_headlines, created_items)
    return BoqLoadReport(package_id=str(package_id), headlines_created=created_headlines, line_items_created=created_items)
