from __future__ import annotations

import logging
import re
import shutil
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from boq_ingest.config.loader import ConfigError, DocumentsConfig
from boq_ingest.db.store import RecordStore, StoreError
from boq_ingest.logging.error_log import ErrorLogBuffer
from boq_ingest.models.import_result import DocumentReport

from .progress import ProgressTracker
from .sites import find_site

"""Attach scanned invoice PDFs to stored GRN invoices.

File names are matched to invoice numbers in three passes:
1. configured special mappings (file name -> exact invoice number)
2. equality after reducing both to lowercase alphanumerics
3. containment either way, except that an invoice carrying a parenthesized
   qualifier, e.g. "RK-25-11-3491 (4CBM)", only matches files mentioning it

Matched files are copied under ``<storage_root>/grn-invoices/<site>/<invoice>/``
and the invoice's delivery-challan row (grn_invoice_dc) is marked uploaded.
Invoices whose document is already uploaded are skipped, so re-runs are safe.
"""

logger = logging.getLogger(__name__)

DC_TABLE = "grn_invoice_dc"
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_QUALIFIER = re.compile(r"\(([^)]*)\)")


def normalize_key(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


@dataclass(frozen=True)
class DocumentMatch:
    file: str
    invoice: dict[str, Any]


def _qualifier_missing(invoice_number: str, file_key: str) -> bool:
    for q in _QUALIFIER.findall(invoice_number):
        qk = normalize_key(q)
        if qk and qk not in file_key:
            return True
    return False


def match_documents(
    files: Sequence[str],
    invoices: Sequence[Mapping[str, Any]],
    special_mappings: Mapping[str, str] | None = None,
) -> tuple[list[DocumentMatch], list[str]]:
    by_exact = {inv["invoice_number"]: dict(inv) for inv in invoices}
    by_key: dict[str, dict[str, Any]] = {}
    for inv in invoices:
        by_key.setdefault(normalize_key(inv["invoice_number"]), dict(inv))

    matches: list[DocumentMatch] = []
    unmatched: list[str] = []
    for file in files:
        invoice = None
        mapped = (special_mappings or {}).get(file)
        if mapped:
            invoice = by_exact.get(mapped)

        if invoice is None:
            file_key = normalize_key(Path(file).stem)
            invoice = by_key.get(file_key)
            if invoice is None and file_key:
                for inv_key, inv in by_key.items():
                    if not inv_key or not (inv_key in file_key or file_key in inv_key):
                        continue
                    if _qualifier_missing(inv["invoice_number"], file_key):
                        continue
                    invoice = inv
                    break

        if invoice is not None:
            matches.append(DocumentMatch(file=file, invoice=invoice))
        else:
            unmatched.append(file)
    return matches, unmatched


def list_pdf_files(directory: Path) -> list[str]:
    if not directory.is_dir():
        raise FileNotFoundError(f"documents directory not found: {directory}")
    return sorted(p.name for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".pdf")


def _store_document(cfg: DocumentsConfig, site_id: Any, invoice_id: Any, file: str) -> str:
    storage_path = f"grn-invoices/{site_id}/{invoice_id}/{file}"
    target = cfg.storage_root / storage_path
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(cfg.source_directory / file, target)
    return storage_path


def _mark_uploaded(store: RecordStore, invoice_id: Any, storage_path: str, file: str) -> None:
    values = {
        "is_uploaded": True,
        "file_path": storage_path,
        "file_name": file,
        "uploaded_at": datetime.now(UTC).isoformat(),
    }
    existing = store.select(DC_TABLE, ["id"], {"grn_invoice_id": invoice_id})
    if existing:
        store.update(DC_TABLE, values, {"id": existing[0]["id"]})
    else:
        store.insert(DC_TABLE, [{"grn_invoice_id": invoice_id, "is_applicable": True, **values}])


def attach_documents(
    store: RecordStore, cfg: DocumentsConfig, error_log: ErrorLogBuffer | None = None
) -> DocumentReport:
    """Match, copy and record invoice documents for the configured site.

    Raises:
        SiteNotFoundError: no site matches the pattern
        FileNotFoundError: the source directory does not exist
        ConfigError: no site pattern configured (documents or grn section)
    """
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    if not cfg.site_name_pattern:
        raise ConfigError("documents.site_name_pattern is not configured")
    started = time.perf_counter()
    report = DocumentReport()

    site = find_site(store, cfg.site_name_pattern)
    site_id = site["id"]
    invoices = store.select("grn_invoices", ["id", "invoice_number"], {"site_id": site_id})
    logger.info("found %d GRN invoice(s) for %s", len(invoices), site["name"])

    files = list_pdf_files(cfg.source_directory)
    logger.info("found %d PDF file(s) in %s", len(files), cfg.source_directory)

    matches, unmatched = match_documents(files, invoices, cfg.special_mappings)
    report.matched = len(matches)
    report.unmatched = unmatched
    logger.info("matched=%d unmatched=%d", len(matches), len(unmatched))
    for f in unmatched:
        logger.warning("unmatched file: %s", f)
        error_log.record(f, "<DOCUMENTS>", -1, "UNMATCHED_DOCUMENT", f, "no GRN invoice matches this file")
    for m in matches:
        logger.debug("%s -> %s", m.file, m.invoice["invoice_number"])

    invoice_ids = [m.invoice["id"] for m in matches]
    uploaded = {
        r["grn_invoice_id"]
        for r in store.select_in(DC_TABLE, ["grn_invoice_id", "is_uploaded"], "grn_invoice_id", invoice_ids)
        if r.get("is_uploaded")
    }
    logger.info("already uploaded: %d", len(uploaded))

    with ProgressTracker(len(matches), description="Uploading documents", unit="file") as progress:
        for m in matches:
            invoice_id = m.invoice["id"]
            number = m.invoice["invoice_number"]
            if invoice_id in uploaded:
                logger.info("%s -> already uploaded", m.file)
                report.skipped += 1
                progress.advance(m.file)
                continue
            try:
                storage_path = _store_document(cfg, site_id, invoice_id, m.file)
                _mark_uploaded(store, invoice_id, storage_path, m.file)
            except (OSError, StoreError) as e:
                logger.error("error uploading %s: %s", m.file, e)
                error_log.record(m.file, "<DOCUMENTS>", -1, "DOCUMENT_UPLOAD_ERROR", number, str(e))
                report.errors += 1
                progress.advance(m.file)
                continue
            logger.info("%s -> %s", m.file, number)
            report.uploaded += 1
            progress.advance(m.file, uploaded=report.uploaded, errors=report.errors)

    report.elapsed_seconds = time.perf_counter() - started
    return report
