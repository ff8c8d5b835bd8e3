from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from boq_ingest.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from boq_ingest.db.connect import open_store
from boq_ingest.db.store import StoreError
from boq_ingest.excel.reader import WorkbookReadError
from boq_ingest.logging.error_log import ErrorLogBuffer
from boq_ingest.logging.init import log_summary, set_debug, setup_logging
from boq_ingest.parser.workbook import parse_boq_workbook
from boq_ingest.services.boq_loader import BoqLoadError, save_parsed_boq
from boq_ingest.services.grn_import import import_grn
from boq_ingest.services.invoice_documents import attach_documents
from boq_ingest.services.masters_import import import_masters
from boq_ingest.services.sites import SiteNotFoundError
from boq_ingest.services.summary import (
    render_boq_load_summary,
    render_documents_summary,
    render_grn_summary,
    render_masters_summary,
    render_parse_summary,
)

"""CLI entrypoint.

    python -m boq_ingest.cli [--debug] [--config PATH] <command> ...

Commands:
- parse-boq FILE                    print the BOQ preview JSON (no database)
- load-boq FILE --package-id ID     parse and store the BOQ under a package
- import-masters                    reconcile materials and suppliers
- import-grn                        import GRN invoices for the configured site
- attach-invoices                   attach invoice PDFs to stored GRN invoices

Exit codes: 0 success, 2 completed with per-record errors (see the error log),
1 fatal (config, connection, missing site or workbook, parse or load failure).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

FATAL_ERRORS = (
    ConfigError,
    WorkbookReadError,
    SiteNotFoundError,
    BoqLoadError,
    StoreError,
    FileNotFoundError,
    psycopg2.Error,
)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="boq-ingest", description="BOQ workbook and procurement data importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config file (default: config/import.yml)"
    )
    sub = p.add_subparsers(dest="command", required=True)

    parse = sub.add_parser("parse-boq", help="Print the parsed BOQ tree as JSON")
    parse.add_argument("file", type=Path)

    load = sub.add_parser("load-boq", help="Parse a BOQ workbook and store it under a package")
    load.add_argument("file", type=Path)
    load.add_argument("--package-id", required=True)

    sub.add_parser("import-masters", help="Import materials and suppliers")
    sub.add_parser("import-grn", help="Import GRN invoices")
    sub.add_parser("attach-invoices", help="Attach invoice PDFs to GRN invoices")
    return p.parse_args(argv)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load the env file with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _load(config_path: Path) -> ImportConfig:
    cfg = load_config(config_path)
    _load_env_file(cfg.env_file)
    return cfg


def _run_parse(args: argparse.Namespace) -> int:
    result = parse_boq_workbook(args.file)
    print(json.dumps(result.to_dict(), ensure_ascii=False))
    log_summary(render_parse_summary(result))
    return EXIT_SUCCESS_ALL if result.success else EXIT_FATAL


def _run_load(args: argparse.Namespace, error_log: ErrorLogBuffer, logger) -> int:
    cfg = _load(args.config)
    result = parse_boq_workbook(args.file)
    for w in result.warnings:
        logger.warning(w)
    if not result.success:
        logger.error("parse: %s", result.error)
        return EXIT_FATAL
    with open_store(cfg.database) as store:
        report = save_parsed_boq(store, args.package_id, result.data or ())
    log_summary(render_boq_load_summary(report))
    return EXIT_SUCCESS_ALL


def _run_masters(args: argparse.Namespace, error_log: ErrorLogBuffer, logger) -> int:
    cfg = _load(args.config)
    if cfg.masters is None:
        raise ConfigError("'masters' section is required for import-masters")
    logger.info("Processing masters workbook: %s", cfg.masters.workbook)
    with open_store(cfg.database) as store:
        report = import_masters(store, cfg.masters, error_log)
    log_summary(render_masters_summary(report))
    return EXIT_PARTIAL_FAILURE if len(error_log) else EXIT_SUCCESS_ALL


def _run_grn(args: argparse.Namespace, error_log: ErrorLogBuffer, logger) -> int:
    cfg = _load(args.config)
    if cfg.grn is None:
        raise ConfigError("'grn' section is required for import-grn")
    logger.info("Processing GRN workbook: %s (sheet %s)", cfg.grn.workbook, cfg.grn.sheet)
    with open_store(cfg.database) as store:
        report = import_grn(store, cfg.grn, error_log)
    logger.info(
        "GRN invoices for site: %s, GRN line items: %s",
        report.final_invoice_count,
        report.final_line_item_count,
    )
    log_summary(render_grn_summary(report))
    return EXIT_PARTIAL_FAILURE if len(error_log) else EXIT_SUCCESS_ALL


def _run_documents(args: argparse.Namespace, error_log: ErrorLogBuffer, logger) -> int:
    cfg = _load(args.config)
    if cfg.documents is None:
        raise ConfigError("'documents' section is required for attach-invoices")
    logger.info("Processing invoice documents from: %s", cfg.documents.source_directory)
    with open_store(cfg.database) as store:
        report = attach_documents(store, cfg.documents, error_log)
    log_summary(render_documents_summary(report))
    return EXIT_PARTIAL_FAILURE if len(error_log) else EXIT_SUCCESS_ALL


COMMANDS = {
    "load-boq": _run_load,
    "import-masters": _run_masters,
    "import-grn": _run_grn,
    "attach-invoices": _run_documents,
}


def _logs_dir(config_path: Path) -> Path | None:
    try:
        return load_config(config_path).logs_directory
    except ConfigError:
        return None


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only fall back to sys.argv when no list was given (an empty list is a valid argv)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(logger)

    if args.command == "parse-boq":
        return _run_parse(args)

    error_log = ErrorLogBuffer(_logs_dir(args.config))
    try:
        code = COMMANDS[args.command](args, error_log, logger)
    except ConfigError as e:
        logger.error("config: %s", e)
        code = EXIT_FATAL
    except FATAL_ERRORS as e:
        logger.error("%s: %s", args.command, e)
        code = EXIT_FATAL
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info("error log: %s", path)
    return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
