from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

import psycopg2

from boq_ingest.config.loader import DatabaseConfig

from .memory import InMemoryStore
from .store import PgRecordStore, RecordStore

"""Store construction from environment + config.

Connection resolution order:
    1. DATABASE_URL / PGDSN (the env file is loaded with override, so its
       values win over the inherited process environment)
    2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the ``database`` section of the config file for whatever is missing

DISABLE_DB_CONNECT=1 skips the connection and yields an InMemoryStore.
"""

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def db_disabled() -> bool:
    return os.getenv("DISABLE_DB_CONNECT") == "1"


@contextmanager
def open_store(db_cfg: DatabaseConfig) -> Iterator[RecordStore]:
    """Yield a PgRecordStore on a fresh connection (closed on exit).

    Raises psycopg2.Error when the connection cannot be opened.
    """
    if db_disabled():
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> in-memory store")
        yield InMemoryStore()
        return

    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False
    try:
        yield PgRecordStore(conn)
    finally:
        conn.close()
