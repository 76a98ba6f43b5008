# db.py
"""
Connection pool for the TutorMatch database.

Each request borrows one connection and runs in one transaction: the
`get_conn()` block commits when it exits cleanly and rolls back on any
exception, so a ledger operation that raises halfway leaves nothing behind.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from settings import settings

logger = logging.getLogger("tutormatch.db")

_pool: ThreadedConnectionPool | None = None

# applied to every borrowed connection
SESSION_SETUP = (
    "SET statement_timeout = '5000ms';",
    "SET idle_in_transaction_session_timeout = '5000ms';",
    "SET application_name = 'tutormatch_api';",
)


def init_pool() -> None:
    """Create the pool on first use. Uvicorn workers run handlers in threads, hence Threaded."""
    global _pool
    if _pool is not None:
        return
    psycopg2.extras.register_uuid()
    _pool = ThreadedConnectionPool(
        minconn=1,
        maxconn=settings.DB_POOL_MAX,
        dsn=settings.DATABASE_URL,
        connect_timeout=5,
    )
    logger.info("db_pool_ready maxconn=%s", settings.DB_POOL_MAX)


def close_pool() -> None:
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
        logger.info("db_pool_closed")


@contextmanager
def get_conn() -> Iterator["psycopg2.extensions.connection"]:
    if _pool is None:
        init_pool()

    conn = _pool.getconn()
    try:
        with conn.cursor() as cur:
            for stmt in SESSION_SETUP:
                cur.execute(stmt)

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        _pool.putconn(conn)


def ping() -> tuple[bool, Optional[str]]:
    """(ok, error class name). Never raises."""
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True, None
    except Exception as exc:
        return False, type(exc).__name__


def migration_revision() -> Optional[str]:
    """Current alembic revision, or None when the schema was never migrated."""
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass('public.alembic_version');")
                if not cur.fetchone()[0]:
                    return None
                cur.execute("SELECT version_num FROM alembic_version LIMIT 1;")
                row = cur.fetchone()
                return row[0] if row else None
    except Exception:
        return None
