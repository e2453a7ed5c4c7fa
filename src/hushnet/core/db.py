# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Database connection management for the registry.

Config via DATABASE_URL or HUSHNET_DB_* environment variables.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from psycopg2 import pool as psycopg2_pool
from psycopg2.extras import RealDictCursor

from .exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent.parent / "schema.sql"

# Connection pool (lazy init, thread-safe)
_pool: psycopg2_pool.ThreadedConnectionPool | None = None
_pool_lock = threading.Lock()


def _get_pool() -> psycopg2_pool.ThreadedConnectionPool:
    """Get or create the connection pool."""
    from .config import get_config

    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                config = get_config()
                try:
                    _pool = psycopg2_pool.ThreadedConnectionPool(
                        **config.pool_config,
                        **config.connection_params,
                    )
                except psycopg2.OperationalError as e:
                    logger.error("Failed to create connection pool: %s", e)
                    raise StoreUnavailable(f"Database unreachable: {e}") from e
                logger.info(
                    "Connection pool initialized: min=%d, max=%d",
                    config.db_pool_min,
                    config.db_pool_max,
                )
    return _pool


def _checkout(pool: psycopg2_pool.ThreadedConnectionPool) -> Any:
    try:
        conn = pool.getconn()
    except psycopg2_pool.PoolError as e:
        raise StoreUnavailable(f"Connection pool exhausted: {e}") from e
    except psycopg2.OperationalError as e:
        raise StoreUnavailable(f"Database unreachable: {e}") from e
    if conn.closed:
        pool.putconn(conn, close=True)
        raise StoreUnavailable("Database connection closed")
    return conn


@contextmanager
def get_cursor() -> Generator[Any, None, None]:
    """Get a database cursor with auto-commit on success, rollback on error.

    Connection-level failures surface as StoreUnavailable so the API can
    answer 503 instead of 500.

    Usage:
        with get_cursor() as cur:
            cur.execute("SELECT * FROM nodes")
            rows = cur.fetchall()
    """
    pool = _get_pool()
    conn = _checkout(pool)
    broken = False
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            yield cur
        conn.commit()
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
        broken = True
        raise StoreUnavailable(f"Database connection lost: {e}") from e
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn, close=broken)


@contextmanager
def get_connection() -> Generator[Any, None, None]:
    """Get a raw connection from the pool, for schema management."""
    pool = _get_pool()
    conn = _checkout(pool)
    try:
        yield conn
    finally:
        pool.putconn(conn)


def close_pool() -> None:
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None


def init_schema(schema_path: str | Path | None = None) -> None:
    """Apply schema.sql (idempotent, every statement uses IF NOT EXISTS)."""
    path = Path(schema_path) if schema_path else SCHEMA_PATH
    schema_sql = path.read_text()

    with get_connection() as conn:
        conn.autocommit = True
        with conn.cursor() as cur:
            cur.execute(schema_sql)
    logger.info("Schema applied from %s", path)


def check_connection() -> bool:
    """Check if database connection is working."""
    try:
        with get_cursor() as cur:
            cur.execute("SELECT 1")
        return True
    except (StoreUnavailable, psycopg2.Error) as e:
        logger.warning("Database check failed: %s", e)
        return False
