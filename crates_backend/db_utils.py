"""
Database Utilities
Supports both pooled (gunicorn/Flask) and non-pooled (one-off scripts) modes

Configuration:
    Call configure() with the database URL before the first connection.
    Pooling is enabled with DB_USE_POOLING=true.
"""

import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

CONNECTION_STRING: Optional[str] = None
USE_POOLING = False

pool: Optional[ConnectionPool] = None
pool_init_lock = threading.Lock()

SCHEMA_PATH = Path(__file__).resolve().parent / 'schema.sql'


def configure(database_url: str, use_pooling: bool = False):
    """
    Set the connection string and pooling mode

    Must be called before get_db_connection(). Calling it again closes any
    existing pool.
    """
    global CONNECTION_STRING, USE_POOLING

    close_connection_pool()
    CONNECTION_STRING = database_url
    USE_POOLING = use_pooling
    logger.info(f"Database configured (pooling={use_pooling})")


# ============================================================================
# POOLING MODE
# ============================================================================

# Sized for gunicorn gthread workers (see gunicorn.conf.py)
POOL_SETTINGS = {
    'min_size': 1,
    'max_size': 5,
    'timeout': 30,
    'max_waiting': 20,
    'max_lifetime': 1800,
    'max_idle': 600,
}


def _open_pool() -> ConnectionPool:
    """Open a pool and wait until its first connection is usable"""
    new_pool = ConnectionPool(
        CONNECTION_STRING,
        open=False,
        kwargs={'row_factory': dict_row, 'connect_timeout': 10, 'autocommit': False},
        **POOL_SETTINGS
    )
    try:
        new_pool.open(wait=True, timeout=POOL_SETTINGS['timeout'])
    except Exception:
        new_pool.close()
        raise
    return new_pool


def init_connection_pool(max_retries=3, retry_delay=2):
    """
    Initialize the connection pool (only used in pooling mode)

    Retries with a growing delay so a worker that boots before the
    database does not give up immediately.

    Returns:
        bool: True if successful, False otherwise
    """
    global pool

    if not USE_POOLING:
        return True

    with pool_init_lock:
        if pool is not None:
            return True

        for attempt in range(1, max_retries + 1):
            logger.info(f"Opening connection pool (attempt {attempt}/{max_retries})")
            try:
                pool = _open_pool()
            except Exception as e:
                logger.error(f"Connection pool attempt {attempt} failed: {e}")
                if attempt < max_retries:
                    time.sleep(retry_delay * (1.5 ** (attempt - 1)))
                continue

            logger.info("Connection pool ready")
            return True

        logger.error(f"Giving up on the connection pool after {max_retries} attempts")
        return False


def close_connection_pool():
    """Close the pool if one is open; safe to call more than once"""
    global pool

    with pool_init_lock:
        if pool is None:
            return
        closing, pool = pool, None

    logger.info("Closing connection pool")
    try:
        closing.close()
    except Exception as e:
        logger.error(f"Error closing connection pool: {e}")


def get_pool_stats():
    """Pool size and wait counters for /health; None when not pooling"""
    if pool is None:
        return None

    stats = pool.get_stats()
    return {key: stats.get(key, 0) for key in ('pool_size', 'pool_available', 'requests_waiting')}


# ============================================================================
# UNIFIED CONNECTION MANAGER
# ============================================================================

@contextmanager
def get_db_connection():
    """
    Get a database connection using the configured mode

    The transaction is committed when the block exits normally and rolled
    back when it raises.
    """
    if CONNECTION_STRING is None:
        raise RuntimeError("Database not configured; call db_utils.configure() first")

    if USE_POOLING:
        if pool is None and not init_connection_pool():
            raise RuntimeError("Failed to initialize connection pool")

        # pool.connection() commits on success and rolls back on error
        with pool.connection() as conn:
            yield conn
        return

    conn = psycopg.connect(CONNECTION_STRING, row_factory=dict_row, autocommit=False)
    try:
        yield conn
        conn.commit()
    except Exception:
        try:
            conn.rollback()
        except Exception as rollback_error:
            logger.error(f"Error rolling back transaction: {rollback_error}")
        raise
    finally:
        conn.close()


def ping():
    """Run a trivial query; returns server version and time"""
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT version() AS version, current_timestamp AS now")
            return cur.fetchone()


def init_schema(schema_path: Path = SCHEMA_PATH):
    """Create tables and indexes from schema.sql (idempotent)"""
    sql = Path(schema_path).read_text(encoding='utf-8')
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(sql)
    logger.info(f"Schema applied from {schema_path}")
