# db.py
"""
psycopg2 pool for the Postgres payout and session stores.

Only touched when DATABASE_URL is set; the in-memory stores never import it.
The engine runs inside FastAPI's threadpool, so the pool is thread-safe.
"""
from contextlib import contextmanager

import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from settings import settings

_pool: ThreadedConnectionPool | None = None

# per-connection limits applied on checkout; a settlement CAS is a single row
_SESSION_SETUP = (
    "SET statement_timeout = '5000ms';",
    "SET idle_in_transaction_session_timeout = '5000ms';",
    "SET application_name = 'creatorpay_api';",
)


def init_pool() -> ThreadedConnectionPool:
    global _pool
    if _pool is None:
        psycopg2.extras.register_uuid()
        _pool = ThreadedConnectionPool(
            minconn=1,
            maxconn=10,
            dsn=settings.DATABASE_URL,
            connect_timeout=5,
        )
    return _pool


def close_pool() -> None:
    """Called from app shutdown."""
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn():
    """
    One transaction per block: commit when the block exits cleanly,
    roll back and re-raise otherwise. The connection always goes back to the pool.
    """
    pool = init_pool()
    conn = pool.getconn()
    try:
        with conn.cursor() as cur:
            for stmt in _SESSION_SETUP:
                cur.execute(stmt)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)
