from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg_pool import ConnectionPool, PoolTimeout

from doctranslate.config.settings import Settings
from doctranslate.logging.logger import Log
from doctranslate.store.exceptions import JobStoreError

_pool: ConnectionPool | None = None


def init_pool(settings: Settings) -> None:
    """Open the shared job store pool and wait until it holds a live connection.

    Calling it again while a pool is open is a no-op.
    """
    global _pool  # noqa: PLW0603
    if _pool is not None:
        return
    conninfo = make_conninfo(
        host=settings.db_host,
        port=settings.db_port,
        dbname=settings.db_database,
        user=settings.db_username,
        password=settings.db_password,
    )
    pool = ConnectionPool(
        conninfo,
        min_size=1,
        max_size=settings.db_pool_max_size,
        name="doctranslate-jobs",
        open=True,
    )
    try:
        pool.wait(timeout=settings.db_connect_timeout_seconds)
    except PoolTimeout as exc:
        pool.close()
        raise JobStoreError(
            f"Cannot reach job database {settings.db_host}:{settings.db_port}/"
            f"{settings.db_database} within {settings.db_connect_timeout_seconds:g}s"
        ) from exc
    _pool = pool
    Log.info(f"Job database pool open ({settings.db_host}/{settings.db_database})")


def close_pool() -> None:
    global _pool  # noqa: PLW0603
    if _pool is not None:
        _pool.close()
        _pool = None


@contextmanager
def get_connection() -> Generator[psycopg.Connection[Any], None, None]:
    """Borrow a pooled connection. Caller commits."""
    if _pool is None:
        raise JobStoreError("Job database pool is not open; call init_pool() first")
    with _pool.connection() as conn:
        yield conn
