"""Core database connection pool management.

The pool is created by the application lifespan and handed to whoever needs
storage (``EventStore(pool)``); nothing in this module holds it globally.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import psycopg
from psycopg_pool import AsyncConnectionPool

from datepoll.config import PostgresSettings, get_settings
from datepoll.errors import PersistenceError

_logger = logging.getLogger(__name__)


async def open_pool(settings: PostgresSettings | None = None) -> AsyncConnectionPool:
    """Open a connection pool and bring the schema up to date."""
    settings = settings or get_settings().postgres
    pool = AsyncConnectionPool(
        settings.get_dsn(),
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.pool_timeout,
        max_lifetime=settings.pool_max_lifetime,
        max_idle=settings.pool_max_idle,
        reconnect_timeout=settings.pool_reconnect_timeout,
        check=AsyncConnectionPool.check_connection,
        open=False,
    )
    await pool.open()
    _logger.info(
        f"Database connection pool initialized "
        f"(min={settings.pool_min_size}, max={settings.pool_max_size}, "
        f"timeout={settings.pool_timeout}s, max_lifetime={settings.pool_max_lifetime}s, "
        f"max_idle={settings.pool_max_idle}s, reconnect_timeout={settings.pool_reconnect_timeout}s)"
    )
    # Import here to avoid circular imports
    from datepoll.db.schema import ensure_schema

    try:
        await ensure_schema(pool)
    except Exception:
        await pool.close()
        raise
    return pool


async def close_pool(pool: AsyncConnectionPool | None) -> None:
    if pool is not None:
        await pool.close()
        _logger.info("Database connection pool closed")


@asynccontextmanager
async def connection(pool: AsyncConnectionPool) -> AsyncIterator[psycopg.AsyncConnection]:
    """Borrow an autocommit connection for reads.

    Driver errors surface as PersistenceError.
    """
    try:
        async with pool.connection() as conn:
            await conn.set_autocommit(True)
            yield conn
    except psycopg.Error as e:
        _logger.error("Database read failed: %s", e)
        raise PersistenceError() from e


@asynccontextmanager
async def transaction(pool: AsyncConnectionPool) -> AsyncIterator[psycopg.AsyncConnection]:
    """Run the enclosed statements as one atomic unit.

    Commits only when the block exits normally. Any exception, including a
    ValidationError raised by the caller mid-block, rolls everything back.
    Driver errors (the commit included) surface as PersistenceError.
    """
    try:
        async with pool.connection() as conn:
            async with conn.transaction():
                yield conn
    except psycopg.Error as e:
        _logger.error("Transaction rolled back: %s", e)
        raise PersistenceError() from e


async def check_pool(pool: AsyncConnectionPool | None) -> str:
    """Report pool health for the health endpoint."""
    if pool is None:
        return "disconnected"
    try:
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
        return "healthy"
    except Exception as e:
        _logger.warning(f"Connection health check failed: {e}")
        return "unhealthy"


def get_pool_stats(pool: AsyncConnectionPool | None) -> dict[str, object]:
    """Get current pool statistics for monitoring."""
    if pool is None:
        return {"status": "not_initialized"}
    stats = pool.get_stats()
    return {
        "status": "active",
        "size": stats["pool_size"],
        "available": stats["pool_available"],
        "waiting": stats["requests_waiting"],
        "min_size": stats["pool_min"],
        "max_size": stats["pool_max"],
    }


__all__ = [
    "check_pool",
    "close_pool",
    "connection",
    "get_pool_stats",
    "open_pool",
    "transaction",
]
