"""Lifespan management for the FastAPI application.

Opens the database pool on startup, publishes it through ``datepoll.state``
and closes it again on shutdown.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from psycopg_pool import AsyncConnectionPool

from datepoll import db, state
from datepoll.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    """Container for resources initialized during lifespan."""

    db_pool: AsyncConnectionPool | None = None
    db_enabled: bool = False


async def init_database() -> AsyncConnectionPool | None:
    """Open the database pool if the database feature is enabled.

    Returns:
        The pool, or None when disabled or unreachable. Endpoints that need
        storage answer 503 in that case.
    """
    if not get_settings().features.db:
        logger.info("Database disabled (ENABLE_DB=0)")
        return None
    try:
        return await db.open_pool()
    except Exception as e:
        logger.warning("Failed to initialize database: %s", e)
    return None


async def setup_resources() -> LifespanResources:
    """Set up all shared resources."""
    resources = LifespanResources()
    resources.db_pool = await init_database()
    resources.db_enabled = resources.db_pool is not None
    state.db_pool = resources.db_pool
    return resources


async def cleanup_resources(resources: LifespanResources) -> None:
    """Clean up all resources on shutdown."""
    if resources.db_enabled:
        try:
            await db.close_pool(resources.db_pool)
        except Exception as e:
            logger.warning("Failed to close database pool: %s", e)
    state.db_pool = None


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    resources = await setup_resources()
    try:
        yield
    finally:
        await cleanup_resources(resources)
