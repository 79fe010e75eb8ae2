"""Dependency injection for FastAPI endpoints.

The connection pool opened by the lifespan lives in ``datepoll.state``.
Endpoints never touch it directly; they ask for an ``EventStore`` built
around it.

Usage in controllers:
    from datepoll.dependencies import Store

    @router.get("/events/{event_id}")
    async def get_event(event_id: str, store: Store):
        return await store.get_event(event_id)
"""

from typing import Annotated

from fastapi import Depends
from psycopg_pool import AsyncConnectionPool

from datepoll import state
from datepoll.db.events import EventStore
from datepoll.errors import ServiceUnavailableError


def get_pool() -> AsyncConnectionPool:
    """Get the database connection pool.

    Raises:
        ServiceUnavailableError: If the pool was never opened.
    """
    if state.db_pool is None:
        raise ServiceUnavailableError(detail="Database not connected")
    return state.db_pool


def get_optional_pool() -> AsyncConnectionPool | None:
    return state.db_pool


def get_event_store(pool: AsyncConnectionPool = Depends(get_pool)) -> EventStore:
    return EventStore(pool)


Pool = Annotated[AsyncConnectionPool, Depends(get_pool)]
OptionalPool = Annotated[AsyncConnectionPool | None, Depends(get_optional_pool)]
Store = Annotated[EventStore, Depends(get_event_store)]
