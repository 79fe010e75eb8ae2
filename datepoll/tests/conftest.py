import os
import sys
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import psycopg
import pytest
from fastapi.testclient import TestClient

import datepoll.main as main
from datepoll import db as datepoll_db
from datepoll.db.events import EventStore
from datepoll.dependencies import get_event_store


def _normalize(sql: str) -> str:
    return " ".join(sql.split())


class FakeCursor:
    """Just enough of psycopg's AsyncCursor for the store."""

    def __init__(self, rows=None, conn=None):
        self.rows = list(rows or [])
        self._conn = conn
        self._index = 0

    async def fetchone(self):
        return self.rows[0] if self.rows else None

    async def fetchall(self):
        return list(self.rows)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._index >= len(self.rows):
            raise StopAsyncIteration
        row = self.rows[self._index]
        self._index += 1
        return row

    async def executemany(self, sql, params_seq):
        await self._conn._record(sql, list(params_seq), many=True)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class FakeConnection:
    """Scripted async connection.

    ``script`` maps an SQL fragment to a queue of row lists; each statement
    containing the fragment pops the next entry. Statements that match no
    fragment return no rows. ``fail_on`` makes any statement containing that
    fragment raise a driver error.
    """

    def __init__(self, script=None, fail_on=None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.fail_on = fail_on
        self.statements: list[tuple[str, object]] = []
        self.tx_log: list[str] = []
        self.autocommit = False

    async def _record(self, sql, params, many=False):
        text = _normalize(sql)
        self.statements.append((text, params))
        if self.fail_on and self.fail_on in text:
            raise psycopg.OperationalError(f"simulated failure on: {self.fail_on}")
        return text

    async def execute(self, sql, params=None):
        text = await self._record(sql, params)
        for fragment, queue in self.script.items():
            if fragment in text:
                return FakeCursor(queue.pop(0) if queue else [], conn=self)
        return FakeCursor([], conn=self)

    def cursor(self):
        return FakeCursor(conn=self)

    async def set_autocommit(self, value):
        self.autocommit = value

    @asynccontextmanager
    async def transaction(self):
        self.tx_log.append("BEGIN")
        try:
            yield
        except BaseException:
            self.tx_log.append("ROLLBACK")
            raise
        self.tx_log.append("COMMIT")

    def sql(self, fragment: str) -> list[tuple[str, object]]:
        """Statements run so far that contain ``fragment``."""
        return [(s, p) for s, p in self.statements if fragment in s]


class FakePool:
    def __init__(self, conn: FakeConnection | None = None):
        self.conn = conn or FakeConnection()

    @asynccontextmanager
    async def connection(self):
        yield self.conn

    def get_stats(self):
        return {
            "pool_size": 2,
            "pool_available": 2,
            "requests_waiting": 0,
            "pool_min": 2,
            "pool_max": 10,
        }


@pytest.fixture
def fake_pool():
    return FakePool()


@pytest.fixture
def client(monkeypatch, fake_pool):
    monkeypatch.setattr(datepoll_db, "open_pool", AsyncMock(return_value=fake_pool))
    monkeypatch.setattr(datepoll_db, "close_pool", AsyncMock())

    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def store(client):
    mock_store = AsyncMock(spec=EventStore)
    main.app.dependency_overrides[get_event_store] = lambda: mock_store
    yield mock_store
    main.app.dependency_overrides.pop(get_event_store, None)
