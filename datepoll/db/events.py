"""Event store: events, their date options, respondents and responses.

All multi-statement writes run inside a single transaction. Reads use plain
autocommit connections.
"""

import logging
import uuid
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any, NamedTuple

from psycopg_pool import AsyncConnectionPool

from datepoll.db.core import connection, transaction
from datepoll.errors import NotFoundError, PersistenceError, ValidationError
from datepoll.models.events import (
    AvailabilitySummary,
    Event,
    EventDate,
    EventResults,
    Respondent,
    Response,
)

logger = logging.getLogger(__name__)


class DateOption(NamedTuple):
    date: str
    start_time: str
    end_time: str


class Availability(NamedTuple):
    event_date_id: int
    available: bool


def parse_timestamp(value: datetime | str) -> datetime:
    """Return a UTC-aware datetime from a driver value or stored text.

    Accepts both ``2024-01-10T09:00:00.123456789Z`` and the space-separated
    ``2024-01-10 09:00:00.123+00:00``. Digits past microseconds are dropped
    and naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(value.strip())
        except ValueError as e:
            logger.error("Unparseable timestamp %r", value)
            raise PersistenceError(detail="Stored timestamp could not be read") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def summarize_availability(
    dates: Iterable[EventDate], respondents: Iterable[Respondent]
) -> dict[int, AvailabilitySummary]:
    """Roll responses up into one summary per date option.

    Respondent order is preserved in ``available_names``. A respondent with
    no response for a date is counted neither way for it.
    """
    summary = {d.id: AvailabilitySummary(event_date_id=d.id) for d in dates}
    for respondent in respondents:
        for response in respondent.responses:
            entry = summary.get(response.event_date_id)
            if entry is None:
                continue
            if response.available:
                entry.available_count += 1
                entry.available_names.append(respondent.name)
            else:
                entry.unavailable_count += 1
    return summary


def _require_name(name: str | None, what: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(detail=f"{what} is required")
    return name


class EventStore:
    """Reads and writes scheduling polls through an injected connection pool."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def create_event(self, name: str, dates: Sequence[DateOption]) -> Event:
        name = _require_name(name, "Event name")
        if not dates:
            raise ValidationError(detail="At least one date is required")
        for option in dates:
            if not (option.date and option.start_time and option.end_time):
                raise ValidationError(detail="Each date needs a date, start_time and end_time")

        event_id = str(uuid.uuid4())
        now = datetime.now(UTC)
        created: list[EventDate] = []
        async with transaction(self._pool) as conn:
            await conn.execute(
                "INSERT INTO events (id, name, created_at) VALUES (%s, %s, %s)",
                (event_id, name, now),
            )
            for option in dates:
                cur = await conn.execute(
                    """INSERT INTO event_dates (event_id, date, start_time, end_time)
                       VALUES (%s, %s, %s, %s)
                       RETURNING id""",
                    (event_id, option.date, option.start_time, option.end_time),
                )
                row = await cur.fetchone()
                created.append(
                    EventDate(
                        id=row[0],
                        event_id=event_id,
                        date=option.date,
                        start_time=option.start_time,
                        end_time=option.end_time,
                    )
                )
        logger.info("Created event id=%s dates=%d", event_id, len(created))
        return Event(id=event_id, name=name, created_at=now, dates=created)

    async def get_event(self, event_id: str) -> Event:
        async with connection(self._pool) as conn:
            return await self._fetch_event(conn, event_id)

    async def submit_response(
        self, event_id: str, name: str, responses: Sequence[Availability]
    ) -> None:
        """Replace a respondent's whole response set.

        The respondent is created on first submission. Prior responses are
        deleted before the new ones go in, all in one transaction.
        """
        name = _require_name(name, "Name")
        if not responses:
            raise ValidationError(detail="At least one response is required")
        date_ids = [r.event_date_id for r in responses]
        if len(set(date_ids)) != len(date_ids):
            raise ValidationError(detail="Each event date may only be answered once")

        async with transaction(self._pool) as conn:
            row = await (
                await conn.execute("SELECT 1 FROM events WHERE id = %s", (event_id,))
            ).fetchone()
            if not row:
                raise NotFoundError(detail="Event not found", event_id=event_id)

            cur = await conn.execute(
                "SELECT id FROM event_dates WHERE event_id = %s", (event_id,)
            )
            owned = {r[0] for r in await cur.fetchall()}
            foreign = sorted(set(date_ids) - owned)
            if foreign:
                raise ValidationError(
                    detail="event date does not belong to this event",
                    event_date_ids=foreign,
                )

            row = await (
                await conn.execute(
                    """INSERT INTO respondents (event_id, name, created_at)
                       VALUES (%s, %s, %s)
                       ON CONFLICT (event_id, name) DO UPDATE SET name = EXCLUDED.name
                       RETURNING id""",
                    (event_id, name, datetime.now(UTC)),
                )
            ).fetchone()
            respondent_id = row[0]

            await conn.execute(
                "DELETE FROM responses WHERE respondent_id = %s", (respondent_id,)
            )
            async with conn.cursor() as cur:
                await cur.executemany(
                    """INSERT INTO responses (respondent_id, event_date_id, available)
                       VALUES (%s, %s, %s)""",
                    [(respondent_id, r.event_date_id, r.available) for r in responses],
                )
        logger.info(
            "Stored %d responses for respondent id=%s on event %s",
            len(responses),
            respondent_id,
            event_id,
        )

    async def get_event_results(self, event_id: str) -> EventResults:
        async with connection(self._pool) as conn:
            event = await self._fetch_event(conn, event_id)
            respondents = await self._fetch_respondents(conn, event_id)
        return EventResults(
            event=event,
            respondents=respondents,
            summary=summarize_availability(event.dates, respondents),
        )

    async def finalize_event(self, event_id: str, event_date_id: int) -> None:
        if event_date_id is None or event_date_id <= 0:
            raise ValidationError(detail="Event date ID is required")

        async with transaction(self._pool) as conn:
            row = await (
                await conn.execute("SELECT 1 FROM events WHERE id = %s", (event_id,))
            ).fetchone()
            if not row:
                raise NotFoundError(detail="Event not found", event_id=event_id)

            row = await (
                await conn.execute(
                    "SELECT 1 FROM event_dates WHERE id = %s AND event_id = %s",
                    (event_date_id, event_id),
                )
            ).fetchone()
            if not row:
                raise ValidationError(
                    detail="event date does not belong to this event",
                    event_id=event_id,
                    event_date_id=event_date_id,
                )
            await conn.execute(
                "UPDATE events SET finalized_date_id = %s WHERE id = %s",
                (event_date_id, event_id),
            )
        logger.info("Finalized event %s on date id=%s", event_id, event_date_id)

    async def _fetch_event(self, conn: Any, event_id: str) -> Event:
        row = await (
            await conn.execute(
                "SELECT id, name, created_at, finalized_date_id FROM events WHERE id = %s",
                (event_id,),
            )
        ).fetchone()
        if not row:
            raise NotFoundError(detail="Event not found", event_id=event_id)

        cur = await conn.execute(
            """SELECT id, event_id, date, start_time, end_time
               FROM event_dates WHERE event_id = %s
               ORDER BY date, start_time, id""",
            (event_id,),
        )
        dates = [
            EventDate(id=r[0], event_id=r[1], date=r[2], start_time=r[3], end_time=r[4])
            async for r in cur
        ]
        return Event(
            id=row[0],
            name=row[1],
            created_at=parse_timestamp(row[2]),
            finalized_date_id=row[3],
            dates=dates,
        )

    async def _fetch_respondents(self, conn: Any, event_id: str) -> list[Respondent]:
        cur = await conn.execute(
            """SELECT id, event_id, name, created_at
               FROM respondents WHERE event_id = %s
               ORDER BY created_at, id""",
            (event_id,),
        )
        respondents = [
            Respondent(id=r[0], event_id=r[1], name=r[2], created_at=parse_timestamp(r[3]))
            async for r in cur
        ]
        by_id = {r.id: r for r in respondents}

        cur = await conn.execute(
            """SELECT r.id, r.respondent_id, r.event_date_id, r.available
               FROM responses r
               JOIN respondents p ON p.id = r.respondent_id
               WHERE p.event_id = %s
               ORDER BY r.respondent_id, r.id""",
            (event_id,),
        )
        async for r in cur:
            owner = by_id.get(r[1])
            if owner is not None:
                owner.responses.append(
                    Response(id=r[0], respondent_id=r[1], event_date_id=r[2], available=r[3])
                )
        return respondents
