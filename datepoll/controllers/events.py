import re
import logging
from typing import List

from fastapi import APIRouter
from pydantic import BaseModel, Field, field_validator

from datepoll.db.events import Availability, DateOption
from datepoll.dependencies import Store
from datepoll.errors import PersistenceError
from datepoll.models.events import Event, EventResults, MessageResponse

logger = logging.getLogger("datepoll.events")
router = APIRouter(prefix="/events", tags=["events"])

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


def _clean_name(v: str, limit: int) -> str:
    v = v.strip()
    if not v or len(v) > limit:
        raise ValueError(f"name must be 1-{limit} characters")
    return v


class DateOptionRequest(BaseModel):
    date: str
    start_time: str
    end_time: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not DATE_RE.match(v):
            raise ValueError(f"invalid date format: {v}")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not TIME_RE.match(v):
            raise ValueError(f"invalid time format: {v}")
        return v


class CreateEventRequest(BaseModel):
    name: str
    dates: List[DateOptionRequest]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v, 200)

    @field_validator("dates")
    @classmethod
    def validate_dates(cls, v: List[DateOptionRequest]) -> List[DateOptionRequest]:
        if not v:
            raise ValueError("at least one date is required")
        return v


class ResponseRequest(BaseModel):
    event_date_id: int = Field(gt=0)
    available: bool


class SubmitResponseRequest(BaseModel):
    name: str
    responses: List[ResponseRequest]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v, 100)

    @field_validator("responses")
    @classmethod
    def validate_responses(cls, v: List[ResponseRequest]) -> List[ResponseRequest]:
        if not v:
            raise ValueError("at least one response is required")
        ids = [r.event_date_id for r in v]
        if len(set(ids)) != len(ids):
            raise ValueError("each event date may only be answered once")
        return v


class FinalizeRequest(BaseModel):
    event_date_id: int = Field(gt=0)


@router.post("", status_code=201, response_model=Event, response_model_exclude_none=True)
async def create_event(req: CreateEventRequest, store: Store) -> Event:
    logger.info("POST /events name=%s dates=%d", req.name, len(req.dates))
    try:
        event = await store.create_event(
            req.name,
            [DateOption(d.date, d.start_time, d.end_time) for d in req.dates],
        )
    except PersistenceError:
        logger.exception("Failed to create event")
        raise
    logger.info("Created event id=%s", event.id)
    return event


@router.get("/{event_id}", response_model=Event, response_model_exclude_none=True)
async def get_event(event_id: str, store: Store) -> Event:
    logger.info("GET /events/%s", event_id)
    return await store.get_event(event_id)


@router.post("/{event_id}/respond", status_code=201, response_model=MessageResponse)
async def submit_response(event_id: str, req: SubmitResponseRequest, store: Store) -> MessageResponse:
    logger.info("POST /events/%s/respond name=%s responses=%d", event_id, req.name, len(req.responses))
    try:
        await store.submit_response(
            event_id,
            req.name,
            [Availability(r.event_date_id, r.available) for r in req.responses],
        )
    except PersistenceError:
        logger.exception("Failed to submit response")
        raise
    return MessageResponse(message="Response submitted successfully")


@router.get("/{event_id}/results", response_model=EventResults, response_model_exclude_none=True)
async def get_event_results(event_id: str, store: Store) -> EventResults:
    logger.info("GET /events/%s/results", event_id)
    results = await store.get_event_results(event_id)
    logger.info(
        "Returning results for %s with %d respondents", event_id, len(results.respondents)
    )
    return results


@router.patch("/{event_id}/finalize", response_model=MessageResponse)
async def finalize_event(event_id: str, req: FinalizeRequest, store: Store) -> MessageResponse:
    logger.info("PATCH /events/%s/finalize event_date_id=%d", event_id, req.event_date_id)
    try:
        await store.finalize_event(event_id, req.event_date_id)
    except PersistenceError:
        logger.exception("Failed to finalize event")
        raise
    return MessageResponse(message="Event finalized successfully")
