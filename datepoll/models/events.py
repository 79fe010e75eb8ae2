from datetime import datetime

from pydantic import BaseModel


class EventDate(BaseModel):
    id: int
    event_id: str
    date: str
    start_time: str
    end_time: str


class Event(BaseModel):
    id: str
    name: str
    created_at: datetime
    finalized_date_id: int | None = None
    dates: list[EventDate] = []


class Response(BaseModel):
    id: int
    respondent_id: int
    event_date_id: int
    available: bool


class Respondent(BaseModel):
    id: int
    event_id: str
    name: str
    created_at: datetime
    responses: list[Response] = []


class AvailabilitySummary(BaseModel):
    event_date_id: int
    available_count: int = 0
    unavailable_count: int = 0
    available_names: list[str] = []


class EventResults(BaseModel):
    event: Event
    respondents: list[Respondent]
    summary: dict[int, AvailabilitySummary]


class MessageResponse(BaseModel):
    message: str
