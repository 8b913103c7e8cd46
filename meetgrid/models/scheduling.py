import re

from pydantic import BaseModel, Field, field_validator, model_validator

from meetgrid.core.slots import SLOT_MINUTES, parse_time

DATE_RE = re.compile(r"^\d{4}-(?:0[1-9]|1[0-2])-(?:0[1-9]|[12]\d|3[01])$")


class Event(BaseModel):
    id: str
    title: str
    description: str | None = None
    duration: int
    creator_token: str
    created_at: str


class PublicEvent(BaseModel):
    id: str
    title: str
    description: str | None = None
    duration: int
    created_at: str


class Window(BaseModel):
    id: str
    event_id: str
    date: str
    start_time: str
    end_time: str
    created_at: str


class Objection(BaseModel):
    id: str
    window_id: str
    participant_name: str
    ng_slots: list[str]
    created_at: str
    updated_at: str | None = None


def _check_time(v: str) -> str:
    minutes = parse_time(v)
    if minutes is None:
        raise ValueError(f"invalid time format: {v}")
    if minutes % SLOT_MINUTES:
        raise ValueError(f"time must be on a {SLOT_MINUTES}-minute boundary: {v}")
    return v


class WindowInput(BaseModel):
    date: str
    start_time: str
    end_time: str | None = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not DATE_RE.match(v):
            raise ValueError(f"invalid date format: {v}")
        return v

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        return _check_time(v)

    @field_validator("end_time")
    @classmethod
    def validate_end_time(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _check_time(v)

    @model_validator(mode="after")
    def validate_range(self) -> "WindowInput":
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class CreateEventRequest(BaseModel):
    title: str
    description: str | None = None
    duration: int = Field(default=60, description="Meeting length in minutes")
    windows: list[WindowInput] = []
    client_id: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 200:
            raise ValueError("title must be 1-200 characters")
        return v

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v <= 0 or v > 24 * 60 or v % SLOT_MINUTES:
            raise ValueError(f"duration must be a positive multiple of {SLOT_MINUTES} minutes")
        return v


class ReplaceWindowsRequest(BaseModel):
    windows: list[WindowInput]

    @field_validator("windows")
    @classmethod
    def validate_windows(cls, v: list[WindowInput]) -> list[WindowInput]:
        if not v:
            raise ValueError("windows must not be empty")
        return v


class ObjectionRequest(BaseModel):
    participant_name: str
    ng_slots: list[str]

    @field_validator("participant_name")
    @classmethod
    def validate_participant_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 100:
            raise ValueError("participant_name must be 1-100 characters")
        return v

    @field_validator("ng_slots")
    @classmethod
    def validate_ng_slots(cls, v: list[str]) -> list[str]:
        for s in v:
            if parse_time(s) is None:
                raise ValueError(f"invalid slot format: {s}")
        return sorted(set(v))


class WindowWithObjections(Window):
    objections: list[Objection] = []


class EventResponse(BaseModel):
    event: PublicEvent
    windows: list[WindowWithObjections]
    participants: list[str]


class CellResponse(BaseModel):
    window_id: str
    applicable: bool
    ng_count: int = 0
    ok_count: int = 0
    respondent_count: int = 0
    ng_participants: list[str] = []
    ok_participants: list[str] = []
    bucket: str
    all_clear: bool = False


class HeatmapRowResponse(BaseModel):
    slot: str
    end_time: str
    on_the_hour: bool
    cells: list[CellResponse]


class HeatmapResponse(BaseModel):
    event_id: str
    duration: int
    windows: list[Window]
    participants: list[str]
    rows: list[HeatmapRowResponse]


class BestSlot(BaseModel):
    window_id: str
    date: str
    slot: str
    end_time: str
    ok_count: int
    ng_count: int


class BestSlotsResponse(BaseModel):
    event_id: str
    participants: list[str]
    slots: list[BestSlot]


class ParticipantResponsesResponse(BaseModel):
    participant_name: str
    ng_slots: dict[str, list[str]]
    not_responded: list[str]


class RecentEvent(BaseModel):
    event_id: str
    title: str
    duration: int
    created_at: str
    remaining_days: int


class CreateEventResponse(BaseModel):
    """Returned once, to the leader; carries the creator token."""

    event: Event
    windows: list[Window]


class NameRequest(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 100:
            raise ValueError("name must be 1-100 characters")
        return v


class NameResponse(BaseModel):
    client_id: str
    event_id: str
    name: str | None = None


class BusyRequest(BaseModel):
    date: str
    access_token: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration: int | None = None
    strict: bool = False

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not DATE_RE.match(v):
            raise ValueError(f"invalid date format: {v}")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_times(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _check_time(v)


class BusyInterval(BaseModel):
    start: str
    end: str


class BusyResponse(BaseModel):
    date: str
    source: str
    busy: list[BusyInterval]
    formatted: list[str]
    busy_slots: list[str] = []
