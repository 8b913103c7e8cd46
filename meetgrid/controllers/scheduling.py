import logging

from fastapi import APIRouter, Query, Response

from meetgrid.config import get_settings
from meetgrid.core import generate_slots, group_by_window, participants_of
from meetgrid.dependencies import Identity, OptionalBus, Store
from meetgrid.errors import (
    BadRequestError,
    EventNotFoundError,
    SlotOutsideWindowError,
    WindowNotFoundError,
)
from meetgrid.events import make_change
from meetgrid.identity import remaining_days
from meetgrid.models.scheduling import (
    BestSlotsResponse,
    CreateEventRequest,
    CreateEventResponse,
    Event,
    EventResponse,
    HeatmapResponse,
    Objection,
    ObjectionRequest,
    ParticipantResponsesResponse,
    PublicEvent,
    RecentEvent,
    ReplaceWindowsRequest,
    Window,
    WindowInput,
    WindowWithObjections,
)
from meetgrid.producers.change_producer import publish_changes
from meetgrid.stores import SchedulingStore, retention_cutoff
from meetgrid.views import best_slots, heatmap_response, participant_responses

logger = logging.getLogger("meetgrid.scheduling")
router = APIRouter()


def _resolve_window(w: WindowInput) -> dict[str, str]:
    end_time = w.end_time or get_settings().scheduling.default_end_time
    if end_time <= w.start_time:
        raise BadRequestError(
            detail=f"end_time must be after start_time ({w.date} {w.start_time}-{end_time})",
            error_code="INVALID_WINDOW",
        )
    return {"date": w.date, "start_time": w.start_time, "end_time": end_time}


async def _require_event(store: SchedulingStore, event_id: str) -> Event:
    event = await store.get_event(event_id)
    if not event:
        logger.warning("Event not found: %s", event_id)
        raise EventNotFoundError(event_id)
    return event


async def _load(store: SchedulingStore, event_id: str) -> tuple[Event, list[Window], list[Objection]]:
    event = await _require_event(store, event_id)
    windows = await store.list_windows(event_id)
    objections = await store.list_objections([w.id for w in windows])
    return event, windows, objections


@router.post("/events", status_code=201)
async def create_event(
    req: CreateEventRequest, store: Store, identity: Identity, event_bus: OptionalBus
) -> CreateEventResponse:
    logger.info("POST /events title=%s windows=%d", req.title, len(req.windows))
    resolved = [_resolve_window(w) for w in req.windows]
    event = await store.create_event(req.title, req.duration, req.description)
    windows = [
        await store.add_window(event.id, w["date"], w["start_time"], w["end_time"]) for w in resolved
    ]
    await publish_changes(
        event_bus, [make_change(event.id, "windows", "insert", w.model_dump()) for w in windows]
    )
    if req.client_id:
        await identity.record_created(
            req.client_id,
            {
                "event_id": event.id,
                "title": event.title,
                "duration": event.duration,
                "created_at": event.created_at,
            },
        )
    logger.info("Created event id=%s", event.id)
    return CreateEventResponse(event=event, windows=windows)


@router.get("/events/recent")
async def list_recent_events(store: Store) -> list[RecentEvent]:
    retention = get_settings().scheduling.history_retention_days
    events = await store.list_recent_events(retention_cutoff(retention))
    recent = []
    for e in events:
        days = remaining_days(e.created_at, retention)
        if days > 0:
            recent.append(
                RecentEvent(
                    event_id=e.id,
                    title=e.title,
                    duration=e.duration,
                    created_at=e.created_at,
                    remaining_days=days,
                )
            )
    return recent


@router.get("/events/{event_id}")
async def get_event(event_id: str, store: Store) -> EventResponse:
    logger.info("GET /events/%s", event_id)
    event, windows, objections = await _load(store, event_id)
    grouped = group_by_window(objections)
    return EventResponse(
        event=PublicEvent(**event.model_dump(exclude={"creator_token"})),
        windows=[WindowWithObjections(**w.model_dump(), objections=grouped.get(w.id, [])) for w in windows],
        participants=participants_of(objections),
    )


@router.delete("/events/{event_id}", status_code=204)
async def delete_event(event_id: str, store: Store, event_bus: OptionalBus) -> Response:
    logger.info("DELETE /events/%s", event_id)
    _, windows, objections = await _load(store, event_id)
    if not await store.delete_event(event_id):
        raise EventNotFoundError(event_id)
    await publish_changes(
        event_bus,
        [make_change(event_id, "objections", "delete", o.model_dump()) for o in objections]
        + [make_change(event_id, "windows", "delete", w.model_dump()) for w in windows],
    )
    return Response(status_code=204)


@router.get("/events/{event_id}/windows")
async def list_windows(event_id: str, store: Store) -> list[Window]:
    await _require_event(store, event_id)
    return await store.list_windows(event_id)


@router.put("/events/{event_id}/windows")
async def replace_windows(
    event_id: str, req: ReplaceWindowsRequest, store: Store, event_bus: OptionalBus
) -> list[Window]:
    """Delete every window (and its objections) and create the given ones."""
    logger.info("PUT /events/%s/windows count=%d", event_id, len(req.windows))
    _, old_windows, old_objections = await _load(store, event_id)
    resolved = [_resolve_window(w) for w in req.windows]
    windows = await store.replace_windows(event_id, resolved)
    await publish_changes(
        event_bus,
        [make_change(event_id, "objections", "delete", o.model_dump()) for o in old_objections]
        + [make_change(event_id, "windows", "delete", w.model_dump()) for w in old_windows]
        + [make_change(event_id, "windows", "insert", w.model_dump()) for w in windows],
    )
    logger.info(
        "Replaced %d windows with %d on event %s (dropped %d objections)",
        len(old_windows),
        len(windows),
        event_id,
        len(old_objections),
    )
    return windows


@router.post("/events/{event_id}/windows", status_code=201)
async def add_window(event_id: str, req: WindowInput, store: Store, event_bus: OptionalBus) -> Window:
    await _require_event(store, event_id)
    w = _resolve_window(req)
    window = await store.add_window(event_id, w["date"], w["start_time"], w["end_time"])
    await publish_changes(event_bus, [make_change(event_id, "windows", "insert", window.model_dump())])
    return window


@router.put("/events/{event_id}/windows/{window_id}/objections")
async def upsert_objection(
    event_id: str,
    window_id: str,
    req: ObjectionRequest,
    response: Response,
    store: Store,
    event_bus: OptionalBus,
) -> Objection:
    logger.info(
        "PUT /events/%s/windows/%s/objections participant=%s ng=%d",
        event_id,
        window_id,
        req.participant_name,
        len(req.ng_slots),
    )
    await _require_event(store, event_id)
    window = next((w for w in await store.list_windows(event_id) if w.id == window_id), None)
    if window is None:
        raise WindowNotFoundError(event_id, window_id)
    covered = set(generate_slots(window.start_time, window.end_time))
    invalid = [s for s in req.ng_slots if s not in covered]
    if invalid:
        logger.warning("Invalid slots %s for window %s", invalid, window_id)
        raise SlotOutsideWindowError(window_id, invalid)
    objection, created = await store.upsert_objection(window_id, req.participant_name, req.ng_slots)
    await publish_changes(
        event_bus,
        [make_change(event_id, "objections", "insert" if created else "update", objection.model_dump())],
    )
    response.status_code = 201 if created else 200
    return objection


@router.get("/events/{event_id}/heatmap")
async def get_heatmap(event_id: str, store: Store) -> HeatmapResponse:
    event, windows, objections = await _load(store, event_id)
    return heatmap_response(event.id, event.duration, windows, objections, participants_of(objections))


@router.get("/events/{event_id}/best-slots")
async def get_best_slots(
    event_id: str, store: Store, limit: int | None = Query(default=None, ge=1, le=500)
) -> BestSlotsResponse:
    event, windows, objections = await _load(store, event_id)
    participants = participants_of(objections)
    slots = best_slots(
        event.duration,
        windows,
        group_by_window(objections),
        participants,
        limit or get_settings().scheduling.best_slot_limit,
    )
    return BestSlotsResponse(event_id=event.id, participants=participants, slots=slots)


@router.get("/events/{event_id}/participants/{name}")
async def get_participant_responses(event_id: str, name: str, store: Store) -> ParticipantResponsesResponse:
    _, windows, objections = await _load(store, event_id)
    return participant_responses(name, windows, objections)
