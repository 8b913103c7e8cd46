"""Storage collaborators for events, windows and objections.

``PostgresStore`` backs production; ``MemoryStore`` keeps everything in
process for demo mode and tests. Both return the pydantic models from
``meetgrid.models.scheduling`` and share the same semantics: windows are
listed by (date, start_time), replacing windows drops their objections, and
objections are upserted per (window, participant).
"""

import logging
import secrets
import string
import uuid
from datetime import UTC, datetime, timedelta
from typing import Protocol

from meetgrid import db
from meetgrid.errors import DatabaseError
from meetgrid.models.scheduling import Event, Objection, Window

logger = logging.getLogger("meetgrid.stores")


class SchedulingStore(Protocol):
    async def create_event(self, title: str, duration: int, description: str | None = None) -> Event: ...

    async def get_event(self, event_id: str) -> Event | None: ...

    async def delete_event(self, event_id: str) -> bool: ...

    async def list_recent_events(self, since: datetime) -> list[Event]: ...

    async def list_windows(self, event_id: str) -> list[Window]: ...

    async def add_window(self, event_id: str, date: str, start_time: str, end_time: str) -> Window: ...

    async def replace_windows(self, event_id: str, windows: list[dict[str, str]]) -> list[Window]: ...

    async def list_objections(self, window_ids: list[str]) -> list[Objection]: ...

    async def upsert_objection(
        self, window_id: str, participant_name: str, ng_slots: list[str]
    ) -> tuple[Objection, bool]: ...


def retention_cutoff(retention_days: int, now: datetime | None = None) -> datetime:
    now = now or datetime.now(UTC)
    return now - timedelta(days=retention_days)


class PostgresStore:
    """Store backed by the ``meetgrid.db`` query functions."""

    async def _call(self, name: str, *args):
        try:
            return await getattr(db, name)(*args)
        except Exception as e:
            logger.exception("Store operation %s failed", name)
            raise DatabaseError(detail=f"{name} failed: {e}") from e

    async def create_event(self, title: str, duration: int, description: str | None = None) -> Event:
        return Event(**await self._call("sched_create_event", title, duration, description))

    async def get_event(self, event_id: str) -> Event | None:
        row = await self._call("sched_get_event", event_id)
        return Event(**row) if row else None

    async def delete_event(self, event_id: str) -> bool:
        return await self._call("sched_delete_event", event_id)

    async def list_recent_events(self, since: datetime) -> list[Event]:
        return [Event(**row) for row in await self._call("sched_list_recent_events", since)]

    async def list_windows(self, event_id: str) -> list[Window]:
        return [Window(**row) for row in await self._call("sched_list_windows", event_id)]

    async def add_window(self, event_id: str, date: str, start_time: str, end_time: str) -> Window:
        window = {"date": date, "start_time": start_time, "end_time": end_time}
        return Window(**await self._call("sched_add_window", event_id, window))

    async def replace_windows(self, event_id: str, windows: list[dict[str, str]]) -> list[Window]:
        return [Window(**row) for row in await self._call("sched_replace_windows", event_id, windows)]

    async def list_objections(self, window_ids: list[str]) -> list[Objection]:
        return [Objection(**row) for row in await self._call("sched_list_objections", list(window_ids))]

    async def upsert_objection(
        self, window_id: str, participant_name: str, ng_slots: list[str]
    ) -> tuple[Objection, bool]:
        row, created = await self._call("sched_upsert_objection", window_id, participant_name, ng_slots)
        return Objection(**row), created


def _short_id(length: int = 10) -> str:
    chars = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(chars) for _ in range(length))


class MemoryStore:
    """In-process store used when no database is configured."""

    def __init__(self) -> None:
        self.events: dict[str, Event] = {}
        self.windows: dict[str, Window] = {}
        self.objections: dict[str, Objection] = {}

    async def create_event(self, title: str, duration: int, description: str | None = None) -> Event:
        event_id = _short_id()
        while event_id in self.events:
            event_id = _short_id()
        event = Event(
            id=event_id,
            title=title,
            description=description,
            duration=duration,
            creator_token=str(uuid.uuid4()),
            created_at=datetime.now(UTC).isoformat(),
        )
        self.events[event.id] = event
        return event

    async def get_event(self, event_id: str) -> Event | None:
        return self.events.get(event_id)

    async def delete_event(self, event_id: str) -> bool:
        if self.events.pop(event_id, None) is None:
            return False
        self._drop_windows(event_id)
        return True

    async def list_recent_events(self, since: datetime) -> list[Event]:
        recent = [e for e in self.events.values() if datetime.fromisoformat(e.created_at) >= since]
        return sorted(recent, key=lambda e: e.created_at, reverse=True)

    async def list_windows(self, event_id: str) -> list[Window]:
        windows = [w for w in self.windows.values() if w.event_id == event_id]
        return sorted(windows, key=lambda w: (w.date, w.start_time))

    async def add_window(self, event_id: str, date: str, start_time: str, end_time: str) -> Window:
        window = Window(
            id=str(uuid.uuid4()),
            event_id=event_id,
            date=date,
            start_time=start_time,
            end_time=end_time,
            created_at=datetime.now(UTC).isoformat(),
        )
        self.windows[window.id] = window
        return window

    async def replace_windows(self, event_id: str, windows: list[dict[str, str]]) -> list[Window]:
        self._drop_windows(event_id)
        for w in windows:
            await self.add_window(event_id, w["date"], w["start_time"], w["end_time"])
        return await self.list_windows(event_id)

    def _drop_windows(self, event_id: str) -> None:
        dropped = {wid for wid, w in self.windows.items() if w.event_id == event_id}
        for wid in dropped:
            del self.windows[wid]
        for oid in [oid for oid, o in self.objections.items() if o.window_id in dropped]:
            del self.objections[oid]

    async def list_objections(self, window_ids: list[str]) -> list[Objection]:
        wanted = set(window_ids)
        return [o for o in self.objections.values() if o.window_id in wanted]

    async def upsert_objection(
        self, window_id: str, participant_name: str, ng_slots: list[str]
    ) -> tuple[Objection, bool]:
        now = datetime.now(UTC).isoformat()
        for oid, existing in self.objections.items():
            if existing.window_id == window_id and existing.participant_name == participant_name:
                updated = existing.model_copy(update={"ng_slots": list(ng_slots), "updated_at": now})
                self.objections[oid] = updated
                return updated, False
        objection = Objection(
            id=str(uuid.uuid4()),
            window_id=window_id,
            participant_name=participant_name,
            ng_slots=list(ng_slots),
            created_at=now,
        )
        self.objections[objection.id] = objection
        return objection, True
