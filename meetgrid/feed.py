"""Change streams for an event's windows and objections.

Callers open a watch through :class:`ChangeFeed` and never branch on the
transport. A watch yields a snapshot together with the changes made after
it, so nothing written while the snapshot loads is missed.
``RedisChangeFeed`` relays what writers publish on the ``sched:<event_id>``
channel; ``PollingChangeFeed`` re-reads the store on an interval and diffs
consecutive snapshots.

:class:`EventSnapshot` folds changes into the in-memory view the
aggregation core is re-run against after every change.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

import redis.asyncio as redis

from meetgrid.bus import EventBus
from meetgrid.core import sort_windows
from meetgrid.events import ChangeEvent, make_change
from meetgrid.models.scheduling import Objection, Window
from meetgrid.stores import SchedulingStore

logger = logging.getLogger("meetgrid.feed")


class ChangeFeed(Protocol):
    def watch(
        self, event_id: str
    ) -> AbstractAsyncContextManager[tuple["EventSnapshot", AsyncIterator[ChangeEvent]]]: ...


class EventSnapshot:
    """Windows and objections of one event as last seen."""

    def __init__(self, event_id: str, windows: list[Window], objections: list[Objection]) -> None:
        self.event_id = event_id
        self.windows: dict[str, Window] = {w.id: w for w in windows}
        self.objections: dict[str, Objection] = {
            o.id: o for o in objections if o.window_id in self.windows
        }

    @classmethod
    async def load(cls, store: SchedulingStore, event_id: str) -> "EventSnapshot":
        windows = await store.list_windows(event_id)
        objections = await store.list_objections([w.id for w in windows])
        return cls(event_id, windows, objections)

    def copy(self) -> "EventSnapshot":
        return EventSnapshot(self.event_id, list(self.windows.values()), list(self.objections.values()))

    def sorted_windows(self) -> list[Window]:
        return sort_windows(self.windows.values())

    def objections_by_window(self) -> dict[str, list[Objection]]:
        grouped: dict[str, list[Objection]] = {wid: [] for wid in self.windows}
        for o in self.objections.values():
            if o.window_id in grouped:
                grouped[o.window_id].append(o)
        return grouped

    def apply(self, change: ChangeEvent) -> bool:
        """Fold one change in. Returns False for changes that do not apply."""
        if change.get("event_id") != self.event_id:
            return False
        record = change.get("record") or {}
        try:
            if change["table"] == "windows":
                return self._apply_window(change["type"], record)
            if change["table"] == "objections":
                return self._apply_objection(change["type"], record)
        except (KeyError, ValueError) as e:
            logger.warning("Ignoring malformed change for %s: %s", self.event_id, e)
        return False

    def _apply_window(self, change_type: str, record: dict) -> bool:
        if change_type == "delete":
            window_id = record["id"]
            if self.windows.pop(window_id, None) is None:
                return False
            self.objections = {k: o for k, o in self.objections.items() if o.window_id != window_id}
            return True
        window = Window(**record)
        if change_type == "insert" and window.id in self.windows:
            return False
        self.windows[window.id] = window
        return True

    def _apply_objection(self, change_type: str, record: dict) -> bool:
        if change_type == "delete":
            return self.objections.pop(record["id"], None) is not None
        objection = Objection(**record)
        if objection.window_id not in self.windows:
            return False
        self.objections[objection.id] = objection
        return True


def diff_snapshots(before: EventSnapshot, after: EventSnapshot) -> list[ChangeEvent]:
    """Changes turning ``before`` into ``after``.

    Objection deletes come before window deletes, inserts of windows before
    inserts of their objections.
    """
    event_id = after.event_id
    changes: list[ChangeEvent] = []
    for oid, o in before.objections.items():
        if oid not in after.objections:
            changes.append(make_change(event_id, "objections", "delete", o.model_dump()))
    for wid, w in before.windows.items():
        if wid not in after.windows:
            changes.append(make_change(event_id, "windows", "delete", w.model_dump()))
    for w in after.sorted_windows():
        if w.id not in before.windows:
            changes.append(make_change(event_id, "windows", "insert", w.model_dump()))
    for oid, o in after.objections.items():
        previous = before.objections.get(oid)
        if previous is None:
            changes.append(make_change(event_id, "objections", "insert", o.model_dump()))
        elif previous.ng_slots != o.ng_slots:
            changes.append(make_change(event_id, "objections", "update", o.model_dump()))
    return changes


class RedisChangeFeed:
    """Push feed relaying changes published on the event's Redis channel."""

    def __init__(self, redis_client: redis.Redis, store: SchedulingStore) -> None:
        self.redis_client = redis_client
        self.store = store

    @asynccontextmanager
    async def watch(self, event_id: str) -> AsyncIterator[tuple[EventSnapshot, AsyncIterator[ChangeEvent]]]:
        channel = EventBus.event_channel(event_id)
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(channel)
        changes = self._relay(pubsub, channel)
        try:
            # subscribe confirmation; anything published after it is delivered
            await pubsub.get_message(timeout=1.0)
            snapshot = await EventSnapshot.load(self.store, event_id)
            yield snapshot, changes
        finally:
            await changes.aclose()
            await pubsub.unsubscribe(channel)
            if hasattr(pubsub, "aclose"):
                await pubsub.aclose()
            else:
                await pubsub.close()

    async def _relay(self, pubsub, channel: str) -> AsyncIterator[ChangeEvent]:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                change = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("Dropping undecodable message on %s", channel)
                continue
            yield change


class PollingChangeFeed:
    """Fallback feed re-reading the store every ``interval`` seconds."""

    def __init__(self, store: SchedulingStore, interval: float = 0.5) -> None:
        self.store = store
        self.interval = interval

    @asynccontextmanager
    async def watch(self, event_id: str) -> AsyncIterator[tuple[EventSnapshot, AsyncIterator[ChangeEvent]]]:
        snapshot = await EventSnapshot.load(self.store, event_id)
        changes = self._poll(snapshot.copy())
        try:
            yield snapshot, changes
        finally:
            await changes.aclose()

    async def _poll(self, previous: EventSnapshot) -> AsyncIterator[ChangeEvent]:
        while True:
            await asyncio.sleep(self.interval)
            current = await EventSnapshot.load(self.store, previous.event_id)
            for change in diff_snapshots(previous, current):
                yield change
            previous = current
