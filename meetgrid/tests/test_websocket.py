import asyncio
import json
from contextlib import asynccontextmanager

import pytest
from starlette.websockets import WebSocketDisconnect

from meetgrid import state
from meetgrid.events import make_change
from meetgrid.feed import EventSnapshot, PollingChangeFeed


class ScriptedFeed:
    """Yields the given changes, then stays open until cancelled."""

    def __init__(self, store, changes):
        self.store = store
        self.changes = changes

    @asynccontextmanager
    async def watch(self, event_id):
        snapshot = await EventSnapshot.load(self.store, event_id)
        yield snapshot, self._stream()

    async def _stream(self):
        for change in self.changes:
            yield change
        await asyncio.Event().wait()


def test_snapshot_then_changes_with_best_slots(client, make_event):
    created = make_event()
    event_id = created["event"]["id"]
    window = created["windows"][0]
    objection = {
        "id": "o1",
        "window_id": window["id"],
        "participant_name": "Alice",
        "ng_slots": ["10:00"],
        "created_at": "2026-01-15T00:00:00+00:00",
        "updated_at": None,
    }
    state.feed = ScriptedFeed(
        state.store,
        [
            make_change("other", "objections", "insert", objection),
            make_change(event_id, "objections", "insert", objection),
        ],
    )

    with client.websocket_connect(f"/ws/events/{event_id}") as ws:
        snapshot = json.loads(ws.receive_text())
        assert snapshot["type"] == "snapshot"
        assert [w["id"] for w in snapshot["windows"]] == [w["id"] for w in created["windows"]]
        assert snapshot["objections"] == []
        assert snapshot["best_slots"] == []

        update = json.loads(ws.receive_text())
        assert update["type"] == "change"
        assert update["change"]["event_id"] == event_id
        assert [s["slot"] for s in update["best_slots"]] == ["10:30", "11:00", "11:30"]


def test_write_right_after_snapshot_is_forwarded(client, make_event):
    created = make_event()
    event_id = created["event"]["id"]
    window_id = created["windows"][0]["id"]
    state.feed = PollingChangeFeed(state.store, interval=0.01)

    with client.websocket_connect(f"/ws/events/{event_id}") as ws:
        assert json.loads(ws.receive_text())["objections"] == []

        resp = client.put(
            f"/sched/events/{event_id}/windows/{window_id}/objections",
            json={"participant_name": "Alice", "ng_slots": ["10:00"]},
        )
        assert resp.status_code == 201

        update = json.loads(ws.receive_text())
        assert update["type"] == "change"
        assert update["change"]["table"] == "objections"
        assert update["change"]["record"]["participant_name"] == "Alice"


def test_unknown_event_closes(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/events/missing") as ws:
            ws.receive_text()
    assert exc_info.value.code == 4404
