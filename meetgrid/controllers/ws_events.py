"""Live updates for one event.

On connect the client gets a snapshot (windows, objections, best slots);
after that every change from the feed that alters the snapshot is forwarded
together with freshly ranked best slots.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from meetgrid import state
from meetgrid.config import get_settings
from meetgrid.core import participants_of
from meetgrid.feed import EventSnapshot
from meetgrid.models.scheduling import Event
from meetgrid.views import best_slots

logger = logging.getLogger("meetgrid.ws")
router = APIRouter()

HEARTBEAT_SEC = 25


def _best_slots_payload(event: Event, snapshot: EventSnapshot) -> list[dict]:
    participants = participants_of(snapshot.objections.values())
    slots = best_slots(
        event.duration,
        snapshot.sorted_windows(),
        snapshot.objections_by_window(),
        participants,
        get_settings().scheduling.best_slot_limit,
    )
    return [s.model_dump() for s in slots]


def _snapshot_message(event: Event, snapshot: EventSnapshot) -> str:
    return json.dumps(
        {
            "type": "snapshot",
            "event_id": event.id,
            "windows": [w.model_dump() for w in snapshot.sorted_windows()],
            "objections": [o.model_dump() for o in snapshot.objections.values()],
            "best_slots": _best_slots_payload(event, snapshot),
        }
    )


@router.websocket("/ws/events/{event_id}")
async def websocket_event(websocket: WebSocket, event_id: str):
    await websocket.accept()

    if state.store is None or state.feed is None:
        await websocket.close(code=1011)
        return
    event = await state.store.get_event(event_id)
    if event is None:
        await websocket.close(code=4404)
        return

    async with state.feed.watch(event_id) as (snapshot, changes):
        await websocket.send_text(_snapshot_message(event, snapshot))

        async def send_updates():
            try:
                async for change in changes:
                    if not snapshot.apply(change):
                        continue
                    logger.debug("ws.change event=%s table=%s type=%s", event_id, change["table"], change["type"])
                    await websocket.send_text(
                        json.dumps(
                            {
                                "type": "change",
                                "change": change,
                                "best_slots": _best_slots_payload(event, snapshot),
                            }
                        )
                    )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug("ws.updates stopped event=%s err=%r", event_id, e)

        async def heartbeat():
            try:
                while True:
                    await asyncio.sleep(HEARTBEAT_SEC)
                    await websocket.send_text(json.dumps({"type": "ping"}))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug("ws.heartbeat stopped event=%s err=%r", event_id, e)

        update_task = asyncio.create_task(send_updates())
        heartbeat_task = asyncio.create_task(heartbeat())

        try:
            while True:
                # clients only listen; anything they send is ignored
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            update_task.cancel()
            heartbeat_task.cancel()
            await asyncio.gather(update_task, heartbeat_task, return_exceptions=True)
