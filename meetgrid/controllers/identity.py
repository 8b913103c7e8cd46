import logging

from fastapi import APIRouter

from meetgrid.config import get_settings
from meetgrid.dependencies import Identity
from meetgrid.models.scheduling import NameRequest, NameResponse, RecentEvent

logger = logging.getLogger("meetgrid.identity")
router = APIRouter()


@router.put("/identity/{client_id}/events/{event_id}/name")
async def remember_name(client_id: str, event_id: str, req: NameRequest, identity: Identity) -> NameResponse:
    await identity.remember_name(client_id, event_id, req.name)
    return NameResponse(client_id=client_id, event_id=event_id, name=req.name)


@router.get("/identity/{client_id}/events/{event_id}/name")
async def recall_name(client_id: str, event_id: str, identity: Identity) -> NameResponse:
    name = await identity.recall_name(client_id, event_id)
    return NameResponse(client_id=client_id, event_id=event_id, name=name)


@router.get("/identity/{client_id}/history")
async def get_history(client_id: str, identity: Identity) -> list[RecentEvent]:
    retention = get_settings().scheduling.history_retention_days
    items = await identity.recent(client_id, retention)
    history = []
    for item in items:
        try:
            history.append(RecentEvent(**item))
        except ValueError:
            logger.warning("Skipping malformed history entry for client %s", client_id)
    return history
