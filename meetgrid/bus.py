"""
Change bus for scheduling events, backed by Redis pub/sub.
"""
import json
from typing import Final

import redis.asyncio as redis

from meetgrid.events import ChangeEvent

CHANNEL_EVENT_PREFIX: Final[str] = "sched:"


class EventBus:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    @staticmethod
    def event_channel(event_id: str) -> str:
        return f"{CHANNEL_EVENT_PREFIX}{event_id}"

    async def publish_change(self, change: ChangeEvent) -> None:
        await self.redis_client.publish(self.event_channel(change["event_id"]), json.dumps(change))
