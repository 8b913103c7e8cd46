"""Per-client memory: the display name used on each event and the rolling
list of events the client created.

Values live in a scoped key-value store so the same code runs against Redis
or an in-memory dict.
"""

import json
import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import redis.asyncio as redis

logger = logging.getLogger("meetgrid.identity")

KEY_PREFIX = "meetgrid:client:"
HISTORY_KEY = "history"


class KeyValueStore(Protocol):
    async def get(self, scope: str, key: str) -> str | None: ...

    async def set(self, scope: str, key: str, value: str) -> None: ...


class RedisKeyValueStore:
    """One Redis hash per scope."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self.redis_client = redis_client

    @staticmethod
    def scope_key(scope: str) -> str:
        return f"{KEY_PREFIX}{scope}"

    async def get(self, scope: str, key: str) -> str | None:
        value = await self.redis_client.hget(self.scope_key(scope), key)
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, scope: str, key: str, value: str) -> None:
        await self.redis_client.hset(self.scope_key(scope), key, value)


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, str]] = {}

    async def get(self, scope: str, key: str) -> str | None:
        return self._data.get(scope, {}).get(key)

    async def set(self, scope: str, key: str, value: str) -> None:
        self._data.setdefault(scope, {})[key] = value


def remaining_days(created_at: str, retention_days: int, now: datetime | None = None) -> int:
    """Whole days (rounded up) until an event created at ``created_at`` expires."""
    now = now or datetime.now(UTC)
    created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    left = created + timedelta(days=retention_days) - now
    return math.ceil(left.total_seconds() / 86400)


class IdentityStore:
    def __init__(self, kv: KeyValueStore, max_history: int = 20) -> None:
        self.kv = kv
        self.max_history = max_history

    async def remember_name(self, client_id: str, event_id: str, name: str) -> None:
        await self.kv.set(client_id, f"name:{event_id}", name)

    async def recall_name(self, client_id: str, event_id: str) -> str | None:
        return await self.kv.get(client_id, f"name:{event_id}")

    async def history(self, client_id: str) -> list[dict[str, Any]]:
        raw = await self.kv.get(client_id, HISTORY_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable history for client %s", client_id)
            return []
        if not isinstance(items, list):
            logger.warning("Discarding non-list history for client %s", client_id)
            return []
        return [i for i in items if isinstance(i, dict) and i.get("event_id")]

    async def record_created(self, client_id: str, item: dict[str, Any]) -> list[dict[str, Any]]:
        """Put ``item`` at the head of the client's history, newest first."""
        items = [i for i in await self.history(client_id) if i["event_id"] != item["event_id"]]
        items = [item, *items][: self.max_history]
        await self.kv.set(client_id, HISTORY_KEY, json.dumps(items))
        return items

    async def recent(self, client_id: str, retention_days: int, now: datetime | None = None) -> list[dict[str, Any]]:
        """History entries still inside the retention window, with days left."""
        out = []
        for item in await self.history(client_id):
            try:
                days = remaining_days(item["created_at"], retention_days, now)
            except (KeyError, ValueError):
                continue
            if days > 0:
                out.append({**item, "remaining_days": days})
        return out
