"""Application startup and shutdown.

Two switches pick the collaborators:

- ``ENABLE_DB``: Postgres store (migrations run on startup) or the in-memory
  demo store.
- ``ENABLE_REALTIME``: Redis client, bus, push feed and Redis-backed identity
  store; otherwise a polling feed and an in-memory identity store.
"""

import logging
from dataclasses import dataclass

import redis.asyncio as redis
from redis.asyncio import BlockingConnectionPool as RedisConnectionPool

from meetgrid import db, state
from meetgrid.bus import EventBus
from meetgrid.config import get_settings
from meetgrid.feed import ChangeFeed, PollingChangeFeed, RedisChangeFeed
from meetgrid.identity import IdentityStore, MemoryKeyValueStore, RedisKeyValueStore
from meetgrid.stores import MemoryStore, PostgresStore, SchedulingStore

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    """Container for resources initialized during lifespan."""

    redis_client: redis.Redis | None = None
    event_bus: EventBus | None = None
    store: SchedulingStore | None = None
    feed: ChangeFeed | None = None
    identity: IdentityStore | None = None
    db_enabled: bool = False


async def init_redis() -> redis.Redis:
    settings = get_settings()
    redis_pool = RedisConnectionPool(
        host=settings.redis.host,
        port=settings.redis.port,
        password=settings.redis.password if settings.redis.password else None,
        max_connections=settings.redis.max_connections,
        timeout=settings.redis.pool_timeout_sec,
        health_check_interval=settings.redis.health_check_interval,
        socket_timeout=settings.redis.socket_timeout,
        socket_connect_timeout=settings.redis.socket_connect_timeout,
        decode_responses=True,
    )
    candidate_client = redis.Redis(connection_pool=redis_pool, decode_responses=True)
    if hasattr(candidate_client, "__await__"):
        return await candidate_client
    return candidate_client


async def init_store() -> tuple[SchedulingStore, bool]:
    """Postgres store when enabled and reachable, else the demo store."""
    if get_settings().features.db:
        try:
            await db.init_pool()
            return PostgresStore(), True
        except Exception as e:
            logger.warning("Failed to initialize database, using in-memory store: %s", e)
    else:
        logger.info("ENABLE_DB off, using in-memory store")
    return MemoryStore(), False


async def setup_resources() -> LifespanResources:
    settings = get_settings()
    resources = LifespanResources()

    resources.store, resources.db_enabled = await init_store()

    if settings.features.realtime:
        resources.redis_client = await init_redis()
        resources.event_bus = EventBus(resources.redis_client)
        resources.feed = RedisChangeFeed(resources.redis_client, resources.store)
        kv = RedisKeyValueStore(resources.redis_client)
    else:
        resources.feed = PollingChangeFeed(resources.store, settings.scheduling.poll_interval_sec)
        kv = MemoryKeyValueStore()
    resources.identity = IdentityStore(kv, max_history=settings.scheduling.history_max_items)

    state.redis_client = resources.redis_client
    state.event_bus = resources.event_bus
    state.store = resources.store
    state.feed = resources.feed
    state.identity = resources.identity
    return resources


async def cleanup_resources(resources: LifespanResources) -> None:
    if resources.db_enabled:
        try:
            await db.close_pool()
        except Exception as e:
            logger.warning("Error closing database pool: %s", e)

    if resources.redis_client:
        aclose = getattr(resources.redis_client, "aclose", None)
        if callable(aclose):
            await aclose()
        else:
            close = getattr(resources.redis_client, "close", None)
            if callable(close):
                close()

    state.redis_client = None
    state.event_bus = None
    state.store = None
    state.feed = None
    state.identity = None
