import redis.asyncio as redis

from meetgrid.bus import EventBus
from meetgrid.feed import ChangeFeed
from meetgrid.identity import IdentityStore
from meetgrid.stores import SchedulingStore

# Global runtime state initialized in meetgrid.lifespan
redis_client: redis.Redis | None = None
event_bus: EventBus | None = None
store: SchedulingStore | None = None
feed: ChangeFeed | None = None
identity: IdentityStore | None = None
