"""Dependency injection for FastAPI endpoints.

Controllers receive the store, change feed, bus and identity store through
these dependencies instead of reading ``meetgrid.state`` directly, so tests
can swap in fakes with ``app.dependency_overrides``.
"""

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends

from meetgrid import state
from meetgrid.bus import EventBus
from meetgrid.errors import ServiceUnavailableError
from meetgrid.feed import ChangeFeed
from meetgrid.identity import IdentityStore
from meetgrid.stores import SchedulingStore


def get_optional_redis() -> redis.Redis | None:
    return state.redis_client


def get_optional_event_bus() -> EventBus | None:
    return state.event_bus


def get_store() -> SchedulingStore:
    """Get the scheduling store.

    Raises:
        ServiceUnavailableError: If the store is not initialized.
    """
    if state.store is None:
        raise ServiceUnavailableError(detail="Store not initialized")
    return state.store


def get_feed() -> ChangeFeed:
    if state.feed is None:
        raise ServiceUnavailableError(detail="Change feed not initialized")
    return state.feed


def get_identity() -> IdentityStore:
    if state.identity is None:
        raise ServiceUnavailableError(detail="Identity store not initialized")
    return state.identity


OptionalBus = Annotated[EventBus | None, Depends(get_optional_event_bus)]
Store = Annotated[SchedulingStore, Depends(get_store)]
Identity = Annotated[IdentityStore, Depends(get_identity)]
