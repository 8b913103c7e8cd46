"""Tests for remembered names and per-client event history."""

import json
from datetime import UTC, datetime, timedelta

import pytest

from meetgrid.identity import (
    IdentityStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    remaining_days,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


def entry(event_id, days_ago=0.0):
    return {
        "event_id": event_id,
        "title": f"Event {event_id}",
        "duration": 60,
        "created_at": (NOW - timedelta(days=days_ago)).isoformat(),
    }


class TestRemainingDays:
    def test_rounds_up(self):
        created = (NOW - timedelta(days=2, hours=1)).isoformat()
        assert remaining_days(created, 7, NOW) == 5

    def test_exact_day_boundary(self):
        assert remaining_days(NOW.isoformat(), 7, NOW) == 7

    def test_expired_is_not_positive(self):
        created = (NOW - timedelta(days=8)).isoformat()
        assert remaining_days(created, 7, NOW) <= 0

    def test_accepts_zulu_suffix(self):
        assert remaining_days("2026-01-15T12:00:00Z", 7, NOW) == 7


class TestIdentityStore:
    @pytest.mark.asyncio
    async def test_remember_and_recall_name(self):
        identity = IdentityStore(MemoryKeyValueStore())
        assert await identity.recall_name("client-1", "abc") is None
        await identity.remember_name("client-1", "abc", "Alice")
        assert await identity.recall_name("client-1", "abc") == "Alice"
        assert await identity.recall_name("client-2", "abc") is None

    @pytest.mark.asyncio
    async def test_history_newest_first_and_deduplicated(self):
        identity = IdentityStore(MemoryKeyValueStore())
        await identity.record_created("c", entry("a"))
        await identity.record_created("c", entry("b"))
        await identity.record_created("c", entry("a"))
        assert [i["event_id"] for i in await identity.history("c")] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_history_is_capped(self):
        identity = IdentityStore(MemoryKeyValueStore(), max_history=3)
        for eid in "abcde":
            await identity.record_created("c", entry(eid))
        assert [i["event_id"] for i in await identity.history("c")] == ["e", "d", "c"]

    @pytest.mark.asyncio
    async def test_recent_filters_expired_and_adds_days(self):
        identity = IdentityStore(MemoryKeyValueStore())
        await identity.record_created("c", entry("old", days_ago=10))
        await identity.record_created("c", entry("new", days_ago=1))

        recent = await identity.recent("c", 7, NOW)

        assert [(i["event_id"], i["remaining_days"]) for i in recent] == [("new", 6)]

    @pytest.mark.asyncio
    async def test_unreadable_history_is_empty(self):
        kv = MemoryKeyValueStore()
        await kv.set("c", "history", "{not json")
        assert await IdentityStore(kv).history("c") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["42", '{"event_id": "abc"}', '"abc"'])
    async def test_history_that_is_not_a_list_is_empty(self, raw):
        kv = MemoryKeyValueStore()
        await kv.set("c", "history", raw)
        identity = IdentityStore(kv)
        assert await identity.history("c") == []
        assert [i["event_id"] for i in await identity.record_created("c", entry("new"))] == ["new"]


class TestRedisKeyValueStore:
    @pytest.mark.asyncio
    async def test_values_live_in_one_hash_per_client(self, fake_redis):
        identity = IdentityStore(RedisKeyValueStore(fake_redis))
        await identity.remember_name("client-1", "abc", "Alice")
        await identity.record_created("client-1", entry("abc"))

        stored = await fake_redis.hgetall("meetgrid:client:client-1")
        assert stored["name:abc"] == "Alice"
        assert json.loads(stored["history"])[0]["event_id"] == "abc"
        assert await identity.recall_name("client-1", "abc") == "Alice"
