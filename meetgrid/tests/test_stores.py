"""Tests for the in-memory store and the Postgres store wrapper."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from meetgrid.errors import DatabaseError
from meetgrid.models.scheduling import Event, Objection, Window
from meetgrid.stores import MemoryStore, PostgresStore, retention_cutoff


@pytest.fixture
def store():
    return MemoryStore()


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_create_and_get_event(self, store):
        event = await store.create_event("Sync", 60, "weekly")
        assert len(event.id) == 10
        assert event.creator_token
        assert await store.get_event(event.id) == event
        assert await store.get_event("missing") is None

    @pytest.mark.asyncio
    async def test_windows_listed_by_date_then_start(self, store):
        event = await store.create_event("Sync", 60)
        await store.add_window(event.id, "2026-01-16", "09:00", "10:00")
        await store.add_window(event.id, "2026-01-15", "14:00", "15:00")
        await store.add_window(event.id, "2026-01-15", "09:00", "10:00")
        windows = await store.list_windows(event.id)
        assert [(w.date, w.start_time) for w in windows] == [
            ("2026-01-15", "09:00"),
            ("2026-01-15", "14:00"),
            ("2026-01-16", "09:00"),
        ]

    @pytest.mark.asyncio
    async def test_upsert_objection_is_keyed_by_window_and_name(self, store):
        event = await store.create_event("Sync", 60)
        window = await store.add_window(event.id, "2026-01-15", "09:00", "11:00")

        first, created = await store.upsert_objection(window.id, "Alice", ["09:00"])
        assert created is True
        assert first.updated_at is None

        second, created = await store.upsert_objection(window.id, "Alice", [])
        assert created is False
        assert second.id == first.id
        assert second.ng_slots == []
        assert second.updated_at is not None

        assert await store.list_objections([window.id]) == [second]

    @pytest.mark.asyncio
    async def test_replace_windows_drops_objections(self, store):
        event = await store.create_event("Sync", 60)
        window = await store.add_window(event.id, "2026-01-15", "09:00", "11:00")
        await store.upsert_objection(window.id, "Alice", ["09:00"])

        replaced = await store.replace_windows(
            event.id, [{"date": "2026-01-20", "start_time": "10:00", "end_time": "12:00"}]
        )

        assert len(replaced) == 1
        assert replaced[0].id != window.id
        assert await store.list_objections([window.id]) == []

    @pytest.mark.asyncio
    async def test_delete_event_cascades(self, store):
        event = await store.create_event("Sync", 60)
        window = await store.add_window(event.id, "2026-01-15", "09:00", "11:00")
        await store.upsert_objection(window.id, "Alice", [])

        assert await store.delete_event(event.id) is True
        assert await store.delete_event(event.id) is False
        assert store.windows == {}
        assert store.objections == {}

    @pytest.mark.asyncio
    async def test_list_recent_events(self, store):
        old = await store.create_event("Old", 60)
        store.events[old.id] = old.model_copy(
            update={"created_at": (datetime.now(UTC) - timedelta(days=30)).isoformat()}
        )
        new = await store.create_event("New", 60)

        recent = await store.list_recent_events(retention_cutoff(7))

        assert [e.id for e in recent] == [new.id]


def test_retention_cutoff():
    now = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
    assert retention_cutoff(7, now) == datetime(2026, 1, 8, 12, 0, tzinfo=UTC)


class TestPostgresStore:
    @pytest.mark.asyncio
    async def test_maps_rows_to_models(self):
        row = {
            "id": "abc",
            "title": "Sync",
            "description": None,
            "duration": 60,
            "creator_token": "tok",
            "created_at": "2026-01-15T00:00:00+00:00",
        }
        with patch("meetgrid.stores.db") as mock_db:
            mock_db.sched_get_event = AsyncMock(return_value=row)
            event = await PostgresStore().get_event("abc")
        assert isinstance(event, Event)
        assert event.creator_token == "tok"

    @pytest.mark.asyncio
    async def test_missing_event_is_none(self):
        with patch("meetgrid.stores.db") as mock_db:
            mock_db.sched_get_event = AsyncMock(return_value=None)
            assert await PostgresStore().get_event("abc") is None

    @pytest.mark.asyncio
    async def test_windows_and_objections(self):
        window_row = {
            "id": "w1",
            "event_id": "abc",
            "date": "2026-01-15",
            "start_time": "09:00",
            "end_time": "11:00",
            "created_at": "2026-01-15T00:00:00+00:00",
        }
        objection_row = {
            "id": "o1",
            "window_id": "w1",
            "participant_name": "Alice",
            "ng_slots": ["09:00"],
            "created_at": "2026-01-15T00:00:00+00:00",
            "updated_at": None,
        }
        with patch("meetgrid.stores.db") as mock_db:
            mock_db.sched_list_windows = AsyncMock(return_value=[window_row])
            mock_db.sched_upsert_objection = AsyncMock(return_value=(objection_row, True))
            store = PostgresStore()
            windows = await store.list_windows("abc")
            objection, created = await store.upsert_objection("w1", "Alice", ["09:00"])

        assert windows == [Window(**window_row)]
        assert objection == Objection(**objection_row)
        assert created is True

    @pytest.mark.asyncio
    async def test_failures_become_database_errors(self):
        with patch("meetgrid.stores.db") as mock_db:
            mock_db.sched_list_windows = AsyncMock(side_effect=RuntimeError("connection refused"))
            with pytest.raises(DatabaseError) as exc_info:
                await PostgresStore().list_windows("abc")
        assert "sched_list_windows" in exc_info.value.detail
