import os
import sys
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import pytest
from fastapi.testclient import TestClient
import fakeredis.aioredis as fakeredis

import meetgrid.lifespan as lifespan
import meetgrid.main as main
from meetgrid.config import clear_settings_cache


class _AwaitableRedis:
    def __init__(self, client):
        self._client = client

    def __await__(self):
        async def _coro():
            return self._client

        return _coro().__await__()


@pytest.fixture(autouse=True)
def _fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def client(monkeypatch, fake_redis):
    def fake_redis_constructor(*_args, **_kwargs):
        return _AwaitableRedis(fake_redis)

    monkeypatch.setattr(lifespan.redis, "Redis", fake_redis_constructor)

    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def make_event(client):
    """Create an event through the API and return its JSON body."""

    def _make(windows=None, **overrides):
        body = {
            "title": "Team sync",
            "duration": 60,
            "windows": windows
            if windows is not None
            else [
                {"date": "2026-01-15", "start_time": "10:00", "end_time": "12:00"},
                {"date": "2026-01-16", "start_time": "14:00", "end_time": "16:00"},
            ],
        }
        body.update(overrides)
        resp = client.post("/sched/events", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make
