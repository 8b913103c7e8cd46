"""Tests for the Google OAuth start and callback routes."""

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from oauthlib.oauth2 import OAuth2Error

from meetgrid.config import clear_settings_cache
from meetgrid.google_oauth import safe_return_path


@pytest.fixture
def oauth_env(monkeypatch):
    monkeypatch.setenv("CALENDAR_GOOGLE_CLIENT_ID", "client-1")
    monkeypatch.setenv("CALENDAR_GOOGLE_CLIENT_SECRET", "secret-1")
    monkeypatch.setenv("CALENDAR_APP_BASE_URL", "https://meet.test")
    clear_settings_cache()


@pytest.fixture
def mock_flow():
    with patch("meetgrid.google_oauth.Flow") as flow_class:
        yield flow_class.from_client_config.return_value


class TestSafeReturnPath:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("/events/abc", "/events/abc"),
            (None, "/"),
            ("", "/"),
            ("https://evil.test/", "/"),
            ("//evil.test", "/"),
        ],
    )
    def test_only_local_paths(self, value, expected):
        assert safe_return_path(value) == expected


class TestStartGoogleAuth:
    def test_redirects_to_consent_screen(self, client, oauth_env):
        resp = client.get("/sched/auth/google", params={"returnTo": "/events/abc"}, follow_redirects=False)

        assert resp.status_code == 307
        url = urlparse(resp.headers["location"])
        query = parse_qs(url.query)
        assert url.netloc == "accounts.google.com"
        assert query["client_id"] == ["client-1"]
        assert query["scope"] == ["https://www.googleapis.com/auth/calendar.readonly"]
        assert query["redirect_uri"] == ["http://localhost:8000/sched/auth/google/callback"]
        assert query["access_type"] == ["offline"]
        assert query["state"] == ["/events/abc"]

    def test_not_configured(self, client):
        resp = client.get("/sched/auth/google", follow_redirects=False)
        assert resp.status_code == 503
        assert resp.json()["detail"] == "Google OAuth is not configured"


class TestGoogleAuthCallback:
    def test_exchanges_code_and_returns_token(self, client, oauth_env, mock_flow):
        mock_flow.fetch_token.return_value = {
            "access_token": "at-1",
            "refresh_token": "rt-1",
            "expires_in": 3599,
        }

        resp = client.get(
            "/sched/auth/google/callback",
            params={"code": "code-1", "state": "/events/abc"},
            follow_redirects=False,
        )

        assert resp.status_code == 307
        url = urlparse(resp.headers["location"])
        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://meet.test/events/abc"
        assert parse_qs(url.query) == {
            "google_token": ["at-1"],
            "google_refresh_token": ["rt-1"],
            "google_expires_in": ["3599"],
        }
        mock_flow.fetch_token.assert_called_once_with(code="code-1")

    def test_declined_consent_returns_without_token(self, client, oauth_env, mock_flow):
        resp = client.get(
            "/sched/auth/google/callback",
            params={"error": "access_denied", "state": "/events/abc"},
            follow_redirects=False,
        )

        assert resp.status_code == 307
        assert resp.headers["location"] == "https://meet.test/events/abc"
        mock_flow.fetch_token.assert_not_called()

    def test_missing_code(self, client, oauth_env):
        resp = client.get("/sched/auth/google/callback", follow_redirects=False)
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "MISSING_CODE"

    def test_failed_exchange(self, client, oauth_env, mock_flow):
        mock_flow.fetch_token.side_effect = OAuth2Error("invalid_grant")

        resp = client.get("/sched/auth/google/callback", params={"code": "stale"}, follow_redirects=False)

        assert resp.status_code == 502
        assert resp.json()["error"] == "external_service_error"

    def test_foreign_state_returns_home(self, client, oauth_env, mock_flow):
        mock_flow.fetch_token.return_value = {"access_token": "at-1"}

        resp = client.get(
            "/sched/auth/google/callback",
            params={"code": "code-1", "state": "//evil.test/phish"},
            follow_redirects=False,
        )

        assert resp.headers["location"] == "https://meet.test/?google_token=at-1"
