"""Google OAuth for the read-only calendar scope.

The access token obtained here is what ``GoogleFreeBusySource`` sends as a
bearer token. Tokens are handed back to the frontend, never stored.
"""

from typing import Any
from urllib.parse import urlencode

from google_auth_oauthlib.flow import Flow

from meetgrid.config import CalendarSettings

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def safe_return_path(value: str | None) -> str:
    """Only same-site absolute paths; anything else returns to ``/``."""
    if not value or not value.startswith("/") or value.startswith("//"):
        return "/"
    return value


def build_flow(settings: CalendarSettings) -> Flow:
    return Flow.from_client_config(
        {
            "web": {
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [settings.google_redirect_uri],
            }
        },
        scopes=SCOPES,
        redirect_uri=settings.google_redirect_uri,
        autogenerate_code_verifier=False,
    )


def authorization_url(settings: CalendarSettings, return_to: str | None) -> str:
    """Consent URL; ``state`` carries the path to return to afterwards."""
    url, _state = build_flow(settings).authorization_url(
        access_type="offline",
        prompt="consent",
        state=safe_return_path(return_to),
    )
    return url


def exchange_code(settings: CalendarSettings, code: str) -> dict[str, Any]:
    """Trade an authorization code for a token dict. Blocking."""
    return build_flow(settings).fetch_token(code=code)


def frontend_redirect(settings: CalendarSettings, return_to: str | None, params: dict[str, Any] | None = None) -> str:
    url = settings.app_base_url.rstrip("/") + safe_return_path(return_to)
    if params:
        sep = "&" if "?" in url else "?"
        url += sep + urlencode(params)
    return url
