import asyncio
import logging
from typing import Annotated

import requests
from fastapi import APIRouter, Query
from fastapi.responses import RedirectResponse
from oauthlib.oauth2 import OAuth2Error

from meetgrid import google_oauth
from meetgrid.config import CalendarSettings, get_settings
from meetgrid.errors import BadRequestError, ExternalServiceError, ServiceUnavailableError

logger = logging.getLogger("meetgrid.calendar")
router = APIRouter()


def _configured_settings() -> CalendarSettings:
    settings = get_settings().calendar
    if not settings.google_oauth_configured:
        raise ServiceUnavailableError(detail="Google OAuth is not configured")
    return settings


@router.get("/auth/google")
async def start_google_auth(
    return_to: Annotated[str | None, Query(alias="returnTo")] = None,
) -> RedirectResponse:
    """Send the browser to Google's consent screen for read-only calendar access."""
    settings = _configured_settings()
    return RedirectResponse(google_oauth.authorization_url(settings, return_to))


@router.get("/auth/google/callback")
async def google_auth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Exchange the code and return to the frontend with the token in the query.

    A cancelled consent returns to the same page without a token.
    """
    if error:
        logger.info("Google OAuth declined: %s", error)
        return RedirectResponse(google_oauth.frontend_redirect(get_settings().calendar, state))
    if not code:
        raise BadRequestError(detail="No authorization code provided", error_code="MISSING_CODE")
    settings = _configured_settings()

    try:
        token = await asyncio.to_thread(google_oauth.exchange_code, settings, code)
    except (OAuth2Error, requests.RequestException) as e:
        logger.warning("Google token exchange failed: %s", e)
        raise ExternalServiceError(detail="Failed to exchange authorization code") from e

    params = {"google_token": token["access_token"]}
    if token.get("refresh_token"):
        params["google_refresh_token"] = token["refresh_token"]
    if token.get("expires_in") is not None:
        params["google_expires_in"] = token["expires_in"]
    return RedirectResponse(google_oauth.frontend_redirect(settings, state, params))
