"""Error types for the scheduling API.

Controllers and stores raise these; ``register_exception_handlers`` turns
them into JSON bodies of the shape::

    {"error": "not_found", "detail": "Event not found", "context": {"event_id": "..."}}

The aggregation core never raises; everything here belongs to the service
layer around it.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str
    detail: str | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None


class APIError(Exception):
    """Base class for API errors."""

    status_code: int = 500
    error: str = "internal_error"
    detail: str = "An unexpected error occurred"

    def __init__(
        self,
        detail: str | None = None,
        error_code: str | None = None,
        **context: Any,
    ) -> None:
        self.detail = detail or self.__class__.detail
        self.error_code = error_code
        self.context = context if context else None
        super().__init__(self.detail)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.error,
            detail=self.detail,
            error_code=self.error_code,
            context=self.context,
        )


class NotFoundError(APIError):
    status_code = 404
    error = "not_found"
    detail = "Resource not found"


class EventNotFoundError(NotFoundError):
    detail = "Event not found"

    def __init__(self, event_id: str) -> None:
        super().__init__(error_code="EVENT_NOT_FOUND", event_id=event_id)


class WindowNotFoundError(NotFoundError):
    detail = "Window not found"

    def __init__(self, event_id: str, window_id: str) -> None:
        super().__init__(error_code="WINDOW_NOT_FOUND", event_id=event_id, window_id=window_id)


class BadRequestError(APIError):
    status_code = 400
    error = "bad_request"
    detail = "Invalid request"


class SlotOutsideWindowError(BadRequestError):
    """An objection named slots the window does not cover."""

    detail = "Slot outside window"

    def __init__(self, window_id: str, slots: list[str]) -> None:
        super().__init__(
            detail=f"Invalid slot for window: {', '.join(slots)}",
            error_code="SLOT_OUTSIDE_WINDOW",
            window_id=window_id,
            slots=slots,
        )


class ServiceUnavailableError(APIError):
    status_code = 503
    error = "service_unavailable"
    detail = "Service temporarily unavailable"


class DatabaseError(APIError):
    status_code = 500
    error = "database_error"
    detail = "Database operation failed"


class ExternalServiceError(APIError):
    """A calendar source answered with an error."""

    status_code = 502
    error = "external_service_error"
    detail = "External service request failed"


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning(
        "API error: %s (status=%d, path=%s)",
        exc.detail,
        exc.status_code,
        request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
