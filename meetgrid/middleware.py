import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class HTTPLogMiddleware(BaseHTTPMiddleware):
    """Logs every request at DEBUG with status and duration."""

    def __init__(self, app, logger_name: str = "meetgrid.http"):
        super().__init__(app)
        self._logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        method, path = request.method, request.url.path
        try:
            response: Response = await call_next(request)
        except Exception as e:
            self._logger.warning("http.request error method=%s path=%s dur_ms=%d err=%r",
                                 method, path, (time.perf_counter() - start) * 1000, e)
            raise
        self._logger.debug("http.request method=%s path=%s status=%s dur_ms=%d",
                           method, path, response.status_code, (time.perf_counter() - start) * 1000)
        return response
