"""
Menu Service Backend: Request Logging Middleware
=================================================

What:  One access log line per request: method, path, status, duration,
       request ID and client IP.
How:   Level follows the status class (5xx ERROR, 4xx WARNING, else INFO).
When:  Runs inside RequestIDMiddleware so the request ID is already set.
       A request that raises is logged as 500 and the error re-raised.

Request bodies are never logged: uploads may be several megabytes of image
data.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from menu_service.middleware.request_id import request_id_var

logger = logging.getLogger("menu_service.access")

# Polled by container health checks; logging them drowns the useful lines
QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs structured information about each HTTP request and response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        if path in QUIET_PATHS:
            return await call_next(request)

        try:
            response = await call_next(request)
        except Exception:
            # RequestIDMiddleware turns this into the 500 body
            self._log(method, path, 500, start_time, rid, client_ip)
            raise

        self._log(method, path, response.status_code, start_time, rid, client_ip)
        return response

    @staticmethod
    def _log(method: str, path: str, status: int, start_time: float, rid: str, client_ip: str) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
