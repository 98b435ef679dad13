"""
Menu Service Backend: Request ID Middleware
============================================

What:  Assigns an ID to every request and echoes it in ``X-Request-ID``.
How:   Reuses a client-supplied ``X-Request-ID`` or generates a short UUID,
       stores it in a ContextVar for loggers and exception handlers, and in
       ``request.state`` for route handlers.

Unhandled exceptions are turned into the 500 error body here, as the
outermost middleware, so that response carries the header as well. Errors
with a registered handler never reach this point.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."

# Coroutine-local: concurrent requests on one thread each see their own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
) -> JSONResponse:
    """The ErrorResponse body shared by every error path, tagged with the request ID."""
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attaches a correlation ID to the request context and the response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "[%s] Unhandled error on %s %s: %s",
                rid,
                request.method,
                request.url.path,
                str(e),
                exc_info=True,
            )
            response = error_response(500, "internal_server_error", INTERNAL_ERROR_MESSAGE)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
