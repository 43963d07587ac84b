"""Request context middleware with start/end request logging."""

from __future__ import annotations

import logging
import re
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from supabase_devlogs.middleware.context import (
    RequestContext,
    generate_request_id,
    reset_request_context,
    set_request_context,
)

logger = logging.getLogger(__name__)

# Control character pattern for log injection prevention.
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")

REQUEST_ID_HEADER = "x-request-id"


def _sanitize_log_value(value: str) -> str:
    """Replace control characters (newlines, tabs, etc.) to prevent log injection."""
    return _CONTROL_CHAR_RE.sub("_", value)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of each request.

    Dev log records captured while handling the request carry the id, and the
    id is echoed back in the ``x-request-id`` response header.
    """

    # Paths exempt from request logging; the viewer polls these continuously.
    QUIET_PATHS = frozenset({"/health", "/api/dev-logs", "/api/auth-logs"})

    def __init__(self, app: Callable) -> None:
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _sanitize_log_value(
            request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        )
        token = set_request_context(RequestContext(request_id=request_id))
        quiet = request.url.path in self.QUIET_PATHS
        safe_path = _sanitize_log_value(request.url.path)
        start_time = time.perf_counter()

        if not quiet:
            logger.info(
                "REQUEST_START request_id=%s method=%s path=%s",
                request_id,
                request.method,
                safe_path,
            )

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            reset_request_context(token)
            if not quiet:
                duration_ms = int((time.perf_counter() - start_time) * 1000)
                logger.info(
                    "REQUEST_END request_id=%s method=%s path=%s status=%s duration_ms=%d",
                    request_id,
                    request.method,
                    safe_path,
                    status_code,
                    duration_ms,
                )
