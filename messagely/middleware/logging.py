"""
Messagely Backend — Access Log Middleware
===========================================

What:  One access-log line per HTTP request on the `messagely.access` logger.
How:   Times the downstream app, then reads the identity that the
       `identify` dependency left on request.state.
When:  Runs inside RequestIDMiddleware, so the request ID is available.

Line format:
    POST /messages/ 201 12.4ms user=alice [a1b2c3d4] from 10.0.0.7

Privacy:
    Only the path is logged, never the query string or the body. Both can
    carry `_token`, and the body of /auth requests carries a password.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from messagely.middleware.request_id import request_id_var

logger = logging.getLogger("messagely.access")

UNLOGGED_PATHS = {"/health"}


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def _acting_user(request: Request) -> str:
    identity = getattr(request.state, "identity", None)
    return identity.username if identity is not None else "-"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access logging; 4xx at WARNING, 5xx at ERROR."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in UNLOGGED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        client_ip = request.client.host if request.client else "unknown"
        username = _acting_user(request)
        rid = request_id_var.get("")

        logger.log(
            _level_for(response.status_code),
            "%s %s %d %.1fms user=%s [%s] from %s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            username,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "username": username,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        return response
