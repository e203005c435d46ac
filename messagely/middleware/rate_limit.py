"""
Messagely Backend — Auth Rate Limiting Middleware
===================================================

What:  Per-IP sliding window limiter on the credential endpoints.
How:   Tracks request timestamps per IP in memory; rejects with 429 once
       the window holds `auth_rate_limit_requests` entries.
Who:   Applied to every request; only /auth/login and /auth/register
       are counted.

Algorithm: Sliding Window Counter
    1. Each IP gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If the remaining count >= limit, reject with 429
    4. Otherwise record the current timestamp and let it through

Scope:
    In-memory state is per process. Multi-worker deployments need a shared
    store (e.g. Redis) to enforce a global limit.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from messagely.config import Settings
from messagely.exceptions import RateLimitExceededError
from messagely.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window limiter for password-guessing endpoints.

    Configuration (from the app_settings passed by create_app):
        auth_rate_limit_requests: Max requests per window (default: 20)
        auth_rate_limit_window:   Window duration in seconds (default: 300)
    """

    LIMITED_PATHS = {"/auth/login", "/auth/register"}

    def __init__(self, app, app_settings: Settings, **kwargs):
        super().__init__(app, **kwargs)
        self.settings = app_settings
        self._requests: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path.rstrip("/") not in self.LIMITED_PATHS:
            return await call_next(request)

        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )

        now = time.time()
        window = self.settings.auth_rate_limit_window
        window_start = now - window

        self._requests[client_ip] = [
            ts for ts in self._requests[client_ip] if ts > window_start
        ]

        if len(self._requests[client_ip]) >= self.settings.auth_rate_limit_requests:
            oldest = self._requests[client_ip][0]
            retry_after = int(oldest + window - now) + 1

            logger.warning(
                "Auth rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(self._requests[client_ip]),
                window,
            )

            # Middleware runs outside the exception handlers, so the error
            # body is built here in the same shape main.py uses.
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "error": exc.error_code,
                    "status": exc.status_code,
                    "message": exc.message,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        self._requests[client_ip].append(now)

        # Drop IPs with nothing left in the window every 1000 recorded requests
        if sum(len(v) for v in self._requests.values()) % 1000 == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Remove IPs that have no requests within the current window."""
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
