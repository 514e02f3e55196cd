"""
ChampStep Backend — Rate Limiting Middleware
==============================================

What:  Per-IP sliding-window limit on state-changing requests.
Why:   Registration, claims and recommendations are the abuse surface
       (spamming claim requests at an admin queue); directory reads are not
       limited.

Algorithm: Sliding Window Log
    1. Each IP keeps the timestamps of its recent write requests
    2. Timestamps older than the window are dropped on every request
    3. At the limit the request is rejected with 429 and Retry-After

Single-process only: the window lives in this worker's memory. Running
several workers multiplies the effective limit by the worker count.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.exceptions import RateLimitExceededError
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

LIMITED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
CLEANUP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method not in LIMITED_METHODS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - settings.rate_limit_window

        recent = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = recent

        if len(recent) >= settings.rate_limit_requests:
            retry_after = int(recent[0] + settings.rate_limit_window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d writes in %ds window",
                client_ip,
                len(recent),
                settings.rate_limit_window,
            )
            # Exception handlers do not see middleware errors; runs inside RequestIDMiddleware
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "type": "error",
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "retryable": True,
                    "request_id": request_id_var.get("") or None,
                },
                headers={"Retry-After": str(retry_after)},
            )

        recent.append(now)

        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
