"""
ChampStep Backend — Request Logging Middleware
================================================

What:  One access log line per request on the `champstep.access` logger.
How:   Measures wall time around the downstream app and picks the level from
       the status code (5xx ERROR, 4xx WARNING, else INFO).

Logged:      method, path, status, duration, request ID, client IP, and the
             acting user's ID once authentication has resolved it.
Not logged:  request bodies (names, bios) and the Authorization header.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("champstep.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        # Set by the auth dependency; absent on anonymous routes
        user_id = getattr(request.state, "user_id", None)

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s user=%s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            rid,
            client_ip,
            user_id or "-",
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": str(user_id) if user_id else None,
            },
        )

        return response
