"""
CodeSync Backend — Request Logging Middleware
==============================================

What:  One access-log line per request on the `codesync.access` logger.
How:   Measures wall time around the handler and logs:
           GET /api/snippets 200 12.3ms [a1b2c3d4] from 10.0.0.7 user=<id|->
       The user id comes from request.state, where the auth dependency
       leaves it once a session token resolves to a user.

Levels:
    5xx → ERROR, 4xx → WARNING, everything else → INFO.
    /health is not logged; probes would drown everything else.

Not logged: request bodies (passwords, code), cookies, Authorization headers.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from codesync.middleware.request_id import request_id_var

logger = logging.getLogger("codesync.access")

SILENT_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SILENT_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        user_id = getattr(request.state, "user_id", None) or "-"
        status = response.status_code

        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms [%s] from %s user=%s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            user_id,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
