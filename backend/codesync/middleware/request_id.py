"""
CodeSync Backend — Request ID Middleware
=========================================

What:  Assigns an ID to each request and echoes it in the `X-Request-ID`
       response header.
Why:   Every log line and every error body of a request carries the same id,
       so a user-reported error can be matched to server logs.
How:   Uses the client's X-Request-ID when present, otherwise a short uuid.
       The id is stored in a ContextVar (coroutine-local) and request.state.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ContextVar, not threading.local: concurrent requests share one thread
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")[:MAX_CLIENT_ID_LENGTH] or str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
