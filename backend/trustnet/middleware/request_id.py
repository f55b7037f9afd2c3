"""
TrustNet Backend — Request ID Middleware
==========================================

What:  Gives every request a correlation ID, echoed back in X-Request-ID.
How:   Reuses the client's X-Request-ID when sent (the web client generates
       one per action), otherwise mints a short random one. The value is
       stored in a ContextVar so loggers and exception handlers can read it
       without access to the request object.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Longer client-supplied IDs are truncated; they end up in every log line
MAX_REQUEST_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns `request.state.request_id` and the X-Request-ID response header."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        rid = rid[:MAX_REQUEST_ID_LENGTH]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
