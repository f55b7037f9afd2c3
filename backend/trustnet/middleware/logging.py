"""
TrustNet Backend — Request Logging Middleware
===============================================

What:  One access-log line per request: method, path, status, duration,
       request ID, client, and the authenticated user id when there is one.
Why not uvicorn's access log: no request ID, no user, no duration.

Privacy:
    Logged: method, path, status, duration, client IP, request ID, user id
    Never logged: bodies, query strings (unsubscribe tokens travel there),
    Authorization headers, cookies.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from trustnet.middleware.request_id import request_id_var

logger = logging.getLogger("trustnet.access")

# Probed every few seconds by the load balancer
QUIET_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Alerting keys off the level alone: INFO 2xx/3xx, WARNING 4xx, ERROR 5xx."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("") or getattr(request.state, "request_id", "")
        user_id = getattr(request.state, "user_id", None) or "-"

        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
            },
        )
        return response
