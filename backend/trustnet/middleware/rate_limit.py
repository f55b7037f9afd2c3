"""
TrustNet Backend — Rate Limiting Middleware
=============================================

What:  Per-client sliding window rate limiter.
How:   Keeps the timestamps of each client's requests inside the window;
       a request is rejected with 429 once the window already holds
       `rate_limit_requests` entries.

Client identity:
    The service sits behind an API gateway / load balancer, so the first
    X-Forwarded-For hop identifies the client; the socket peer is used when
    the header is absent.

Scope:
    In-process state, so the limit applies per worker process.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from trustnet.config import settings
from trustnet.exceptions import RateLimitExceededError
from trustnet.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


def client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding window limiter.

    Args:
        max_requests / window_seconds: Override settings (tests).
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    # Sweep idle clients every N recorded requests
    SWEEP_EVERY = 1000

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._recorded = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        key = client_key(request)
        now = time.time()
        window_start = now - self.window_seconds

        timestamps = self._requests[key]
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= self.max_requests:
            retry_after = int(timestamps[0] + self.window_seconds - now) + 1
            exc = RateLimitExceededError(retry_after=retry_after)
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                key, len(timestamps), self.window_seconds,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": exc.code,
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        timestamps.append(now)
        self._recorded += 1
        if self._recorded % self.SWEEP_EVERY == 0:
            self._sweep(window_start)

        return await call_next(request)

    def _sweep(self, window_start: float) -> None:
        idle = [k for k, ts in self._requests.items() if not ts or ts[-1] <= window_start]
        for k in idle:
            del self._requests[k]
        if idle:
            logger.debug("Dropped %d idle rate-limit entries", len(idle))
