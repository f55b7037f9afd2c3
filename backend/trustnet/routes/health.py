"""
TrustNet Backend — Health Check Route
=======================================

What:  Liveness/readiness probe for load balancers and monitoring.
How:   Runs SELECT 1 against the engine on app.state and reports whether an
       SNS topic is configured. No AWS call is made; probes run every few
       seconds and SNS calls are billed.

Status levels:
    healthy:   database reachable, topic configured
    degraded:  database reachable, no topic (emails cannot go out)
    unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter, Request
from sqlalchemy import text

from trustnet import __version__
from trustnet.schemas.subscription import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    engine = getattr(request.app.state, "engine", None)
    try:
        if engine is None:
            raise RuntimeError("database engine not initialized")
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    topic = getattr(request.app.state, "notification_topic", None)
    if topic is not None and topic.is_configured:
        notifications = "configured"
    else:
        notifications = "not_configured"
        if overall == "healthy":
            overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        notifications=notifications,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
