"""
TrustNet Backend — FastAPI Application Factory
================================================

What:  Creates and configures the notification service's FastAPI application.
How:   create_app() assembles middleware, exception handlers and routers; the
       lifespan handler builds the collaborators once per process and parks
       them on `app.state`.
Who:   uvicorn (`uvicorn trustnet.main:app`), and tests via create_app().

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                     FastAPI App                          │
    │                                                          │
    │  Middleware: RateLimit → RequestID → Logging → GZip/CORS │
    │                                                          │
    │  Routes:                                                 │
    │    POST /api/notifications/auto-subscribe                │
    │    GET  /api/notifications/status                        │
    │    POST /api/notifications/subscribe                     │
    │    PUT  /api/notifications/toggle                        │
    │    GET  /api/notifications/unsubscribe-email             │
    │    GET  /health                                          │
    │                                                          │
    │  app.state:                                              │
    │    engine, subscription_store, notification_topic,       │
    │    user_directory, subscription_manager                  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → engine → collaborators
    Shutdown: dispose engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from trustnet import __version__
from trustnet.config import settings
from trustnet.database import create_engine, dispose_engine
from trustnet.exceptions import (
    AuthenticationError,
    DependencyError,
    NotSubscribedError,
    RateLimitExceededError,
    TrustNetError,
    ValidationError,
)
from trustnet.middleware.logging import RequestLoggingMiddleware
from trustnet.middleware.rate_limit import RateLimitMiddleware
from trustnet.middleware.request_id import RequestIDMiddleware, request_id_var
from trustnet.routes import health, notifications
from trustnet.services.notification_topic import NotificationTopic
from trustnet.services.subscription_manager import SubscriptionManager
from trustnet.services.subscription_store import SubscriptionStore
from trustnet.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure process-wide logging.

    One stdout handler (the container runtime ships stdout to CloudWatch),
    level from LOG_LEVEL. Chatty third-party loggers are held at WARNING:
    botocore logs every HTTP exchange at DEBUG and SQLAlchemy echoes SQL.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the collaborators on startup, release the engine on shutdown.

    A configuration problem is logged, not fatal: the process still answers
    /health, which reports the degraded state to the load balancer.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("TrustNet notification service %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    engine = create_engine()
    store = SubscriptionStore(engine)
    topic = NotificationTopic(settings.aws_sns_topic_arn, settings.aws_region)
    directory = UserDirectory(
        jwks_url=settings.resolved_jwks_url,
        secret=settings.jwt_secret,
        issuer=settings.resolved_issuer,
        audience=settings.resolved_audience,
        user_id_claim=settings.jwt_user_id_claim,
        email_claim=settings.jwt_email_claim,
        jwks_cache_ttl=settings.jwks_cache_ttl,
    )

    app.state.engine = engine
    app.state.subscription_store = store
    app.state.notification_topic = topic
    app.state.user_directory = directory
    app.state.subscription_manager = SubscriptionManager(
        store, topic, app_base_url=settings.app_base_url
    )

    logger.info(
        "Token verification: %s",
        "JWKS " + settings.resolved_jwks_url if settings.resolved_jwks_url
        else ("shared secret" if settings.jwt_secret else "NOT CONFIGURED"),
    )
    logger.info("SNS topic: %s", settings.aws_sns_topic_arn or "NOT CONFIGURED")
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("TrustNet notification service shutting down...")
    await dispose_engine(engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(exc: TrustNetError, rid: str, include_details: bool = False) -> dict:
    body = {"error": exc.code, "message": exc.message, "request_id": rid}
    if include_details and exc.context:
        body["details"] = exc.context
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP responses.

    Handler table:
        AuthenticationError     → 401
        ValidationError         → 400 (field in details)
        NotSubscribedError      → 404
        RateLimitExceededError  → 429 + Retry-After
        DependencyError         → 500, generic message; context logged only
        TrustNetError (base)    → 500
        Exception (fallback)    → 500

    Every body is {"error", "message", "request_id"}, plus "details" for
    client-fixable errors.
    """

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        rid = request_id_var.get("")
        logger.info("[%s] Unauthenticated request to %s: %s", rid, request.url.path, exc.reason)
        return JSONResponse(status_code=401, content=_error_body(exc, rid))

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return JSONResponse(status_code=400, content=_error_body(exc, rid, include_details=True))

    @app.exception_handler(NotSubscribedError)
    async def handle_not_subscribed(request: Request, exc: NotSubscribedError):
        rid = request_id_var.get("")
        return JSONResponse(status_code=404, content=_error_body(exc, rid))

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=429,
            content=_error_body(exc, rid, include_details=True),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DependencyError)
    async def handle_dependency_error(request: Request, exc: DependencyError):
        rid = request_id_var.get("")
        logger.error("[%s] %s failure: %s | Context: %s", rid, exc.service, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": exc.code,
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(TrustNetError)
    async def handle_trustnet_error(request: Request, exc: TrustNetError):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body(exc, rid))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace goes to the log only; the client gets the request ID."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble the application. Collaborators are attached by the lifespan handler."""
    app = FastAPI(
        title="TrustNet Notifications API",
        description=(
            "Opt-in management for threat verification emails: automatic "
            "subscription on first report, explicit subscribe, status and toggle."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware ────────────────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # session cookie carries the token
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(notifications.router)
    app.include_router(health.router)

    return app


app = create_app()
