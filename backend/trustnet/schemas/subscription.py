"""
TrustNet Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the notification API contract and the value
       objects the manager returns.
Why separate from the ORM model: clients never see the unsubscribe token or
the SNS handle, and the response shapes are fixed by the web client.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Value objects returned by SubscriptionManager
# ══════════════════════════════════════════════════════════════════════════


class SubscriptionStatus(BaseModel):
    """
    Read model of a user's opt-in state.

    A user without a record is `subscribed=False, email=None`; absence is a
    valid state, not an error.
    """
    subscribed: bool = Field(description="Whether verification emails are enabled")
    email: Optional[str] = Field(default=None, description="Destination address, null if never subscribed")


class ThreatDetails(BaseModel):
    """
    What:  The verified threat, as handed over by the digital-threats service.
    Who:   Passed to SubscriptionManager.send_verification_notification().
    """
    threat_id: str = Field(description="Threat identifier")
    artifact: str = Field(description="The reported URL, email address or phone number")
    type: Literal["email", "phone", "url"] = Field(description="Artifact kind")
    description: str = Field(default="", description="Submitter's description")
    submitted_by: str = Field(description="User id of the submitter")


# ══════════════════════════════════════════════════════════════════════════
# Response Models: what the API returns to clients
# ══════════════════════════════════════════════════════════════════════════


class AutoSubscribeResponse(BaseModel):
    """Returned by POST /api/notifications/auto-subscribe."""
    message: str = Field(default="Auto-subscribed successfully")
    email: str = Field(description="Address taken from the caller's token")


class StatusResponse(BaseModel):
    """Returned by GET /api/notifications/status."""
    subscribed: bool
    email: Optional[str] = None


class SubscribeResponse(BaseModel):
    """Returned by POST /api/notifications/subscribe."""
    message: str = Field(default="Successfully subscribed to threat verification notifications")
    subscribed: bool = True


class ToggleResponse(BaseModel):
    """Returned by PUT /api/notifications/toggle."""
    message: str = Field(description="'Notifications enabled successfully' or '... disabled ...'")
    subscribed: bool = Field(description="The state that was just written")


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error body for all JSON API errors.

    Fields:
        error: Stable category (authentication_error, validation_error,
               not_subscribed, server_error, rate_limit_exceeded)
        message: Human-readable description
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for load balancers and monitoring."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    notifications: str = Field(description="SNS topic: configured, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
