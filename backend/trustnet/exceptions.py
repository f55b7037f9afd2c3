"""
TrustNet Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions, one per error category the API exposes.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) map the exception
       TYPE to an HTTP status and a stable `error` code; nothing branches on
       message text.
Who:   Raised by the manager, store, topic and user directory; caught by
       the handlers.

Exception Hierarchy:
    TrustNetError (base)
    ├── AuthenticationError      → 401 Unauthorized
    ├── ValidationError          → 400 Bad Request
    ├── NotSubscribedError       → 404 Not Found
    ├── DependencyError          → 500 Internal Server Error (generic message)
    └── RateLimitExceededError   → 429 Too Many Requests
"""

from typing import Any, Dict, Optional


class TrustNetError(Exception):
    """
    Base exception for all TrustNet application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    # Stable machine-readable category returned as `error` in the response body
    code = "internal_server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class AuthenticationError(TrustNetError):
    """
    Raised when the caller's credential cannot be verified.

    When:    Token missing, malformed, expired, or signature/issuer/audience mismatch.
    HTTP:    401 Unauthorized

    The message is the same for every cause; the specific reason goes into
    `context["reason"]` for the server log only. Clients branch on the
    `authentication_error` code.
    """

    code = "authentication_error"

    def __init__(
        self,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if reason:
            ctx["reason"] = reason
        super().__init__(message="User is not authenticated", context=ctx)
        self.reason = reason


class ValidationError(TrustNetError):
    """
    Raised when client input fails validation.

    When:    Required field absent or wrong type (empty user id/email, non-boolean
             `enabled`, invalid unsubscribe token).
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "enabled field must be a boolean",
            "details": {"field": "enabled"}
        }
    """

    code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotSubscribedError(TrustNetError):
    """
    Raised when a subscription must already exist but does not.

    When:    Toggling a user who never subscribed. Detected from the store's
             conditional update affecting zero rows, not from a prior read.
    HTTP:    404 Not Found
    """

    code = "not_subscribed"

    def __init__(
        self,
        user_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if user_id:
            ctx["user_id"] = user_id
        super().__init__(
            message="No subscription found. Please subscribe first.",
            context=ctx,
        )
        self.user_id = user_id


class DependencyError(TrustNetError):
    """
    Raised when a backing service fails for any reason other than a precondition.

    When:    Database statement fails, SNS call fails, topic not configured for publish.
    HTTP:    500 Internal Server Error

    Security Note:
        The response always carries a generic message. The original error type,
        AWS error code, etc. live in `context` and are logged server-side only.
    """

    code = "server_error"

    def __init__(
        self,
        message: str = "A backing service error occurred. Please try again later.",
        service: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if service:
            ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.service = service


class RateLimitExceededError(TrustNetError):
    """
    Raised when a client exceeds the request rate limit.

    HTTP:    429 Too Many Requests, with a Retry-After header.
    """

    code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
