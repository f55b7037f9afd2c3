"""
TrustNet Backend — Notification Route Handlers
================================================

What:  The threat-verification email subscription endpoints.
How:   Authenticate (dependency) → check the identity claims the operation
       needs → delegate to SubscriptionManager → shape the JSON body.
Who:   Called by the web client's notification settings and subscription modals,
       and by the unsubscribe link in notification emails.

Route Inventory (prefix /api/notifications):
    POST /auto-subscribe     opt in unless a record exists
    GET  /status             current opt-in state
    POST /subscribe          explicit opt in (always wins)
    PUT  /toggle             enable/disable an existing subscription
    GET  /unsubscribe-email  one-click unsubscribe (HTML, no auth)

Errors are raised as typed exceptions and rendered by the handlers in main.py;
the unsubscribe page renders its own HTML error instead.
"""

import html
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse

from trustnet.config import settings
from trustnet.exceptions import ValidationError
from trustnet.routes.dependencies import get_current_user, get_subscription_manager
from trustnet.schemas.subscription import (
    AutoSubscribeResponse,
    ErrorResponse,
    StatusResponse,
    SubscribeResponse,
    ToggleResponse,
)
from trustnet.services.subscription_manager import SubscriptionManager
from trustnet.services.user_directory import AuthenticatedUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

_AUTH_ERRORS = {
    400: {"description": "Missing identity claim or invalid input", "model": ErrorResponse},
    401: {"description": "Credential missing or invalid", "model": ErrorResponse},
    500: {"description": "Backing service failure", "model": ErrorResponse},
}


def _require_user_id(user: AuthenticatedUser) -> str:
    if not user.user_id:
        raise ValidationError(message="Missing user ID in token", field="user_id")
    return user.user_id


def _require_email(user: AuthenticatedUser) -> str:
    if not user.email:
        raise ValidationError(message="Missing email in token", field="email")
    return user.email


@router.post(
    "/auto-subscribe",
    response_model=AutoSubscribeResponse,
    responses=_AUTH_ERRORS,
    summary="Opt in unless the caller already has a subscription record",
)
async def auto_subscribe(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> AutoSubscribeResponse:
    email = _require_email(user)
    user_id = _require_user_id(user)
    await manager.auto_subscribe_user(user_id, email)
    return AutoSubscribeResponse(email=email)


@router.get(
    "/status",
    response_model=StatusResponse,
    responses=_AUTH_ERRORS,
    summary="Get the caller's notification opt-in state",
)
async def subscription_status(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> StatusResponse:
    status = await manager.get_user_subscription_status(_require_user_id(user))
    return StatusResponse(subscribed=status.subscribed, email=status.email)


@router.post(
    "/subscribe",
    response_model=SubscribeResponse,
    responses=_AUTH_ERRORS,
    summary="Subscribe the caller to threat verification emails",
)
async def subscribe(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> SubscribeResponse:
    if not user.user_id or not user.email:
        raise ValidationError(message="Missing user ID or email in token")
    await manager.subscribe_user_globally(user.user_id, user.email)
    return SubscribeResponse()


@router.put(
    "/toggle",
    response_model=ToggleResponse,
    responses={
        **_AUTH_ERRORS,
        404: {"description": "No subscription to toggle", "model": ErrorResponse},
    },
    summary="Enable or disable an existing subscription",
    description="Body: {\"enabled\": true|false}. Fails with 404 if the caller never subscribed.",
)
async def toggle_subscription(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> ToggleResponse:
    user_id = _require_user_id(user)

    # Parsed by hand: a non-boolean `enabled` is a 400, not FastAPI's 422
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError(message="Request body must be JSON", field="enabled") from None
    enabled = body.get("enabled") if isinstance(body, dict) else None

    status = await manager.toggle_user_subscription(user_id, enabled)
    state = "enabled" if status.subscribed else "disabled"
    return ToggleResponse(
        message=f"Notifications {state} successfully",
        subscribed=status.subscribed,
    )


_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <title>{title} - TrustNet</title>
    <style>
      body {{ font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px; text-align: center; }}
      .success {{ color: #059669; }}
      .error {{ color: #dc2626; }}
      .card {{ border: 1px solid #e5e7eb; border-radius: 8px; padding: 40px; background: #f9fafb; }}
    </style>
  </head>
  <body>
    <div class="card">
      <h1 class="{css_class}">{heading}</h1>
      {body}
      <br>
      <p><a href="{home}">Return to TrustNet</a></p>
    </div>
  </body>
</html>
"""


def _render_page(title: str, heading: str, css_class: str, body: str) -> str:
    return _PAGE.format(
        title=title,
        heading=heading,
        css_class=css_class,
        body=body,
        home=html.escape(settings.app_base_url, quote=True),
    )


@router.get(
    "/unsubscribe-email",
    response_class=HTMLResponse,
    summary="One-click unsubscribe from a notification email link",
)
async def unsubscribe_email(
    token: str = Query(default=""),
    user_id: str = Query(default="", alias="userId"),
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> HTMLResponse:
    try:
        await manager.handle_email_unsubscribe(user_id, token)
    except ValidationError as e:
        logger.info("Email unsubscribe rejected: %s", e.message)
        page = _render_page(
            "Unsubscribe Error",
            "❌ Unsubscribe Failed",
            "error",
            "<p>Sorry, we couldn't process your unsubscribe request.</p>"
            "<p>The link may be invalid or expired.</p>",
        )
        return HTMLResponse(page, status_code=400)

    page = _render_page(
        "Unsubscribed",
        "✅ Successfully Unsubscribed",
        "success",
        "<p>You have been unsubscribed from TrustNet threat verification notifications.</p>"
        "<p>You will no longer receive emails when your threats are verified.</p>",
    )
    return HTMLResponse(page)
