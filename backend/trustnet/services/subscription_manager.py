"""
TrustNet Backend — Subscription Manager (Business Logic)
==========================================================

What:  Owns each user's opt-in state for threat-verification emails.
How:   Composes SubscriptionStore (conditional writes) and NotificationTopic
       (SNS registration / publish). Holds no per-request state.
Who:   Called by the notification route handlers and by the threat
       verification workflow.

Creation Matrix:
    The mutating operations differ exactly in what they do about a missing
    or existing record:

    ┌──────────────────────────┬──────────────────┬─────────────────────┐
    │ Operation                │ No record        │ Existing record     │
    ├──────────────────────────┼──────────────────┼─────────────────────┤
    │ auto_subscribe_user      │ create (on)      │ untouched           │
    │ subscribe_user_globally  │ create (on)      │ overwrite (on)      │
    │ toggle_user_subscription │ NotSubscribedErr │ set flag            │
    │ handle_email_unsubscribe │ ValidationError  │ set flag off        │
    └──────────────────────────┴──────────────────┴─────────────────────┘

    So an explicit opt-out survives any number of auto-subscribes, and an
    explicit subscribe always wins.

Error Handling:
    Store and topic failures arrive as DependencyError and propagate unchanged.
    Nothing here retries; the caller decides.
"""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

from trustnet.config import settings
from trustnet.exceptions import NotSubscribedError, ValidationError
from trustnet.schemas.subscription import SubscriptionStatus, ThreatDetails
from trustnet.services.notification_topic import NotificationTopic, mask_email
from trustnet.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "✅ Your TrustNet threat report has been verified"

VERIFICATION_TEMPLATE = """Hi {name},

Great news! Your digital threat report has been verified by our admin team.

Threat Details:
📋 Artifact: {artifact}
🔗 Type: {type}
📝 Description: {description}
✅ Status: Verified

Your contribution helps keep our community safe from digital threats!

Best regards,
The TrustNet Team

---
Don't want these notifications? Unsubscribe here: {unsubscribe_url}"""


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message=f"{field} is required", field=field)
    return value.strip()


class SubscriptionManager:
    """
    The notification opt-in state machine.

    Args:
        store: Conditional-write record store.
        topic: SNS topic the emails are registered on.
        app_base_url: Public web app URL for unsubscribe links.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        topic: NotificationTopic,
        app_base_url: Optional[str] = None,
    ):
        self._store = store
        self._topic = topic
        self._app_base_url = (app_base_url or settings.app_base_url).rstrip("/")

    async def auto_subscribe_user(self, user_id: str, email: str) -> bool:
        """
        Opt the caller in unless they already have a record.

        Triggered whenever a user reports a threat. Never overrides an
        existing record, opted in or out.

        Returns:
            True if a new record was created.

        Raises:
            ValidationError: user_id or email empty
            DependencyError: topic registration or store write failed
        """
        user_id = _require_text(user_id, "user_id")
        email = _require_text(email, "email")

        subscription_arn = await self._topic.register(email)
        created = await self._store.put_if_absent(
            user_id, email, subscribed=True, subscription_arn=subscription_arn
        )
        if created:
            logger.info("Auto-subscribed user %s (%s)", user_id, mask_email(email))
        else:
            logger.info("User %s already has a subscription record; left unchanged", user_id)
        return created

    async def subscribe_user_globally(self, user_id: str, email: str) -> SubscriptionStatus:
        """
        Explicit opt-in: create or overwrite the record with subscribed=True.

        Raises:
            ValidationError: user_id or email empty
            DependencyError: topic registration or store write failed
        """
        user_id = _require_text(user_id, "user_id")
        email = _require_text(email, "email")

        subscription_arn = await self._topic.register(email)
        await self._store.put_always(
            user_id, email, subscribed=True, subscription_arn=subscription_arn
        )
        logger.info("User %s subscribed to threat notifications", user_id)
        return SubscriptionStatus(subscribed=True, email=email)

    async def get_user_subscription_status(self, user_id: str) -> SubscriptionStatus:
        """Current state; a user without a record reads as not subscribed."""
        user_id = _require_text(user_id, "user_id")
        record = await self._store.get(user_id)
        if record is None:
            return SubscriptionStatus(subscribed=False, email=None)
        return SubscriptionStatus(subscribed=record.subscribed is True, email=record.email)

    async def toggle_user_subscription(self, user_id: str, enabled: bool) -> SubscriptionStatus:
        """
        Enable or disable notifications for a user who already has a record.

        Raises:
            ValidationError: user_id empty, or `enabled` is not a bool
            NotSubscribedError: no record exists (nothing is created)
            DependencyError: store write failed
        """
        user_id = _require_text(user_id, "user_id")
        if not isinstance(enabled, bool):
            raise ValidationError(message="enabled field must be a boolean", field="enabled")

        if not await self._store.update_if_present(user_id, subscribed=enabled):
            logger.info("Toggle rejected: user %s has no subscription record", user_id)
            raise NotSubscribedError(user_id=user_id)

        logger.info("User %s subscription toggled to %s", user_id, enabled)
        return SubscriptionStatus(subscribed=enabled)

    async def handle_email_unsubscribe(self, user_id: str, token: str) -> None:
        """
        One-click unsubscribe from the link in a notification email.

        The token must match the one stored with the user's record. The record
        is kept and marked unsubscribed.

        Raises:
            ValidationError: missing parameters, unknown user, already
                unsubscribed, or token mismatch (all look the same to the caller)
        """
        user_id = _require_text(user_id, "userId")
        token = _require_text(token, "token")

        if not await self._store.unsubscribe_if_token_matches(user_id, token):
            logger.warning("Invalid unsubscribe token for user %s", user_id)
            raise ValidationError(message="Invalid unsubscribe token", field="token")
        logger.info("User %s unsubscribed via email link", user_id)

    async def send_verification_notification(
        self,
        threat: ThreatDetails,
        recipient_name: Optional[str] = None,
    ) -> bool:
        """
        Tell the submitter their threat report was verified.

        Returns:
            True if a notification was published, False if the submitter is
            not subscribed (no record, or opted out).

        Raises:
            DependencyError: store read or SNS publish failed
        """
        record = await self._store.get(threat.submitted_by)
        if record is None or not record.subscribed:
            logger.info(
                "User %s is not subscribed; no notification for threat %s",
                threat.submitted_by, threat.threat_id,
            )
            return False

        message = VERIFICATION_TEMPLATE.format(
            name=recipient_name or "there",
            artifact=threat.artifact,
            type=threat.type.upper(),
            description=threat.description,
            unsubscribe_url=self.unsubscribe_url(record.user_id, record.unsubscribe_token),
        )
        await self._topic.publish(
            record.email,
            subject=VERIFICATION_SUBJECT,
            message=message,
            attributes={"threatId": threat.threat_id, "userId": record.user_id},
        )
        logger.info("Verification notification sent for threat %s", threat.threat_id)
        return True

    def unsubscribe_url(self, user_id: str, token: str) -> str:
        query = urlencode({"token": token, "userId": user_id})
        return f"{self._app_base_url}/api/notifications/unsubscribe-email?{query}"
