"""
TrustNet Backend — Notification Topic (AWS SNS)
=================================================

What:  Registers email addresses on the threat-verification SNS topic and
       publishes verification notifications to it.
How:   boto3 SNS client; blocking calls run in a worker thread so the event
       loop keeps serving other requests.
Who:   Constructed once at startup; used by SubscriptionManager.

Delivery model:
    Every registered email gets a filter policy {"email": [<address>]}.
    Publishes carry an `email` message attribute, so SNS delivers each
    notification only to the subscription whose policy matches it, instead of
    broadcasting to every address on the topic.

    SNS itself sends the double-opt-in confirmation mail; until the recipient
    confirms, `register()` returns the literal "pending confirmation" handle.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from trustnet.exceptions import DependencyError

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    """a****@example.com; keeps addresses out of INFO logs."""
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}****@{domain}"


class NotificationTopic:
    """
    Thin async wrapper over one SNS topic.

    Args:
        topic_arn: Topic to register on / publish to. Empty disables registration.
        region: AWS region of the topic.
        client: Pre-built SNS client (tests inject a mock).
    """

    def __init__(
        self,
        topic_arn: str,
        region: str,
        client: Optional[Any] = None,
    ):
        self.topic_arn = topic_arn
        self._client = client if client is not None else boto3.client("sns", region_name=region)

    @property
    def is_configured(self) -> bool:
        return bool(self.topic_arn)

    async def register(self, email: str) -> Optional[str]:
        """
        Subscribe `email` to the topic.

        Returns:
            The subscription ARN, or None when no topic is configured
            (local development; the store record is still written).

        Raises:
            DependencyError: SNS rejected the call or was unreachable.
        """
        if not self.is_configured:
            logger.warning(
                "AWS_SNS_TOPIC_ARN not configured; skipping topic registration for %s",
                mask_email(email),
            )
            return None

        try:
            response = await asyncio.to_thread(
                self._client.subscribe,
                TopicArn=self.topic_arn,
                Protocol="email",
                Endpoint=email,
                Attributes={"FilterPolicy": json.dumps({"email": [email]})},
                ReturnSubscriptionArn=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("subscribe", e) from e

        subscription_arn = response.get("SubscriptionArn")
        if not subscription_arn:
            raise DependencyError(
                service="sns",
                context={"operation": "subscribe", "reason": "no SubscriptionArn in response"},
            )
        logger.info("Registered %s on notification topic", mask_email(email))
        return subscription_arn

    async def publish(
        self,
        email: str,
        subject: str,
        message: str,
        attributes: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Publish one notification addressed to `email`.

        `attributes` are sent as String message attributes alongside `email`.
        Returns the SNS MessageId.
        """
        if not self.is_configured:
            raise DependencyError(
                message="Notifications are not configured.",
                service="sns",
                context={"operation": "publish", "reason": "AWS_SNS_TOPIC_ARN not set"},
            )

        message_attributes = {
            key: {"DataType": "String", "StringValue": value}
            for key, value in {**(attributes or {}), "email": email}.items()
        }
        try:
            response = await asyncio.to_thread(
                self._client.publish,
                TopicArn=self.topic_arn,
                Subject=subject,
                Message=message,
                MessageAttributes=message_attributes,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("publish", e) from e

        message_id = response.get("MessageId", "")
        logger.info("Published notification %s to %s", message_id, mask_email(email))
        return message_id

    @staticmethod
    def _wrap(operation: str, error: Exception) -> DependencyError:
        code = ""
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
        logger.error("SNS %s failed: %s", operation, error)
        return DependencyError(
            service="sns",
            context={
                "operation": operation,
                "error_type": type(error).__name__,
                "aws_error_code": code,
            },
        )
