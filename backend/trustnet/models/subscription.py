"""
TrustNet Backend — Subscription SQLAlchemy Model
==================================================

What:  ORM model for the `threat_notification_subscriptions` table.
Who:   Used by SubscriptionStore and by Alembic for schema management.

Table Design Rationale:
    - user_id primary key: exactly one record per user; the primary key is the
      uniqueness guarantee the conditional writes rely on (ON CONFLICT).
    - email: destination address captured at subscribe time.
    - subscribed: current opt-in state; the only column toggles change.
    - subscription_arn: handle returned by SNS when the email was registered.
    - unsubscribe_token: random value set once on insert; embedded in email
      unsubscribe links. Never rewritten by upserts.
    - created_at / updated_at: UTC, timezone-aware.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from trustnet.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subscription(Base):
    """
    A user's opt-in record for threat-verification emails.

    Lifecycle:
        1. Created by auto-subscribe (only if absent) or explicit subscribe (upsert)
        2. `subscribed` flipped by toggle or email unsubscribe (only if present)
        3. Never deleted by the application
    """

    __tablename__ = "threat_notification_subscriptions"
    __table_args__ = (
        Index("idx_threat_notification_subscriptions_email", "email"),
    )

    user_id: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
        comment="Identity-provider user id of the subscriber",
    )

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        comment="Destination address for verification emails",
    )

    subscribed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Current opt-in state",
    )

    subscription_arn: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
        default=None,
        comment="SNS subscription handle for this email",
    )

    unsubscribe_token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Secret embedded in one-click unsubscribe links",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="First subscribe (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Last subscribe or toggle (UTC)",
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(user_id='{self.user_id}', subscribed={self.subscribed}, "
            f"updated_at='{self.updated_at}')>"
        )
