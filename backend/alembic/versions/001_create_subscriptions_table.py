"""Create threat_notification_subscriptions table

Revision ID: 001
Revises: None
Create Date: 2025-03-04 00:00:00.000000+00:00

What:  One row per user holding their opt-in state for threat verification
       emails.
How:   user_id is the primary key; the store's ON CONFLICT writes depend on
       it being the conflict target.

Rollback: downgrade() drops the table (all opt-in state is lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "threat_notification_subscriptions",
        sa.Column(
            "user_id",
            sa.String(128),
            nullable=False,
            comment="Identity-provider user id of the subscriber",
        ),
        sa.Column(
            "email",
            sa.String(320),
            nullable=False,
            comment="Destination address for verification emails",
        ),
        sa.Column(
            "subscribed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
            comment="Current opt-in state",
        ),
        sa.Column(
            "subscription_arn",
            sa.String(512),
            nullable=True,
            comment="SNS subscription handle for this email",
        ),
        sa.Column(
            "unsubscribe_token",
            sa.String(64),
            nullable=False,
            comment="Secret embedded in one-click unsubscribe links",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="First subscribe (UTC)",
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="Last subscribe or toggle (UTC)",
        ),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # Verification fan-out looks subscribers up by address
    op.create_index(
        "idx_threat_notification_subscriptions_email",
        "threat_notification_subscriptions",
        ["email"],
    )


def downgrade() -> None:
    op.drop_index(
        "idx_threat_notification_subscriptions_email",
        table_name="threat_notification_subscriptions",
    )
    op.drop_table("threat_notification_subscriptions")
