"""Membership, offer, redemption and notification tables.

Revision ID: 20261018_01
Revises: 
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    op.create_table(
        "businesses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("business_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_businesses_user_id", "businesses", ["user_id"])

    op.create_table(
        "business_birthday_settings",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "business_id",
            _uuid(),
            sa.ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("custom_message", sa.Text(), nullable=True),
        _timestamp("updated_at"),
    )

    op.create_table(
        "memberships",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("member_number", sa.String(length=64), nullable=False),
        sa.Column("plan_type", sa.String(length=16), nullable=False, server_default="single"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("pet_name", sa.String(), nullable=True),
        sa.Column("pet_breed", sa.String(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index("ix_memberships_member_number", "memberships", ["member_number"], unique=True)
    op.create_index("ix_memberships_expires_at", "memberships", ["expires_at"])

    op.create_table(
        "pets",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("membership_id", _uuid(), sa.ForeignKey("memberships.id", ondelete="CASCADE"), nullable=True),
        sa.Column("owner_user_id", _uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pet_name", sa.String(), nullable=False),
        sa.Column("pet_breed", sa.String(), nullable=True),
        sa.Column("pet_type", sa.String(length=8), nullable=False, server_default="dog"),
        sa.Column("birthday", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_pets_membership_id", "pets", ["membership_id"])
    op.create_index("ix_pets_owner_user_id", "pets", ["owner_user_id"])

    op.create_table(
        "offers",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("business_id", _uuid(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(length=16), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_limited_time", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redemption_scope", sa.String(length=16), nullable=False),
        sa.Column("redemption_frequency", sa.String(length=16), nullable=False),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("pet_type", sa.String(length=8), nullable=True),
        sa.Column("available_days", sa.JSON(), nullable=True),
        sa.Column("available_from_hour", sa.Integer(), nullable=True),
        sa.Column("available_until_hour", sa.Integer(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_offers_business_id", "offers", ["business_id"])

    op.create_table(
        "offer_redemptions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("membership_id", _uuid(), sa.ForeignKey("memberships.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("offer_id", _uuid(), sa.ForeignKey("offers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("business_id", _uuid(), sa.ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("pet_id", _uuid(), sa.ForeignKey("pets.id", ondelete="SET NULL"), nullable=True),
        sa.Column("redeemed_by_user_id", _uuid(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("redemption_key", sa.String(length=200), nullable=False),
        sa.Column("member_name", sa.String(), nullable=True),
        sa.Column("pet_names", sa.String(), nullable=True),
        sa.Column("member_number", sa.String(length=64), nullable=True),
        _timestamp("redeemed_at"),
        sa.UniqueConstraint("redemption_key", name="uq_offer_redemptions_redemption_key"),
    )
    op.create_index("ix_offer_redemptions_membership_offer", "offer_redemptions", ["membership_id", "offer_id"])
    op.create_index("ix_offer_redemptions_offer_id", "offer_redemptions", ["offer_id"])
    op.create_index("ix_offer_redemptions_business_id", "offer_redemptions", ["business_id"])

    op.create_table(
        "verification_attempts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("business_id", _uuid(), nullable=False),
        sa.Column("attempted_member_id", sa.String(length=64), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_verification_attempts_business_created",
        "verification_attempts",
        ["business_id", "success", "created_at"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=48), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])

    op.create_table(
        "notification_dispatch_keys",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("notification_type", sa.String(length=48), nullable=False),
        sa.Column("period", sa.String(length=32), nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("entity_id", "notification_type", "period", name="uq_notification_dispatch_keys"),
    )

    op.create_table(
        "ai_proactive_alerts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("alert_type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("is_dismissed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_ai_proactive_alerts_user_id", "ai_proactive_alerts", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_ai_proactive_alerts_user_id", table_name="ai_proactive_alerts")
    op.drop_table("ai_proactive_alerts")
    op.drop_table("notification_dispatch_keys")
    op.drop_index("ix_notifications_type", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_verification_attempts_business_created", table_name="verification_attempts")
    op.drop_table("verification_attempts")
    op.drop_index("ix_offer_redemptions_business_id", table_name="offer_redemptions")
    op.drop_index("ix_offer_redemptions_offer_id", table_name="offer_redemptions")
    op.drop_index("ix_offer_redemptions_membership_offer", table_name="offer_redemptions")
    op.drop_table("offer_redemptions")
    op.drop_index("ix_offers_business_id", table_name="offers")
    op.drop_table("offers")
    op.drop_index("ix_pets_owner_user_id", table_name="pets")
    op.drop_index("ix_pets_membership_id", table_name="pets")
    op.drop_table("pets")
    op.drop_index("ix_memberships_expires_at", table_name="memberships")
    op.drop_index("ix_memberships_member_number", table_name="memberships")
    op.drop_index("ix_memberships_user_id", table_name="memberships")
    op.drop_table("memberships")
    op.drop_table("business_birthday_settings")
    op.drop_index("ix_businesses_user_id", table_name="businesses")
    op.drop_table("businesses")
    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_table("profiles")
