"""Redemption ledger and verification audit trail."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from wooffy_api.core.time import utcnow
from wooffy_api.db.base import Base


class OfferRedemption(Base):
    """Immutable record of a confirmed redemption."""

    __tablename__ = "offer_redemptions"
    __table_args__ = (
        UniqueConstraint("redemption_key", name="uq_offer_redemptions_redemption_key"),
        Index("ix_offer_redemptions_membership_offer", "membership_id", "offer_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    membership_id = Column(UUID(as_uuid=True), ForeignKey("memberships.id", ondelete="RESTRICT"), nullable=False)
    offer_id = Column(UUID(as_uuid=True), ForeignKey("offers.id", ondelete="RESTRICT"), nullable=False, index=True)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False, index=True)
    pet_id = Column(UUID(as_uuid=True), ForeignKey("pets.id", ondelete="SET NULL"), nullable=True)
    redeemed_by_user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    redemption_key = Column(String(200), nullable=False)
    member_name = Column(String, nullable=True)
    pet_names = Column(String, nullable=True)
    member_number = Column(String(64), nullable=True)
    redeemed_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class VerificationAttempt(Base):
    """One member-code check by a business; feeds the lockout window."""

    __tablename__ = "verification_attempts"
    __table_args__ = (
        Index("ix_verification_attempts_business_created", "business_id", "success", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    business_id = Column(UUID(as_uuid=True), nullable=False)
    attempted_member_id = Column(String(64), nullable=False)
    success = Column(Boolean, nullable=False)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
