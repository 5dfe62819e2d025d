"""Partner offers and their redemption rules."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from wooffy_api.db.base import Base


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    BOGO = "bogo"
    FREE_ITEM = "free_item"


class RedemptionScope(str, Enum):
    PER_MEMBER = "per_member"
    PER_PET = "per_pet"


class RedemptionFrequency(str, Enum):
    ONE_TIME = "one_time"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    UNLIMITED = "unlimited"


class Offer(Base):
    __tablename__ = "offers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    discount_type = Column(String(16), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    is_limited_time = Column(Boolean, nullable=False, default=False, server_default="false")
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    redemption_scope = Column(String(16), nullable=False, default=RedemptionScope.PER_MEMBER.value)
    redemption_frequency = Column(String(16), nullable=False, default=RedemptionFrequency.ONE_TIME.value)
    max_redemptions = Column(Integer, nullable=True)
    pet_type = Column(String(8), nullable=True)
    # ISO weekday numbers (1 = Monday); null means every day
    available_days = Column(JSON, nullable=True)
    available_from_hour = Column(Integer, nullable=True)
    available_until_hour = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    business = relationship("Business", lazy="joined")

    @property
    def scope(self) -> RedemptionScope:
        try:
            return RedemptionScope(self.redemption_scope)
        except ValueError:
            return RedemptionScope.PER_MEMBER

    @property
    def frequency(self) -> RedemptionFrequency:
        try:
            return RedemptionFrequency(self.redemption_frequency)
        except ValueError:
            return RedemptionFrequency.ONE_TIME
