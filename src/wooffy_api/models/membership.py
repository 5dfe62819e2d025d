"""Membership and pet records."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from wooffy_api.core.time import utcnow
from wooffy_api.db.base import Base


class MembershipPlan(str, Enum):
    SINGLE = "single"
    DUO = "duo"
    FAMILY = "family"


PLAN_PET_QUOTA: dict[MembershipPlan, int] = {
    MembershipPlan.SINGLE: 1,
    MembershipPlan.DUO: 2,
    MembershipPlan.FAMILY: 5,
}


class PetType(str, Enum):
    DOG = "dog"
    CAT = "cat"


class Membership(Base):
    """Paying membership; never hard-deleted so past redemptions stay auditable."""

    __tablename__ = "memberships"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, index=True)
    member_number = Column(String(64), nullable=False, unique=True, index=True)
    plan_type = Column(String(16), nullable=False, default=MembershipPlan.SINGLE.value, server_default=MembershipPlan.SINGLE.value)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    pet_name = Column(String, nullable=True)
    pet_breed = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", lazy="joined")
    pets = relationship("Pet", back_populates="membership", order_by="Pet.created_at")

    @property
    def pet_quota(self) -> int:
        try:
            return PLAN_PET_QUOTA[MembershipPlan(self.plan_type)]
        except ValueError:
            return 1


class Pet(Base):
    __tablename__ = "pets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    membership_id = Column(UUID(as_uuid=True), ForeignKey("memberships.id", ondelete="CASCADE"), nullable=True, index=True)
    owner_user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    pet_name = Column(String, nullable=False)
    pet_breed = Column(String, nullable=True)
    pet_type = Column(String(8), nullable=False, default=PetType.DOG.value, server_default=PetType.DOG.value)
    birthday = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    membership = relationship("Membership", back_populates="pets")
    owner = relationship("User", lazy="joined")
