"""Display helpers for membership holders and their pets."""

from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.models.membership import Membership, Pet

DEFAULT_MEMBER_NAME = "Member"
UNKNOWN_PET_NAME = "Not specified"


async def load_pets(session: AsyncSession, membership_id: UUID) -> list[Pet]:
    stmt = select(Pet).where(Pet.membership_id == membership_id).order_by(Pet.created_at)
    return list((await session.execute(stmt)).scalars())


def member_display_name(membership: Membership) -> str:
    user = membership.user
    if user is not None and user.full_name:
        return user.full_name
    return DEFAULT_MEMBER_NAME


def pet_display_names(membership: Membership, pets: Sequence[Pet]) -> str:
    """Comma-joined pet names, falling back to the legacy single-pet column."""

    if pets:
        return ", ".join(pet.pet_name for pet in pets)
    return membership.pet_name or UNKNOWN_PET_NAME


__all__ = ["load_pets", "member_display_name", "pet_display_names"]
