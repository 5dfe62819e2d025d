from __future__ import annotations

from typing import Literal
from uuid import UUID

from ._base import CamelModel

VerificationStatusLiteral = Literal[
    "valid",
    "invalid",
    "expired",
    "already_redeemed",
    "limit_reached",
    "offer_unavailable",
]


class AvailablePetResponse(CamelModel):
    id: UUID
    name: str


class VerificationResponse(CamelModel):
    """200 body; which fields are present depends on ``status``."""

    status: VerificationStatusLiteral
    attempts_remaining: int | None = None
    member_name: str | None = None
    pet_name: str | None = None
    member_id: str | None = None
    membership_id: UUID | None = None
    expiry_date: str | None = None
    offer_id: UUID | None = None
    offer_title: str | None = None
    discount: str | None = None
    offer_type: Literal["per_member", "per_pet"] | None = None
    available_pets: list[AvailablePetResponse] | None = None
    total_pets: int | None = None
    redeemed_pets_count: int | None = None
    message: str | None = None
