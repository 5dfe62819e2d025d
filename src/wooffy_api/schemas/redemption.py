from __future__ import annotations

from datetime import datetime
from uuid import UUID

from ._base import CamelModel


class RedemptionSummary(CamelModel):
    id: UUID
    offer_title: str
    discount: str
    business_name: str
    redeemed_at: datetime
    member_name: str
    pet_names: str
    member_number: str


class RedemptionResponse(CamelModel):
    success: bool = True
    redemption: RedemptionSummary
