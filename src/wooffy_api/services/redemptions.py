"""Business-confirmed offer redemptions."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from uuid import UUID
from zoneinfo import ZoneInfo

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.core.settings import Settings, get_settings
from wooffy_api.core.time import ensure_utc, utcnow
from wooffy_api.models.business import Business
from wooffy_api.models.membership import Membership
from wooffy_api.models.notification import NotificationType
from wooffy_api.models.offer import Offer, RedemptionScope
from wooffy_api.models.redemption import OfferRedemption
from wooffy_api.observability.verification import (
    VerificationObservabilityStore,
    get_verification_store,
)
from wooffy_api.services.members import load_pets, member_display_name, pet_display_names
from wooffy_api.services.notifications import NotificationService
from wooffy_api.services.offers import (
    already_redeemed_message,
    describe_discount,
    discount_text,
    period_key,
    redemption_key,
    scope_key_for,
    unavailability_reason,
)


class RedemptionError(Exception):
    """A redemption request the business cannot complete."""

    def __init__(self, code: str, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class RedemptionRequest:
    membership_id: UUID
    offer_id: UUID
    business_id: UUID
    caller_user_id: UUID
    pet_id: UUID | None = None


@dataclass(frozen=True)
class RedemptionReceipt:
    id: UUID
    offer_title: str
    discount: str
    business_name: str
    redeemed_at: dt.datetime
    member_name: str
    pet_names: str
    member_number: str


class RedemptionService:
    """Record a redemption once the business operator confirms it.

    The row's unique ``redemption_key`` is what prevents a double redemption;
    two racing confirmations cannot both insert the same key.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        notifications: NotificationService | None = None,
        observability: VerificationObservabilityStore | None = None,
    ) -> None:
        self._db = session
        self._settings = settings or get_settings()
        self._notifications = notifications or NotificationService(session)
        self._observability = observability or get_verification_store()

    async def confirm(self, request: RedemptionRequest, *, now: dt.datetime | None = None) -> RedemptionReceipt:
        now = now or utcnow()
        try:
            receipt = await self._confirm(request, now=now)
        except RedemptionError as exc:
            self._observability.record_redemption(exc.code.lower())
            raise
        self._observability.record_redemption("confirmed")
        return receipt

    async def _confirm(self, request: RedemptionRequest, *, now: dt.datetime) -> RedemptionReceipt:
        business = await self._db.get(Business, request.business_id)
        if business is None or business.user_id != request.caller_user_id:
            raise RedemptionError("FORBIDDEN", "Unauthorized", status_code=403)

        membership = await self._db.get(Membership, request.membership_id)
        offer = await self._db.get(Offer, request.offer_id)
        if membership is None or offer is None or offer.business_id != business.id:
            raise RedemptionError("NOT_FOUND", "Invalid request")

        if not membership.is_active or ensure_utc(membership.expires_at) < now:
            raise RedemptionError("MEMBERSHIP_EXPIRED", "Membership is no longer valid", status_code=409)

        reason = unavailability_reason(offer, now=now, timezone=ZoneInfo(self._settings.display_timezone))
        if reason is not None:
            raise RedemptionError("OFFER_UNAVAILABLE", reason, status_code=409)

        if offer.max_redemptions is not None:
            total = await self._db.scalar(
                select(func.count()).select_from(OfferRedemption).where(OfferRedemption.offer_id == offer.id)
            )
            if (total or 0) >= offer.max_redemptions:
                raise RedemptionError(
                    "LIMIT_REACHED",
                    "This offer has reached its maximum redemption limit.",
                    status_code=409,
                )

        pets = await load_pets(self._db, membership.id)
        per_pet = offer.scope is RedemptionScope.PER_PET
        pet = None
        if per_pet:
            if request.pet_id is None:
                raise RedemptionError("PET_REQUIRED", "Pet selection required for this offer")
            pet = next((candidate for candidate in pets if candidate.id == request.pet_id), None)
            if pet is None:
                raise RedemptionError("PET_NOT_FOUND", "Selected pet not found")
            if offer.pet_type and pet.pet_type != offer.pet_type:
                raise RedemptionError("PET_TYPE_MISMATCH", f"This offer is only valid for {offer.pet_type}s")

        member_name = member_display_name(membership)
        pet_names = pet_display_names(membership, pets)
        key = redemption_key(
            membership.id,
            offer.id,
            scope_key_for(offer, pet.id if pet else None),
            period_key(offer.frequency, now),
        )
        redemption = OfferRedemption(
            membership_id=membership.id,
            offer_id=offer.id,
            business_id=business.id,
            pet_id=pet.id if pet else None,
            redeemed_by_user_id=request.caller_user_id,
            redemption_key=key,
            member_name=member_name,
            pet_names=pet_names,
            member_number=membership.member_number,
            redeemed_at=now,
        )
        try:
            async with self._db.begin_nested():
                self._db.add(redemption)
        except IntegrityError:
            raise RedemptionError(
                "ALREADY_REDEEMED",
                already_redeemed_message(offer.frequency, per_pet=per_pet),
                status_code=409,
            ) from None

        saved = discount_text(offer)
        who = pet.pet_name if pet is not None else "You"
        await self._notifications.create_notification(
            membership.user_id,
            NotificationType.REDEMPTION.value,
            title="Offer Redeemed! 🎉",
            message=f'{who} saved {saved} with "{offer.title}" at {business.business_name}!',
            data={
                "redemption_id": str(redemption.id),
                "offer_id": str(offer.id),
                "offer_title": offer.title,
                "business_id": str(business.id),
                "business_name": business.business_name,
                "discount_type": offer.discount_type,
                "pet_id": str(pet.id) if pet else None,
                "pet_name": pet.pet_name if pet else None,
            },
        )

        logger.info(
            "Offer redemption confirmed",
            redemption_id=str(redemption.id),
            business_id=str(business.id),
            offer_id=str(offer.id),
            scope=offer.scope.value,
        )
        return RedemptionReceipt(
            id=redemption.id,
            offer_title=offer.title,
            discount=describe_discount(offer),
            business_name=business.business_name,
            redeemed_at=now,
            member_name=member_name,
            pet_names=pet_names,
            member_number=membership.member_number,
        )


__all__ = ["RedemptionError", "RedemptionReceipt", "RedemptionRequest", "RedemptionService"]
