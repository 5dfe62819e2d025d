"""Verification of a member code against an offer on behalf of a business."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.core.settings import Settings, get_settings
from wooffy_api.core.time import ensure_utc, format_local_date, utcnow
from wooffy_api.models.membership import Membership, Pet
from wooffy_api.models.offer import Offer, RedemptionFrequency, RedemptionScope
from wooffy_api.models.redemption import OfferRedemption, VerificationAttempt
from wooffy_api.observability.verification import (
    VerificationObservabilityStore,
    get_verification_store,
)
from wooffy_api.services.members import load_pets, member_display_name, pet_display_names
from wooffy_api.services.offers import (
    MEMBER_SCOPE_KEY,
    describe_discount,
    period_key,
    redemption_key,
    unavailability_reason,
)
from wooffy_api.services.rate_limit import LockoutState, evaluate_lockout

EXPIRY_DATE_FORMAT = "%d/%m/%Y"


class VerificationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"
    ALREADY_REDEEMED = "already_redeemed"
    LIMIT_REACHED = "limit_reached"
    OFFER_UNAVAILABLE = "offer_unavailable"


@dataclass(frozen=True)
class VerificationRequest:
    member_code: str
    offer_id: UUID
    business_id: UUID
    ip_address: str | None = None


@dataclass(frozen=True)
class AvailablePet:
    id: UUID
    name: str


@dataclass
class VerificationOutcome:
    """Business outcome of a verification call; every status is a 200."""

    status: VerificationStatus
    attempts_remaining: int | None = None
    member_name: str | None = None
    pet_name: str | None = None
    member_id: str | None = None
    membership_id: UUID | None = None
    expiry_date: str | None = None
    offer_id: UUID | None = None
    offer_title: str | None = None
    discount: str | None = None
    offer_type: str | None = None
    available_pets: list[AvailablePet] | None = None
    total_pets: int | None = None
    redeemed_pets_count: int | None = None
    message: str | None = None


class VerificationLockedError(Exception):
    """Raised when the business is locked out after repeated failures."""

    def __init__(self, state: LockoutState, remaining_minutes: int) -> None:
        super().__init__("Too many failed attempts. Please try again later.")
        if state.expires_at is None:
            raise ValueError("lockout state has no expiry")
        self.state = state
        self.remaining_minutes = remaining_minutes
        self.lockout_expires_at: dt.datetime = state.expires_at


@dataclass
class _MemberContext:
    membership: Membership
    pets: Sequence[Pet]
    member_name: str
    pet_names: str
    expiry_date: str


class VerificationService:
    """Apply lockout, membership, offer and duplicate rules to a member code.

    Verification never creates a redemption; it only records the attempt.
    The business confirms separately once the customer is at the counter.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        observability: VerificationObservabilityStore | None = None,
    ) -> None:
        self._db = session
        self._settings = settings or get_settings()
        self._observability = observability or get_verification_store()
        self._timezone = ZoneInfo(self._settings.display_timezone)

    @property
    def rate_limit_window(self) -> dt.timedelta:
        return dt.timedelta(minutes=self._settings.verification_rate_limit_window_minutes)

    @property
    def lockout_duration(self) -> dt.timedelta:
        return dt.timedelta(minutes=self._settings.verification_lockout_minutes)

    async def lockout_state(self, business_id: UUID, *, now: dt.datetime | None = None) -> LockoutState:
        """Evaluate the business lockout from the durable attempt log."""

        now = now or utcnow()
        horizon = now - max(self.lockout_duration, self.rate_limit_window)
        stmt = select(VerificationAttempt.created_at).where(
            VerificationAttempt.business_id == business_id,
            VerificationAttempt.success.is_(False),
            VerificationAttempt.created_at >= horizon,
        )
        failures = [ensure_utc(value) for value in (await self._db.execute(stmt)).scalars()]
        return evaluate_lockout(
            failures,
            now=now,
            max_failures=self._settings.verification_max_failed_attempts,
            window=self.rate_limit_window,
            lockout=self.lockout_duration,
        )

    async def verify(self, request: VerificationRequest, *, now: dt.datetime | None = None) -> VerificationOutcome:
        now = now or utcnow()
        code = request.member_code.strip()

        lockout = await self.lockout_state(request.business_id, now=now)
        if lockout.locked:
            self._observability.record_error("RATE_LIMITED")
            logger.warning(
                "Verification blocked by lockout",
                business_id=str(request.business_id),
                lockout_expires_at=lockout.expires_at,
            )
            raise VerificationLockedError(lockout, lockout.remaining_minutes(now))

        membership = await self._find_membership(code)
        if membership is None:
            await self._record_attempt(request, code, success=False, now=now)
            return self._finish(
                VerificationOutcome(
                    status=VerificationStatus.INVALID,
                    attempts_remaining=max(lockout.remaining_attempts - 1, 0),
                ),
                request,
            )

        member = await self._member_context(membership)

        if not membership.is_active or ensure_utc(membership.expires_at) < now:
            # Any non-valid code outcome feeds the lockout counter, lapsed members included.
            await self._record_attempt(request, code, success=False, now=now)
            return self._finish(
                VerificationOutcome(
                    status=VerificationStatus.EXPIRED,
                    member_name=member.member_name,
                    pet_name=member.pet_names,
                    member_id=membership.member_number,
                    expiry_date=member.expiry_date,
                ),
                request,
            )

        await self._record_attempt(request, code, success=True, now=now)

        offer = await self._db.get(Offer, request.offer_id)
        if offer is None or offer.business_id != request.business_id:
            return self._finish(
                self._member_outcome(VerificationStatus.OFFER_UNAVAILABLE, member, message="Offer not found"),
                request,
            )

        reason = unavailability_reason(offer, now=now, timezone=self._timezone)
        if reason is not None:
            return self._finish(
                self._member_outcome(VerificationStatus.OFFER_UNAVAILABLE, member, offer=offer, message=reason),
                request,
            )

        if offer.max_redemptions is not None:
            total = await self._db.scalar(
                select(func.count()).select_from(OfferRedemption).where(OfferRedemption.offer_id == offer.id)
            )
            if (total or 0) >= offer.max_redemptions:
                return self._finish(
                    self._member_outcome(
                        VerificationStatus.LIMIT_REACHED,
                        member,
                        offer=offer,
                        message="This offer has reached its maximum redemption limit.",
                    ),
                    request,
                )

        if offer.scope is RedemptionScope.PER_PET:
            outcome = await self._per_pet_outcome(member, offer, now=now)
        else:
            outcome = await self._per_member_outcome(member, offer, now=now)
        return self._finish(outcome, request)

    async def _per_member_outcome(
        self, member: _MemberContext, offer: Offer, *, now: dt.datetime
    ) -> VerificationOutcome:
        frequency = offer.frequency
        if frequency is not RedemptionFrequency.UNLIMITED:
            key = redemption_key(member.membership.id, offer.id, MEMBER_SCOPE_KEY, period_key(frequency, now))
            redeemed = await self._existing_keys([key])
            if redeemed:
                return self._member_outcome(VerificationStatus.ALREADY_REDEEMED, member, offer=offer)

        outcome = self._member_outcome(VerificationStatus.VALID, member, offer=offer)
        outcome.offer_type = RedemptionScope.PER_MEMBER.value
        return outcome

    async def _per_pet_outcome(self, member: _MemberContext, offer: Offer, *, now: dt.datetime) -> VerificationOutcome:
        eligible = [pet for pet in member.pets if not offer.pet_type or pet.pet_type == offer.pet_type]
        if not eligible:
            label = f"{offer.pet_type}s" if offer.pet_type else "registered pets"
            return self._member_outcome(
                VerificationStatus.OFFER_UNAVAILABLE,
                member,
                offer=offer,
                message=f"This offer is only valid for {label}",
            )

        frequency = offer.frequency
        redeemed_ids: set[UUID] = set()
        if frequency is not RedemptionFrequency.UNLIMITED:
            period = period_key(frequency, now)
            keys = {
                redemption_key(member.membership.id, offer.id, str(pet.id), period): pet.id for pet in eligible
            }
            redeemed_ids = {keys[key] for key in await self._existing_keys(list(keys))}

        available = [pet for pet in eligible if pet.id not in redeemed_ids]
        if not available:
            return self._member_outcome(
                VerificationStatus.ALREADY_REDEEMED,
                member,
                offer=offer,
                message="All pets have already used this offer.",
            )

        outcome = self._member_outcome(VerificationStatus.VALID, member, offer=offer)
        outcome.offer_type = RedemptionScope.PER_PET.value
        outcome.available_pets = [AvailablePet(id=pet.id, name=pet.pet_name) for pet in available]
        outcome.total_pets = len(member.pets)
        outcome.redeemed_pets_count = len(redeemed_ids)
        return outcome

    def _member_outcome(
        self,
        status: VerificationStatus,
        member: _MemberContext,
        *,
        offer: Offer | None = None,
        message: str | None = None,
    ) -> VerificationOutcome:
        outcome = VerificationOutcome(
            status=status,
            member_name=member.member_name,
            pet_name=member.pet_names,
            member_id=member.membership.member_number,
            expiry_date=member.expiry_date,
            message=message,
        )
        if offer is not None:
            outcome.offer_title = offer.title
            if status is VerificationStatus.VALID:
                outcome.membership_id = member.membership.id
                outcome.offer_id = offer.id
                outcome.discount = describe_discount(offer)
        return outcome

    async def _find_membership(self, code: str) -> Membership | None:
        if not code:
            return None
        stmt = select(Membership).where(Membership.member_number == code)
        return (await self._db.execute(stmt)).scalar_one_or_none()

    async def _member_context(self, membership: Membership) -> _MemberContext:
        pets = await load_pets(self._db, membership.id)
        return _MemberContext(
            membership=membership,
            pets=pets,
            member_name=member_display_name(membership),
            pet_names=pet_display_names(membership, pets),
            expiry_date=self.format_expiry(membership.expires_at),
        )

    def format_expiry(self, expires_at: dt.datetime) -> str:
        return format_local_date(expires_at, self._settings.display_timezone, EXPIRY_DATE_FORMAT)

    async def _existing_keys(self, keys: list[str]) -> set[str]:
        if not keys:
            return set()
        stmt = select(OfferRedemption.redemption_key).where(OfferRedemption.redemption_key.in_(keys))
        return set((await self._db.execute(stmt)).scalars())

    async def _record_attempt(
        self,
        request: VerificationRequest,
        code: str,
        *,
        success: bool,
        now: dt.datetime,
    ) -> None:
        self._db.add(
            VerificationAttempt(
                business_id=request.business_id,
                attempted_member_id=code[:64],
                success=success,
                ip_address=request.ip_address,
                created_at=now,
            )
        )
        await self._db.flush()

    def _finish(self, outcome: VerificationOutcome, request: VerificationRequest) -> VerificationOutcome:
        self._observability.record_status(outcome.status.value)
        logger.info(
            "Member verification completed",
            business_id=str(request.business_id),
            offer_id=str(request.offer_id),
            status=outcome.status.value,
        )
        return outcome


__all__ = [
    "AvailablePet",
    "VerificationLockedError",
    "VerificationOutcome",
    "VerificationRequest",
    "VerificationService",
    "VerificationStatus",
]
