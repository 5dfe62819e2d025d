"""Offer rules shared by verification and redemption confirmation."""

from __future__ import annotations

import datetime as dt
import secrets
from decimal import Decimal
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from wooffy_api.core.time import ensure_utc
from wooffy_api.models.offer import DiscountType, Offer, RedemptionFrequency, RedemptionScope

MEMBER_SCOPE_KEY = "member"

_FREQUENCY_PERIOD_LABEL = {
    RedemptionFrequency.DAILY: "day",
    RedemptionFrequency.WEEKLY: "week",
    RedemptionFrequency.MONTHLY: "month",
}


def _format_number(value: Any) -> str:
    if value is None:
        return "0"
    number = value if isinstance(value, Decimal) else Decimal(str(value))
    if number == number.to_integral_value():
        return str(number.quantize(Decimal(1)))
    return format(number.normalize(), "f")


def discount_text(offer: Offer) -> str:
    """Short discount label, e.g. ``15%`` or ``€5``."""

    kind = offer.discount_type
    if kind == DiscountType.PERCENTAGE.value:
        return f"{_format_number(offer.discount_value)}%"
    if kind == DiscountType.FIXED.value:
        return f"€{_format_number(offer.discount_value)}"
    if kind == DiscountType.BOGO.value:
        return "Buy one get one"
    if kind == DiscountType.FREE_ITEM.value:
        return "Free item"
    return _format_number(offer.discount_value)


def describe_discount(offer: Offer) -> str:
    return f"{discount_text(offer)} - {offer.title}"


def unavailability_reason(offer: Offer, *, now: dt.datetime, timezone: ZoneInfo) -> str | None:
    """Return why ``offer`` cannot be redeemed at ``now``, or ``None``."""

    if not offer.is_active:
        return "Offer is no longer active"
    if offer.valid_from is not None and now < ensure_utc(offer.valid_from):
        return "Offer has not started yet"
    if offer.valid_until is not None and now > ensure_utc(offer.valid_until):
        return "Offer has ended"

    local = now.astimezone(timezone)
    days = offer.available_days or []
    if days and local.isoweekday() not in {int(day) for day in days}:
        return "Offer is not available today"

    start_hour, end_hour = offer.available_from_hour, offer.available_until_hour
    if start_hour is not None and local.hour < start_hour:
        return "Offer is not available at this hour"
    if end_hour is not None and local.hour >= end_hour:
        return "Offer is not available at this hour"
    return None


def period_key(frequency: RedemptionFrequency, now: dt.datetime) -> str:
    """Bucket ``now`` into the redemption window for ``frequency`` (UTC)."""

    today = ensure_utc(now).date()
    if frequency is RedemptionFrequency.DAILY:
        return today.isoformat()
    if frequency is RedemptionFrequency.WEEKLY:
        return (today - dt.timedelta(days=today.weekday())).isoformat()
    if frequency is RedemptionFrequency.MONTHLY:
        return f"{today:%Y-%m}"
    if frequency is RedemptionFrequency.UNLIMITED:
        return secrets.token_hex(8)
    return "once"


def redemption_key(membership_id: UUID, offer_id: UUID, scope_key: str, period: str) -> str:
    return f"{membership_id}:{offer_id}:{scope_key}:{period}"


def scope_key_for(offer: Offer, pet_id: UUID | None) -> str:
    if offer.scope is RedemptionScope.PER_PET and pet_id is not None:
        return str(pet_id)
    return MEMBER_SCOPE_KEY


def already_redeemed_message(frequency: RedemptionFrequency, *, per_pet: bool) -> str:
    subject = "This pet has" if per_pet else "You have"
    label = _FREQUENCY_PERIOD_LABEL.get(frequency)
    if label is None:
        return "This pet has already used this offer" if per_pet else "Offer already redeemed"
    return f"{subject} already used this offer this {label}"


__all__ = [
    "MEMBER_SCOPE_KEY",
    "already_redeemed_message",
    "describe_discount",
    "discount_text",
    "period_key",
    "redemption_key",
    "scope_key_for",
    "unavailability_reason",
]
