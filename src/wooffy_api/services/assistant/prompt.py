"""System prompt assembly for the pet health assistant."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.models.business import Business
from wooffy_api.models.membership import Membership, Pet
from wooffy_api.models.offer import Offer
from wooffy_api.models.redemption import OfferRedemption
from wooffy_api.models.user import User
from wooffy_api.services.members import load_pets

MAX_CONTEXT_PETS = 100
MAX_CONTEXT_REDEMPTIONS = 5
MAX_ROLE_LENGTH = 20

SYSTEM_PROMPT = """You are Wooffy, a warm and knowledgeable AI pet health assistant for Wooffy members.

## WHAT YOU DO
- Give personalised pet health advice using the pet's breed, age and notes
- Help interpret symptoms and behaviour, always recommending a vet for serious concerns
- Plan preventive care: vaccinations, dental care, parasite prevention
- Suggest relevant Wooffy partner offers when they fit the pet's needs

## RESPONSE GUIDELINES
- Keep answers concise (2-3 paragraphs unless more detail is needed)
- Address pets by name when you know it
- Never diagnose definitively; suggest possibilities and recommend professional evaluation
- Always reply in the language the user writes in

## DISCLAIMER (include when discussing health concerns)
"Remember, I'm an AI assistant and can't replace professional veterinary care. If you're concerned about your \
pet's health, please consult your veterinarian."
"""


@dataclass
class AssistantContext:
    user: User | None = None
    membership: Membership | None = None
    pets: Sequence[Pet] = field(default_factory=list)
    redemptions: Sequence[tuple[str, str, dt.datetime]] = field(default_factory=list)


def sanitize_messages(
    messages: Iterable[Mapping[str, Any]],
    *,
    max_messages: int,
    max_length: int,
) -> list[dict[str, str]]:
    """Keep the newest messages and clip roles and contents."""

    trimmed = list(messages)[-max_messages:] if max_messages > 0 else []
    return [
        {
            "role": str(message.get("role") or "user")[:MAX_ROLE_LENGTH],
            "content": str(message.get("content") or "")[:max_length],
        }
        for message in trimmed
    ]


def describe_age(birthday: dt.date | None, today: dt.date) -> str:
    if birthday is None:
        return "Unknown"
    months = (today.year - birthday.year) * 12 + (today.month - birthday.month)
    if today.day < birthday.day:
        months -= 1
    if months < 0:
        return "Unknown"
    if months < 12:
        return f"{months} month{'s' if months != 1 else ''} old"
    years = months // 12
    return f"{years} year{'s' if years != 1 else ''} old"


async def load_context(session: AsyncSession, user_id: UUID) -> AssistantContext:
    context = AssistantContext(user=await session.get(User, user_id))

    stmt = (
        select(Membership)
        .where(Membership.user_id == user_id)
        .order_by(Membership.created_at.desc())
        .limit(1)
    )
    context.membership = (await session.execute(stmt)).scalar_one_or_none()
    if context.membership is None:
        return context

    context.pets = (await load_pets(session, context.membership.id))[:MAX_CONTEXT_PETS]
    redemptions = (
        select(Offer.title, Business.business_name, OfferRedemption.redeemed_at)
        .join(Offer, Offer.id == OfferRedemption.offer_id)
        .join(Business, Business.id == OfferRedemption.business_id)
        .where(OfferRedemption.membership_id == context.membership.id)
        .order_by(OfferRedemption.redeemed_at.desc())
        .limit(MAX_CONTEXT_REDEMPTIONS)
    )
    context.redemptions = [tuple(row) for row in (await session.execute(redemptions)).all()]
    return context


def _context_sections(context: AssistantContext, today: dt.date) -> list[str]:
    parts: list[str] = []
    if context.user is not None:
        parts.append(
            "## USER PROFILE\n"
            f"- Name: {context.user.full_name or 'Unknown'}\n"
            f"- Email: {context.user.email or 'Unknown'}"
        )

    membership = context.membership
    if membership is not None:
        expires = membership.expires_at.strftime("%d/%m/%Y") if membership.expires_at else "Unknown"
        parts.append(
            "## MEMBERSHIP\n"
            f"- Plan: {membership.plan_type or 'single'}\n"
            f"- Member Number: {membership.member_number}\n"
            f"- Active: {'Yes' if membership.is_active else 'No'}\n"
            f"- Expires: {expires}"
        )

    if context.pets:
        parts.append(f"## PETS ({len(context.pets)} total)")
        for index, pet in enumerate(context.pets, start=1):
            parts.append(
                f"### Pet {index}: {pet.pet_name[:100]}\n"
                f"- Type: {pet.pet_type}\n"
                f"- Breed: {(pet.pet_breed or 'Mixed/Unknown')[:100]}\n"
                f"- Birthday: {pet.birthday.isoformat() if pet.birthday else 'Not set'}\n"
                f"- Age: {describe_age(pet.birthday, today)}\n"
                f"- Notes: {(pet.notes or 'None')[:500]}"
            )

    if context.redemptions:
        parts.append("## RECENT OFFER REDEMPTIONS")
        for title, business_name, redeemed_at in context.redemptions:
            parts.append(f"- {title[:100]} at {business_name[:100]} ({redeemed_at:%d/%m/%Y})")
    return parts


def build_system_prompt(
    context: AssistantContext | None,
    *,
    pet_info: Mapping[str, Any] | None = None,
    today: dt.date | None = None,
) -> str:
    """Append what we know about the caller (or the ad hoc pet info) to the base prompt."""

    today = today or dt.date.today()
    parts = _context_sections(context, today) if context is not None else []
    if parts:
        return SYSTEM_PROMPT + "\n\n---\n# CONTEXT ABOUT THIS USER\n" + "\n\n".join(parts)
    if pet_info:
        return (
            SYSTEM_PROMPT
            + "\n\n**Current pet context:**\n"
            + f"- Pet name: {str(pet_info.get('name') or 'Unknown')[:100]}\n"
            + f"- Breed: {str(pet_info.get('breed') or 'Unknown')[:100]}"
        )
    return SYSTEM_PROMPT


__all__ = [
    "AssistantContext",
    "SYSTEM_PROMPT",
    "build_system_prompt",
    "describe_age",
    "load_context",
    "sanitize_messages",
]
