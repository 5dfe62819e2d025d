"""Pet birthday reminder jobs for partner businesses and pet owners."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Dict
from uuid import UUID

from loguru import logger
from sqlalchemy import select

from wooffy_api.core.settings import Settings, get_settings
from wooffy_api.core.time import ensure_utc, utcnow
from wooffy_api.models.business import Business, BusinessBirthdaySettings
from wooffy_api.models.membership import Pet
from wooffy_api.models.notification import NotificationType
from wooffy_api.models.redemption import OfferRedemption
from wooffy_api.services.birthdays import days_until, next_occurrence, years_between
from wooffy_api.services.notifications import EmailBackend, NotificationService, build_email_backend
from wooffy_api.services.notifications.templates import (
    render_business_birthday_reminder,
    render_pet_birthday,
)

from ._common import JobTally, SessionFactory, open_session


@dataclass(frozen=True)
class _BusinessRow:
    business_id: UUID
    owner_user_id: UUID
    business_name: str
    email: str | None
    custom_message: str | None


@dataclass(frozen=True)
class _PetRow:
    pet_id: UUID
    pet_name: str
    pet_breed: str | None
    pet_type: str
    birthday: dt.date
    owner_user_id: UUID
    owner_name: str | None
    owner_email: str | None


def _pet_row(pet: Pet) -> _PetRow:
    owner = pet.owner
    return _PetRow(
        pet_id=pet.id,
        pet_name=pet.pet_name,
        pet_breed=pet.pet_breed,
        pet_type=pet.pet_type,
        birthday=pet.birthday,
        owner_user_id=pet.owner_user_id,
        owner_name=owner.full_name if owner is not None else None,
        owner_email=owner.email if owner is not None else None,
    )


async def notify_business_birthdays(
    *,
    session_factory: SessionFactory,
    now: dt.datetime | None = None,
    email_backend: EmailBackend | None = None,
    settings: Settings | None = None,
) -> Dict[str, Any]:
    """Tell opted-in businesses about upcoming birthdays of their customers' pets.

    Customers are the memberships that ever redeemed an offer at the business.
    A reminder fires when the next birthday is a configured number of days
    away and at most once per business and pet per UTC day.
    """

    settings = settings or get_settings()
    now = ensure_utc(now or utcnow())
    today = now.date()
    reminder_days = set(settings.birthday_reminder_days)
    backend = email_backend if email_backend is not None else build_email_backend(settings)

    async with await open_session(session_factory) as session:
        stmt = (
            select(Business, BusinessBirthdaySettings.custom_message)
            .join(BusinessBirthdaySettings, BusinessBirthdaySettings.business_id == Business.id)
            .where(BusinessBirthdaySettings.enabled.is_(True))
        )
        businesses = [
            _BusinessRow(
                business_id=business.id,
                owner_user_id=business.user_id,
                business_name=business.business_name,
                email=business.email or (business.owner.email if business.owner is not None else None),
                custom_message=custom_message,
            )
            for business, custom_message in (await session.execute(stmt)).all()
        ]

        upcoming: dict[UUID, list[tuple[_PetRow, int]]] = {}
        for business in businesses:
            customers = (
                select(OfferRedemption.membership_id)
                .where(OfferRedemption.business_id == business.business_id)
                .distinct()
            )
            pets_stmt = select(Pet).where(Pet.membership_id.in_(customers), Pet.birthday.is_not(None))
            for pet in (await session.execute(pets_stmt)).scalars():
                remaining = days_until(pet.birthday, today)
                if remaining in reminder_days:
                    upcoming.setdefault(business.business_id, []).append((_pet_row(pet), remaining))

    if not businesses:
        summary = JobTally().summary("No businesses with birthday reminders enabled")
        logger.bind(summary=summary).info("Business birthday reminders completed")
        return summary

    tally = JobTally()
    for business in businesses:
        for pet, remaining in upcoming.get(business.business_id, []):
            occurrence = next_occurrence(pet.birthday, today)
            age = years_between(pet.birthday, occurrence)
            try:
                async with await open_session(session_factory) as session:
                    service = NotificationService(session, backend=backend)
                    claimed = await service.claim_dispatch_key(
                        f"{business.business_id}:{pet.pet_id}",
                        NotificationType.BUSINESS_BIRTHDAY_REMINDER.value,
                        today.isoformat(),
                        user_id=business.owner_user_id,
                    )
                    if not claimed:
                        tally.skipped += 1
                        continue

                    owner_name = pet.owner_name or "A customer"
                    template = render_business_birthday_reminder(
                        business_name=business.business_name,
                        owner_name=owner_name,
                        pet_name=pet.pet_name,
                        pet_breed=pet.pet_breed,
                        age=age,
                        days_until=remaining,
                        custom_message=business.custom_message,
                    )
                    await service.create_notification(
                        business.owner_user_id,
                        NotificationType.BUSINESS_BIRTHDAY_REMINDER.value,
                        title=template.subject,
                        message=template.summary,
                        data={
                            "pet_id": str(pet.pet_id),
                            "pet_name": pet.pet_name,
                            "pet_breed": pet.pet_breed,
                            "owner_user_id": str(pet.owner_user_id),
                            "owner_name": owner_name,
                            "birthday": pet.birthday.isoformat(),
                            "age": age,
                            "days_until": remaining,
                            "business_id": str(business.business_id),
                        },
                    )
                    await session.commit()
                    tally.notifications_sent += 1
                    logger.info(
                        "Birthday reminder recorded",
                        business_id=str(business.business_id),
                        pet_id=str(pet.pet_id),
                        days_until=remaining,
                    )

                    if await service.send_email(
                        business.email,
                        template,
                        event_type=NotificationType.BUSINESS_BIRTHDAY_REMINDER.value,
                        metadata={"business_id": str(business.business_id), "pet_id": str(pet.pet_id)},
                    ):
                        tally.emails_sent += 1
            except Exception:  # noqa: BLE001 - one pet must not abort the batch
                tally.failures += 1
                logger.exception(
                    "Business birthday reminder failed",
                    business_id=str(business.business_id),
                    pet_id=str(pet.pet_id),
                )

    summary = tally.summary(
        f"Sent {tally.notifications_sent} birthday reminder notifications",
        businessesChecked=len(businesses),
    )
    logger.bind(summary=summary).info("Business birthday reminders completed")
    return summary


async def notify_pet_birthdays(
    *,
    session_factory: SessionFactory,
    now: dt.datetime | None = None,
    email_backend: EmailBackend | None = None,
    settings: Settings | None = None,
) -> Dict[str, Any]:
    """Wish pets a happy birthday on the day, from their first birthday on."""

    settings = settings or get_settings()
    now = ensure_utc(now or utcnow())
    today = now.date()
    backend = email_backend if email_backend is not None else build_email_backend(settings)

    async with await open_session(session_factory) as session:
        stmt = select(Pet).where(Pet.birthday.is_not(None))
        pets = [
            _pet_row(pet)
            for pet in (await session.execute(stmt)).scalars()
            if days_until(pet.birthday, today) == 0
        ]

    tally = JobTally()
    for pet in pets:
        age = years_between(pet.birthday, today)
        if age < 1:
            continue

        try:
            async with await open_session(session_factory) as session:
                service = NotificationService(session, backend=backend)
                claimed = await service.claim_dispatch_key(
                    str(pet.pet_id),
                    NotificationType.PET_BIRTHDAY.value,
                    today.isoformat(),
                    user_id=pet.owner_user_id,
                )
                if not claimed:
                    tally.skipped += 1
                    continue

                template = render_pet_birthday(contact_name=pet.owner_name, pet_name=pet.pet_name, age=age)
                await service.create_notification(
                    pet.owner_user_id,
                    NotificationType.PET_BIRTHDAY.value,
                    title=template.subject,
                    message=template.summary,
                    data={
                        "pet_id": str(pet.pet_id),
                        "pet_name": pet.pet_name,
                        "pet_breed": pet.pet_breed,
                        "pet_type": pet.pet_type,
                        "age": age,
                    },
                )
                await session.commit()
                tally.notifications_sent += 1

                if await service.send_email(
                    pet.owner_email,
                    template,
                    event_type=NotificationType.PET_BIRTHDAY.value,
                    metadata={"pet_id": str(pet.pet_id), "age": age},
                ):
                    tally.emails_sent += 1
        except Exception:  # noqa: BLE001 - one pet must not abort the batch
            tally.failures += 1
            logger.exception("Pet birthday notification failed", pet_id=str(pet.pet_id))

    summary = tally.summary(f"Sent {tally.notifications_sent} pet birthday notifications")
    logger.bind(summary=summary).info("Pet birthday notifications completed")
    return summary


__all__ = ["notify_business_birthdays", "notify_pet_birthdays"]
