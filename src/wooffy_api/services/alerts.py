"""On-demand proactive alerts surfaced by the pet assistant."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.core.settings import Settings, get_settings
from wooffy_api.core.time import ensure_utc, utcnow
from wooffy_api.models.membership import Membership
from wooffy_api.models.notification import ProactiveAlert
from wooffy_api.services.birthdays import days_until, next_occurrence, years_between
from wooffy_api.services.members import load_pets

BIRTHDAY_COMING = "birthday_coming"
DEDUPE_WINDOW = dt.timedelta(hours=24)
HIGH_PRIORITY_DAYS = 3


@dataclass
class AlertBatch:
    alerts: list[ProactiveAlert] = field(default_factory=list)
    membership_found: bool = True

    @property
    def message(self) -> str:
        if not self.membership_found:
            return "No membership found"
        return f"Generated {len(self.alerts)} new alerts"


class ProactiveAlertService:
    def __init__(self, session: AsyncSession, *, settings: Settings | None = None) -> None:
        self._db = session
        self._settings = settings or get_settings()

    async def generate(self, user_id: UUID, *, now: dt.datetime | None = None) -> AlertBatch:
        """Create birthday alerts for the user's pets, skipping recent duplicates."""

        now = ensure_utc(now or utcnow())
        today = now.date()

        stmt = (
            select(Membership)
            .where(Membership.user_id == user_id)
            .order_by(Membership.created_at.desc())
            .limit(1)
        )
        membership = (await self._db.execute(stmt)).scalar_one_or_none()
        if membership is None:
            return AlertBatch(membership_found=False)

        recent = await self._recent_keys(user_id, since=now - DEDUPE_WINDOW)
        batch = AlertBatch()
        for pet in await load_pets(self._db, membership.id):
            if pet.birthday is None:
                continue
            remaining = days_until(pet.birthday, today)
            if remaining > self._settings.proactive_alert_birthday_horizon_days:
                continue
            if (BIRTHDAY_COMING, str(pet.id)) in recent:
                continue

            occurrence = next_occurrence(pet.birthday, today)
            age = years_between(pet.birthday, occurrence)
            alert = ProactiveAlert(
                user_id=user_id,
                alert_type=BIRTHDAY_COMING,
                title=f"🎂 {pet.pet_name}'s birthday is coming up!",
                message=(
                    f"{pet.pet_name} will be {age} year{'s' if age != 1 else ''} old on "
                    f"{occurrence:%d/%m/%Y}! Check out our partner offers for pet treats and gifts."
                ),
                priority="high" if remaining <= HIGH_PRIORITY_DAYS else "normal",
                data={
                    "pet_name": pet.pet_name,
                    "pet_id": str(pet.id),
                    "birthday": pet.birthday.isoformat(),
                    "age": age,
                    "days_until": remaining,
                },
                expires_at=dt.datetime.combine(occurrence, dt.time(), tzinfo=dt.timezone.utc)
                + dt.timedelta(days=1),
                created_at=now,
            )
            self._db.add(alert)
            batch.alerts.append(alert)

        if batch.alerts:
            await self._db.flush()
        logger.info("Proactive alerts generated", user_id=str(user_id), created=len(batch.alerts))
        return batch

    async def _recent_keys(self, user_id: UUID, *, since: dt.datetime) -> set[tuple[str, str]]:
        stmt = select(ProactiveAlert.alert_type, ProactiveAlert.data).where(
            ProactiveAlert.user_id == user_id,
            ProactiveAlert.is_dismissed.is_(False),
            ProactiveAlert.created_at >= since,
        )
        keys: set[tuple[str, str]] = set()
        for alert_type, data in (await self._db.execute(stmt)).all():
            pet_id = (data or {}).get("pet_id")
            if pet_id:
                keys.add((alert_type, str(pet_id)))
        return keys


__all__ = ["AlertBatch", "BIRTHDAY_COMING", "ProactiveAlertService"]
