"""Membership lifecycle jobs: expiry reminders, deactivation and anniversaries."""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Any, Dict
from uuid import UUID

from loguru import logger
from sqlalchemy import select

from wooffy_api.core.settings import Settings, get_settings
from wooffy_api.core.time import ensure_utc, format_local_date, utcnow
from wooffy_api.models.membership import Membership
from wooffy_api.models.notification import NotificationType
from wooffy_api.services.birthdays import is_anniversary, years_between
from wooffy_api.services.notifications import EmailBackend, NotificationService, build_email_backend
from wooffy_api.services.notifications.templates import (
    EXPIRY_3_DAYS,
    EXPIRY_7_DAYS,
    EXPIRY_30_DAYS,
    render_member_anniversary,
    render_membership_expired,
    render_membership_expiry,
)

from ._common import JobTally, SessionFactory, open_session

# Each expiry tier fires at most once per membership, ever.
EXPIRY_TIER_PERIOD = "tier"


@dataclass(frozen=True)
class _MemberRow:
    membership_id: UUID
    user_id: UUID
    member_number: str
    expires_at: dt.datetime
    created_at: dt.datetime
    email: str | None
    full_name: str | None


def _member_row(membership: Membership) -> _MemberRow:
    user = membership.user
    return _MemberRow(
        membership_id=membership.id,
        user_id=membership.user_id,
        member_number=membership.member_number,
        expires_at=ensure_utc(membership.expires_at),
        created_at=ensure_utc(membership.created_at),
        email=user.email if user is not None else None,
        full_name=user.full_name if user is not None else None,
    )


def expiry_tier(days_left: int) -> str | None:
    """Bucket days left into a reminder tier; the tightest tier wins."""

    if days_left <= 3:
        return EXPIRY_3_DAYS
    if days_left <= 7:
        return EXPIRY_7_DAYS
    if days_left <= 30:
        return EXPIRY_30_DAYS
    return None


def _resolve_backend(email_backend: EmailBackend | None, settings: Settings) -> EmailBackend | None:
    return email_backend if email_backend is not None else build_email_backend(settings)


async def notify_expiring_memberships(
    *,
    session_factory: SessionFactory,
    now: dt.datetime | None = None,
    email_backend: EmailBackend | None = None,
    settings: Settings | None = None,
) -> Dict[str, Any]:
    """Remind members whose membership lapses within the reminder horizon."""

    settings = settings or get_settings()
    now = ensure_utc(now or utcnow())
    horizon = now + dt.timedelta(days=settings.expiry_reminder_horizon_days)
    backend = _resolve_backend(email_backend, settings)

    async with await open_session(session_factory) as session:
        stmt = (
            select(Membership)
            .where(
                Membership.is_active.is_(True),
                Membership.expires_at > now,
                Membership.expires_at <= horizon,
            )
            .order_by(Membership.expires_at)
        )
        rows = [_member_row(membership) for membership in (await session.execute(stmt)).scalars()]

    tally = JobTally()
    renew_url = f"{settings.frontend_url.rstrip('/')}/membership"
    for row in rows:
        days_left = math.ceil((row.expires_at - now).total_seconds() / 86400)
        tier = expiry_tier(days_left)
        if tier is None:
            continue

        try:
            async with await open_session(session_factory) as session:
                service = NotificationService(session, backend=backend)
                claimed = await service.claim_dispatch_key(
                    str(row.membership_id), tier, EXPIRY_TIER_PERIOD, user_id=row.user_id
                )
                if not claimed:
                    tally.skipped += 1
                    continue

                template = render_membership_expiry(
                    tier,
                    contact_name=row.full_name,
                    expires_on=format_local_date(row.expires_at, settings.display_timezone),
                    days_left=days_left,
                    renew_url=renew_url,
                )
                await service.create_notification(
                    row.user_id,
                    NotificationType.MEMBERSHIP_EXPIRY.value,
                    title=template.subject,
                    message=template.summary,
                    data={"days_left": days_left, "membership_id": str(row.membership_id), "tier": tier},
                )
                await session.commit()
                tally.notifications_sent += 1

                if await service.send_email(
                    row.email,
                    template,
                    event_type=tier,
                    metadata={"membership_id": str(row.membership_id)},
                ):
                    tally.emails_sent += 1
        except Exception:  # noqa: BLE001 - one member must not abort the batch
            tally.failures += 1
            logger.exception("Expiry reminder failed", membership_id=str(row.membership_id), tier=tier)

    summary = tally.summary(
        f"Sent {tally.notifications_sent} expiry reminders",
        totalExpiring=len(rows),
        timestamp=now.isoformat(),
    )
    logger.bind(summary=summary).info("Expiring membership reminders completed")
    return summary


async def expire_memberships(
    *,
    session_factory: SessionFactory,
    now: dt.datetime | None = None,
    email_backend: EmailBackend | None = None,
    settings: Settings | None = None,
) -> Dict[str, Any]:
    """Deactivate memberships past their grace period and tell the member."""

    settings = settings or get_settings()
    now = ensure_utc(now or utcnow())
    cutoff = now - dt.timedelta(days=settings.membership_grace_period_days)
    backend = _resolve_backend(email_backend, settings)

    async with await open_session(session_factory) as session:
        stmt = select(Membership).where(Membership.is_active.is_(True), Membership.expires_at < cutoff)
        rows = [_member_row(membership) for membership in (await session.execute(stmt)).scalars()]

    tally = JobTally()
    deactivated: list[dict[str, str]] = []
    for row in rows:
        try:
            async with await open_session(session_factory) as session:
                membership = await session.get(Membership, row.membership_id)
                if membership is None or not membership.is_active:
                    tally.skipped += 1
                    continue
                membership.is_active = False

                service = NotificationService(session, backend=backend)
                template = render_membership_expired(contact_name=row.full_name, member_number=row.member_number)
                await service.create_notification(
                    row.user_id,
                    NotificationType.MEMBERSHIP_EXPIRED.value,
                    title=template.subject,
                    message=template.summary,
                    data={"membership_id": str(row.membership_id), "member_number": row.member_number},
                )
                await session.commit()
                tally.notifications_sent += 1
                deactivated.append(
                    {
                        "id": str(row.membership_id),
                        "memberNumber": row.member_number,
                        "expiredAt": row.expires_at.isoformat(),
                    }
                )

                if await service.send_email(
                    row.email,
                    template,
                    event_type=NotificationType.MEMBERSHIP_EXPIRED.value,
                    metadata={"membership_id": str(row.membership_id)},
                ):
                    tally.emails_sent += 1
        except Exception:  # noqa: BLE001 - one member must not abort the batch
            tally.failures += 1
            logger.exception("Membership deactivation failed", membership_id=str(row.membership_id))

    message = (
        f"Deactivated {len(deactivated)} expired memberships" if rows else "No memberships to expire"
    )
    summary = tally.summary(message, count=len(deactivated), deactivated=deactivated)
    logger.bind(summary={key: value for key, value in summary.items() if key != "deactivated"}).info(
        "Membership expiry sweep completed"
    )
    return summary


async def notify_member_anniversaries(
    *,
    session_factory: SessionFactory,
    now: dt.datetime | None = None,
    email_backend: EmailBackend | None = None,
    settings: Settings | None = None,
) -> Dict[str, Any]:
    """Celebrate members whose signup anniversary is today (UTC)."""

    settings = settings or get_settings()
    now = ensure_utc(now or utcnow())
    today = now.date()
    backend = _resolve_backend(email_backend, settings)

    async with await open_session(session_factory) as session:
        stmt = select(Membership).where(Membership.is_active.is_(True))
        rows = [_member_row(membership) for membership in (await session.execute(stmt)).scalars()]

    tally = JobTally()
    for row in rows:
        joined = row.created_at.date()
        if not is_anniversary(joined, today):
            continue
        years = years_between(joined, today)
        if years < 1:
            continue

        try:
            async with await open_session(session_factory) as session:
                service = NotificationService(session, backend=backend)
                claimed = await service.claim_dispatch_key(
                    str(row.membership_id),
                    NotificationType.ANNIVERSARY.value,
                    today.isoformat(),
                    user_id=row.user_id,
                )
                if not claimed:
                    tally.skipped += 1
                    continue

                template = render_member_anniversary(contact_name=row.full_name, years=years)
                await service.create_notification(
                    row.user_id,
                    NotificationType.ANNIVERSARY.value,
                    title=template.subject,
                    message=template.summary,
                    data={"years": years, "membership_id": str(row.membership_id)},
                )
                await session.commit()
                tally.notifications_sent += 1

                if await service.send_email(
                    row.email,
                    template,
                    event_type=NotificationType.ANNIVERSARY.value,
                    metadata={"membership_id": str(row.membership_id), "years": years},
                ):
                    tally.emails_sent += 1
        except Exception:  # noqa: BLE001 - one member must not abort the batch
            tally.failures += 1
            logger.exception("Anniversary notification failed", membership_id=str(row.membership_id))

    summary = tally.summary(f"Sent {tally.notifications_sent} anniversary notifications")
    logger.bind(summary=summary).info("Member anniversary notifications completed")
    return summary


__all__ = [
    "expire_memberships",
    "expiry_tier",
    "notify_expiring_memberships",
    "notify_member_anniversaries",
]
