"""Name-to-callable map shared by the scheduler and the HTTP triggers."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from .birthdays import notify_business_birthdays, notify_pet_birthdays
from .memberships import expire_memberships, notify_expiring_memberships, notify_member_anniversaries

ReminderJob = Callable[..., Awaitable[Dict[str, Any]]]

JOB_REGISTRY: Dict[str, ReminderJob] = {
    "expiring-memberships": notify_expiring_memberships,
    "business-birthdays": notify_business_birthdays,
    "pet-birthdays": notify_pet_birthdays,
    "member-anniversaries": notify_member_anniversaries,
    "expire-memberships": expire_memberships,
}


__all__ = ["JOB_REGISTRY", "ReminderJob"]
