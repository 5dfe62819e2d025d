"""Recurring reminder job entrypoints."""

from .birthdays import notify_business_birthdays, notify_pet_birthdays
from .memberships import expire_memberships, notify_expiring_memberships, notify_member_anniversaries

__all__ = [
    "expire_memberships",
    "notify_business_birthdays",
    "notify_expiring_memberships",
    "notify_member_anniversaries",
    "notify_pet_birthdays",
]
