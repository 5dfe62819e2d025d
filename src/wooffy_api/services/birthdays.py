"""Calendar arithmetic for pet birthdays and membership anniversaries.

Everything here works on plain UTC calendar dates so results do not drift
with the server's local timezone.
"""

from __future__ import annotations

import datetime as dt


def observed_on(month: int, day: int, year: int) -> dt.date:
    """Return the date a yearly event falls on in ``year``.

    February 29 is observed on February 28 in non-leap years.
    """

    try:
        return dt.date(year, month, day)
    except ValueError:
        if (month, day) != (2, 29):
            raise
        return dt.date(year, 2, 28)


def next_occurrence(origin: dt.date, today: dt.date) -> dt.date:
    """The first anniversary of ``origin`` on or after ``today``."""

    candidate = observed_on(origin.month, origin.day, today.year)
    if candidate < today:
        candidate = observed_on(origin.month, origin.day, today.year + 1)
    return candidate


def days_until(origin: dt.date, today: dt.date) -> int:
    return (next_occurrence(origin, today) - today).days


def years_between(origin: dt.date, occurrence: dt.date) -> int:
    return occurrence.year - origin.year


def is_anniversary(origin: dt.date, today: dt.date) -> bool:
    return observed_on(origin.month, origin.day, today.year) == today


__all__ = ["days_until", "is_anniversary", "next_occurrence", "observed_on", "years_between"]
