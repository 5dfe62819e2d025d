"""UTC helpers shared by services and jobs."""

from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def format_local_date(value: dt.datetime, timezone_name: str, fmt: str = "%d/%m/%Y") -> str:
    """Render ``value`` as a calendar date in the display timezone."""

    return ensure_utc(value).astimezone(ZoneInfo(timezone_name)).strftime(fmt)
