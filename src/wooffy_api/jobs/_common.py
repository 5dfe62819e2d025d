"""Plumbing shared by the reminder jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

from sqlalchemy.ext.asyncio import AsyncSession

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]


async def open_session(session_factory: SessionFactory) -> AsyncSession:
    maybe_session = session_factory()
    if isinstance(maybe_session, AsyncSession):
        return maybe_session
    return await maybe_session


@dataclass
class JobTally:
    notifications_sent: int = 0
    emails_sent: int = 0
    skipped: int = 0
    failures: int = 0

    def summary(self, message: str, **extra: Any) -> Dict[str, Any]:
        return {
            "message": message,
            "notificationsSent": self.notifications_sent,
            "emailsSent": self.emails_sent,
            "skipped": self.skipped,
            "failures": self.failures,
            **extra,
        }


__all__ = ["JobTally", "SessionFactory", "open_session"]
