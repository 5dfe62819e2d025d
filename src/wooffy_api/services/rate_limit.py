"""Sliding-window rate limiting.

Two flavours share the same window arithmetic:

* :func:`evaluate_lockout` works on failure timestamps loaded from the durable
  verification attempt log and is what the member verification endpoint uses.
  Every server instance sees the same rows, so the cap holds under horizontal
  scaling.
* :class:`SlidingWindowRateLimiter` keeps timestamps in process memory. It is
  only suitable for soft limits (the assistant chat proxy): counters reset on
  restart and are not shared between instances.
"""

from __future__ import annotations

import datetime as dt
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from threading import Lock


@dataclass(frozen=True)
class LockoutState:
    """Lockout decision for a business derived from recent failures."""

    locked: bool
    expires_at: dt.datetime | None
    recent_failures: int
    remaining_attempts: int

    def remaining_minutes(self, now: dt.datetime) -> int:
        if self.expires_at is None:
            return 0
        return max(math.ceil((self.expires_at - now).total_seconds() / 60), 0)


def evaluate_lockout(
    failure_times: Iterable[dt.datetime],
    *,
    now: dt.datetime,
    max_failures: int,
    window: dt.timedelta,
    lockout: dt.timedelta,
) -> LockoutState:
    """Decide whether recent failures amount to an active lockout.

    A lockout starts when ``max_failures`` failures land inside one ``window``
    and lasts ``lockout`` from the oldest failure of the earliest burst that is
    still in force.
    """

    horizon = now - max(lockout, window)
    times = sorted(ts for ts in failure_times if horizon <= ts <= now)
    recent = sum(1 for ts in times if ts >= now - window)
    remaining = max(max_failures - recent, 0)

    expires_at: dt.datetime | None = None
    if max_failures > 0:
        for start in range(0, len(times) - max_failures + 1):
            burst_start = times[start]
            if times[start + max_failures - 1] - burst_start > window:
                continue
            candidate = burst_start + lockout
            if candidate > now:
                expires_at = candidate
                break

    return LockoutState(
        locked=expires_at is not None,
        expires_at=expires_at,
        recent_failures=recent,
        remaining_attempts=0 if expires_at is not None else remaining,
    )


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: int


class SlidingWindowRateLimiter:
    """Per-key request log pruned on every check."""

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        cleanup_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._clock = clock
        self._lock = Lock()
        self._requests: dict[str, list[float]] = {}
        self._last_cleanup = clock()

    def __len__(self) -> int:
        return len(self._requests)

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for ``key`` unless it would exceed the limit."""

        with self._lock:
            now = self._clock()
            self._sweep(now)

            cutoff = now - self.window_seconds
            requests = [ts for ts in self._requests.get(key, []) if ts > cutoff]

            if len(requests) >= self.limit:
                self._requests[key] = requests
                reset_in = math.ceil(requests[0] + self.window_seconds - now) if requests else 0
                return RateLimitDecision(allowed=False, limit=self.limit, remaining=0, reset_in_seconds=max(reset_in, 0))

            requests.append(now)
            self._requests[key] = requests
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=self.limit - len(requests),
                reset_in_seconds=math.ceil(self.window_seconds),
            )

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
            self._last_cleanup = self._clock()

    def _sweep(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval_seconds:
            return
        self._last_cleanup = now
        cutoff = now - self.window_seconds
        for key in list(self._requests):
            alive = [ts for ts in self._requests[key] if ts > cutoff]
            if alive:
                self._requests[key] = alive
            else:
                del self._requests[key]


__all__ = [
    "LockoutState",
    "RateLimitDecision",
    "SlidingWindowRateLimiter",
    "evaluate_lockout",
]
