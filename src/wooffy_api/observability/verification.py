from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class VerificationSnapshot:
    statuses: Dict[str, int]
    errors: Dict[str, int]
    redemptions: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "statuses": dict(self.statuses),
            "errors": dict(self.errors),
            "redemptions": dict(self.redemptions),
        }


class VerificationObservabilityStore:
    """Counts verification outcomes and redemption confirmations."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._statuses: Dict[str, int] = defaultdict(int)
        self._errors: Dict[str, int] = defaultdict(int)
        self._redemptions: Dict[str, int] = defaultdict(int)

    def record_status(self, status: str) -> None:
        with self._lock:
            self._statuses[status] += 1

    def record_error(self, code: str) -> None:
        with self._lock:
            self._errors[code] += 1

    def record_redemption(self, outcome: str) -> None:
        with self._lock:
            self._redemptions[outcome] += 1

    def snapshot(self) -> VerificationSnapshot:
        with self._lock:
            return VerificationSnapshot(
                statuses=dict(self._statuses),
                errors=dict(self._errors),
                redemptions=dict(self._redemptions),
            )

    def reset(self) -> None:
        with self._lock:
            self._statuses.clear()
            self._errors.clear()
            self._redemptions.clear()


_STORE = VerificationObservabilityStore()


def get_verification_store() -> VerificationObservabilityStore:
    return _STORE


__all__ = ["VerificationObservabilityStore", "VerificationSnapshot", "get_verification_store"]
