"""Dispatch metrics for the reminder job scheduler."""

from __future__ import annotations

import datetime as dt
from collections import Counter
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict

from wooffy_api.core.time import utcnow


@dataclass
class JobRunState:
    job_id: str
    task: str
    counters: Counter = field(default_factory=Counter)
    runtime_seconds: float = 0.0
    last_started_at: dt.datetime | None = None
    last_success_at: dt.datetime | None = None
    last_error_at: dt.datetime | None = None
    last_error: str | None = None
    last_summary: Dict[str, Any] | None = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "job_id": self.job_id,
            "task": self.task,
            "totals": {
                key: self.counters.get(key, 0)
                for key in ("runs", "success", "run_failures", "attempt_failures", "retries", "consecutive_failures")
            },
            "runtime_seconds": round(self.runtime_seconds, 3),
            "last_started_at": self.last_started_at.isoformat() if self.last_started_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
            "last_error": self.last_error,
            "last_summary": self.last_summary,
        }


@dataclass
class SchedulerSnapshot:
    totals: Dict[str, int]
    jobs: Dict[str, Dict[str, object]]

    def as_dict(self) -> Dict[str, object]:
        return {"totals": dict(self.totals), "jobs": dict(self.jobs)}


class SchedulerObservabilityStore:
    """Thread-safe counters per scheduled job."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: Dict[str, JobRunState] = {}

    def _state(self, job_id: str, task: str) -> JobRunState:
        state = self._jobs.get(job_id)
        if state is None:
            state = self._jobs[job_id] = JobRunState(job_id=job_id, task=task)
        return state

    def record_dispatch(self, job_id: str, task: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.counters["runs"] += 1
            state.last_started_at = utcnow()

    def record_retry(self, job_id: str, task: str, *, error: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.counters["attempt_failures"] += 1
            state.counters["retries"] += 1
            state.last_error = error
            state.last_error_at = utcnow()

    def record_success(self, job_id: str, task: str, *, runtime_seconds: float, summary: Dict[str, Any]) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.counters["success"] += 1
            state.runtime_seconds += runtime_seconds
            state.last_success_at = utcnow()
            state.last_summary = summary
            state.last_error = None
            state.counters["consecutive_failures"] = 0

    def record_failure(self, job_id: str, task: str, *, runtime_seconds: float, error: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.counters["attempt_failures"] += 1
            state.counters["run_failures"] += 1
            state.counters["consecutive_failures"] += 1
            state.runtime_seconds += runtime_seconds
            state.last_error = error
            state.last_error_at = utcnow()

    def snapshot(self) -> SchedulerSnapshot:
        with self._lock:
            totals: Counter = Counter()
            for state in self._jobs.values():
                totals.update(state.counters)
            return SchedulerSnapshot(
                totals=dict(totals),
                jobs={job_id: state.as_dict() for job_id, state in self._jobs.items()},
            )

    def reset(self) -> None:
        with self._lock:
            self._jobs.clear()


_STORE = SchedulerObservabilityStore()


def get_scheduler_store() -> SchedulerObservabilityStore:
    return _STORE


__all__ = ["SchedulerObservabilityStore", "SchedulerSnapshot", "get_scheduler_store"]
