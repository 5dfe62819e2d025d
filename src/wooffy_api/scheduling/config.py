"""Loader for the reminder job schedule file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import tomllib
from apscheduler.triggers.cron import CronTrigger
from loguru import logger


@dataclass(slots=True)
class RetryPolicy:
    """Exponential backoff between attempts of one scheduled run."""

    max_attempts: int = 1
    base_backoff_seconds: float = 5.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-based)."""

        delay = self.base_backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        if self.max_backoff_seconds:
            delay = min(delay, self.max_backoff_seconds)
        return max(delay, 0.0)


@dataclass(slots=True)
class JobDefinition:
    id: str
    task: str
    cron: str
    kwargs: dict[str, Any] = field(default_factory=dict)
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(slots=True)
class ScheduleConfig:
    timezone: str
    jobs: list[JobDefinition]


def _retry_policy(payload: dict[str, Any]) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max(int(payload.get("max_attempts", 1) or 1), 1),
        base_backoff_seconds=max(float(payload.get("base_backoff_seconds", 5.0) or 0), 0.0),
        backoff_multiplier=max(float(payload.get("backoff_multiplier", 2.0) or 1), 1.0),
        max_backoff_seconds=max(float(payload.get("max_backoff_seconds", 60.0) or 0), 0.0),
    )


def parse_schedule(data: dict[str, Any], *, known_tasks: Iterable[str]) -> ScheduleConfig:
    """Build a schedule from parsed TOML, dropping entries that cannot run."""

    known = set(known_tasks)
    timezone = str(data.get("timezone", "UTC"))
    jobs: list[JobDefinition] = []
    for key, payload in (data.get("jobs") or {}).items():
        if not isinstance(payload, dict) or payload.get("enabled", True) is False:
            continue

        task, cron = payload.get("task"), payload.get("cron")
        if not isinstance(task, str) or not isinstance(cron, str):
            logger.warning("Skipping malformed schedule entry", job_id=key)
            continue
        if task not in known:
            logger.warning("Skipping schedule entry for unknown task", job_id=key, task=task)
            continue
        try:
            CronTrigger.from_crontab(cron)
        except ValueError as exc:
            logger.warning("Skipping schedule entry with invalid cron", job_id=key, cron=cron, error=str(exc))
            continue

        kwargs = payload.get("kwargs", {})
        jobs.append(
            JobDefinition(
                id=str(payload.get("id") or key),
                task=task,
                cron=cron,
                kwargs=kwargs if isinstance(kwargs, dict) else {},
                retry=_retry_policy(payload),
            )
        )
    return ScheduleConfig(timezone=timezone, jobs=jobs)


def load_job_definitions(config_path: Path, *, known_tasks: Iterable[str]) -> ScheduleConfig:
    """Load job definitions from a TOML schedule file."""

    if not config_path.exists():
        raise FileNotFoundError(f"Schedule config not found: {config_path}")
    return parse_schedule(tomllib.loads(config_path.read_text()), known_tasks=known_tasks)


__all__ = ["JobDefinition", "RetryPolicy", "ScheduleConfig", "load_job_definitions", "parse_schedule"]
