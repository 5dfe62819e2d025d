"""APScheduler runtime for the reminder jobs."""

from __future__ import annotations

import asyncio
import inspect
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger
from zoneinfo import ZoneInfo

from wooffy_api.jobs.registry import JOB_REGISTRY, ReminderJob
from wooffy_api.observability.scheduler import SchedulerObservabilityStore, get_scheduler_store

from .config import JobDefinition, ScheduleConfig, load_job_definitions

SessionFactory = Callable[[], Awaitable[Any]] | Callable[[], Any]
Sleeper = Callable[[float], Awaitable[None]]


class ReminderJobScheduler:
    """Register the configured reminder jobs on an ``AsyncIOScheduler``."""

    def __init__(
        self,
        *,
        session_factory: SessionFactory,
        config_path: Path,
        registry: Mapping[str, ReminderJob] | None = None,
        observability: SchedulerObservabilityStore | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._config_path = config_path
        self._registry = dict(registry or JOB_REGISTRY)
        self._observability = observability or get_scheduler_store()
        self._sleep = sleep
        self._config: ScheduleConfig | None = None
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        config = load_job_definitions(self._config_path, known_tasks=self._registry)
        timezone = ZoneInfo(config.timezone)
        scheduler = AsyncIOScheduler(timezone=timezone)

        for job in config.jobs:
            trigger = CronTrigger.from_crontab(job.cron, timezone=timezone)
            scheduler.add_job(self.build_runner(job), trigger=trigger, id=job.id, replace_existing=True)
            logger.info("Registered reminder job", job_id=job.id, task=job.task, cron=job.cron)

        scheduler.start()
        self._config = config
        self._scheduler = scheduler
        logger.info("Reminder job scheduler started", jobs=len(config.jobs))

    async def stop(self) -> None:
        if self._scheduler is None:
            return
        result = self._scheduler.shutdown(wait=False)
        if inspect.isawaitable(result):
            await result
        self._scheduler = None
        logger.info("Reminder job scheduler stopped")

    def build_runner(self, job: JobDefinition) -> Callable[[], Awaitable[dict[str, Any] | None]]:
        """Wrap a job with retries; the returned coroutine never raises."""

        func = self._registry[job.task]

        async def _runner() -> dict[str, Any] | None:
            self._observability.record_dispatch(job.id, job.task)
            started_at = time.perf_counter()
            attempts = job.retry.max_attempts

            for attempt in range(1, attempts + 1):
                try:
                    summary = await func(session_factory=self._session_factory, **job.kwargs)
                except Exception as exc:  # noqa: BLE001 - scheduler must keep running
                    error = str(exc) or exc.__class__.__name__
                    if attempt >= attempts:
                        self._observability.record_failure(
                            job.id,
                            job.task,
                            runtime_seconds=time.perf_counter() - started_at,
                            error=error,
                        )
                        logger.exception("Reminder job failed after retries", job_id=job.id, attempts=attempt)
                        return None

                    delay = job.retry.delay_for(attempt)
                    self._observability.record_retry(job.id, job.task, error=error)
                    logger.warning("Reminder job retrying", job_id=job.id, attempt=attempt + 1, delay_seconds=delay)
                    if delay:
                        await self._sleep(delay)
                    continue

                self._observability.record_success(
                    job.id,
                    job.task,
                    runtime_seconds=time.perf_counter() - started_at,
                    summary=summary,
                )
                logger.bind(summary=summary).info("Reminder job completed", job_id=job.id, attempts=attempt)
                return summary
            return None

        return _runner

    def health(self) -> dict[str, object]:
        snapshot = self._observability.snapshot()
        jobs = self._config.jobs if self._config else []
        return {
            "running": self.is_running,
            "configured_jobs": len(jobs),
            "totals": snapshot.totals,
            "jobs": [
                {
                    "id": job.id,
                    "task": job.task,
                    "cron": job.cron,
                    "max_attempts": job.retry.max_attempts,
                    "metrics": snapshot.jobs.get(job.id),
                }
                for job in jobs
            ],
        }


__all__ = ["ReminderJobScheduler"]
