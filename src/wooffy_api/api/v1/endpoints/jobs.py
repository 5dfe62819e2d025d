"""HTTP triggers for the reminder jobs."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from loguru import logger

from wooffy_api.api.dependencies.security import require_jobs_api_key
from wooffy_api.api.errors import ApiError
from wooffy_api.db.session import async_session
from wooffy_api.jobs.registry import JOB_REGISTRY

router = APIRouter(prefix="/jobs", tags=["Jobs"], dependencies=[Depends(require_jobs_api_key)])


@router.post("/{job_name}")
async def trigger_job(job_name: str) -> dict[str, Any]:
    """Run a reminder job now and return its summary."""

    job = JOB_REGISTRY.get(job_name)
    if job is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "NOT_FOUND", f"Unknown job: {job_name}")

    try:
        summary = await job(session_factory=async_session)
    except Exception as exc:
        logger.exception("Reminder job trigger failed", job=job_name, error=str(exc))
        raise ApiError.internal() from exc

    logger.bind(summary=summary).info("Reminder job triggered over HTTP", job=job_name)
    return summary
