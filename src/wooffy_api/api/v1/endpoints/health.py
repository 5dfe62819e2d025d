from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from wooffy_api.core.settings import settings
from wooffy_api.observability.scheduler import get_scheduler_store
from wooffy_api.observability.verification import get_verification_store

router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]
    metrics: Dict[str, object] = Field(default_factory=dict)


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(request: Request) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    scheduler_snapshot = get_scheduler_store().snapshot()
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    if settings.reminder_scheduler_enabled and scheduler is not None:
        running = bool(getattr(scheduler, "is_running", False))
        component_status: Literal["ready", "starting", "disabled", "error"] = "ready" if running else "starting"
        detail = None if running else "Reminder scheduler not running"
        failing_jobs = [
            job_id
            for job_id, job in scheduler_snapshot.jobs.items()
            if job["totals"].get("consecutive_failures", 0) > 0
        ]
        if failing_jobs:
            component_status = "error"
            detail = f"Jobs failing: {', '.join(sorted(failing_jobs))}"
            status = "error"
        elif not running:
            status = "degraded"
        components["reminder_scheduler"] = ComponentStatus(status=component_status, detail=detail)
    else:
        components["reminder_scheduler"] = ComponentStatus(
            status="disabled",
            detail="Reminder scheduler disabled via settings",
        )

    if settings.assistant_api_key:
        components["assistant_gateway"] = ComponentStatus(status="ready")
    else:
        components["assistant_gateway"] = ComponentStatus(
            status="disabled",
            detail="Assistant gateway API key not configured",
        )

    return ReadinessPayload(
        status=status,
        components=components,
        metrics={
            "verification": get_verification_store().snapshot().as_dict(),
            "scheduler": scheduler_snapshot.as_dict(),
        },
    )


@router.get("/health/readyz", include_in_schema=False)
async def service_readiness_alias(request: Request) -> ReadinessPayload:
    """Alias for readiness checks under /health."""

    return await service_readiness(request)
