from fastapi import APIRouter

from .endpoints import alerts, assistant, health, jobs, redemptions, verification

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(verification.router)
router.include_router(redemptions.router)
router.include_router(alerts.router)
router.include_router(assistant.router)
router.include_router(jobs.router)
