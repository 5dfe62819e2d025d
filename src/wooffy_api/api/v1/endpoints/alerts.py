"""On-demand proactive alert generation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.api.errors import ApiError, parse_uuid, read_json_object
from wooffy_api.db.session import get_session
from wooffy_api.schemas.alerts import AlertGenerationResponse, AlertResponse
from wooffy_api.services.alerts import ProactiveAlertService

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.post("/generate", response_model=AlertGenerationResponse, response_model_by_alias=True)
async def generate_alerts(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> AlertGenerationResponse:
    payload = await read_json_object(request)
    if payload.get("userId") in (None, ""):
        raise ApiError.missing_fields("userId is required")
    user_id = parse_uuid(payload["userId"], "userId")

    try:
        batch = await ProactiveAlertService(session).generate(user_id)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Proactive alert generation failed", user_id=str(user_id), error=str(exc))
        raise ApiError.internal() from exc

    return AlertGenerationResponse(
        message=batch.message,
        notifications_sent=len(batch.alerts),
        alerts=[AlertResponse.model_validate(alert) for alert in batch.alerts],
    )
