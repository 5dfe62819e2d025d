"""Business confirmation of a verified redemption."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.api.dependencies.auth import CallerIdentity, require_caller
from wooffy_api.api.errors import ApiError, parse_uuid, read_json_object, require_fields
from wooffy_api.db.session import get_session
from wooffy_api.schemas.redemption import RedemptionResponse, RedemptionSummary
from wooffy_api.services.redemptions import RedemptionError, RedemptionRequest, RedemptionService

router = APIRouter(prefix="/redemptions", tags=["Redemptions"])


@router.post("", response_model=RedemptionResponse, response_model_by_alias=True)
async def confirm_redemption(
    request: Request,
    caller: CallerIdentity = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
) -> RedemptionResponse:
    payload = await read_json_object(request)
    require_fields(payload, "membershipId", "offerId", "businessId")
    pet_id = payload.get("petId")
    redemption = RedemptionRequest(
        membership_id=parse_uuid(payload["membershipId"], "membership ID"),
        offer_id=parse_uuid(payload["offerId"], "offer ID"),
        business_id=parse_uuid(payload["businessId"], "business ID"),
        caller_user_id=caller.user_id,
        pet_id=parse_uuid(pet_id, "pet ID") if pet_id not in (None, "") else None,
    )

    try:
        receipt = await RedemptionService(session).confirm(redemption)
        await session.commit()
    except RedemptionError as exc:
        await session.rollback()
        raise ApiError(exc.status_code, exc.code, exc.message) from None
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception(
            "Redemption confirmation failed",
            business_id=str(redemption.business_id),
            offer_id=str(redemption.offer_id),
            error=str(exc),
        )
        raise ApiError.internal() from exc

    return RedemptionResponse(
        success=True,
        redemption=RedemptionSummary(
            id=receipt.id,
            offer_title=receipt.offer_title,
            discount=receipt.discount,
            business_name=receipt.business_name,
            redeemed_at=receipt.redeemed_at,
            member_name=receipt.member_name,
            pet_names=receipt.pet_names,
            member_number=receipt.member_number,
        ),
    )
