"""Point-of-sale member verification."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.api.dependencies.auth import CallerIdentity, require_caller
from wooffy_api.api.errors import ApiError, client_ip, parse_uuid, read_json_object, require_fields
from wooffy_api.core.settings import settings
from wooffy_api.db.session import get_session
from wooffy_api.observability.verification import get_verification_store
from wooffy_api.schemas.verification import AvailablePetResponse, VerificationResponse
from wooffy_api.services.verification import (
    VerificationLockedError,
    VerificationOutcome,
    VerificationRequest,
    VerificationService,
)

router = APIRouter(tags=["Verification"])


def _parse_request(payload: dict, request: Request) -> VerificationRequest:
    code = payload.get("memberId", payload.get("memberCode"))
    if code in (None, ""):
        raise ApiError.missing_fields()
    require_fields(payload, "offerId", "businessId")

    if not isinstance(code, str):
        raise ApiError.invalid_format("Invalid member ID format")
    code = code.strip()
    if not code or len(code) > settings.member_code_max_length:
        raise ApiError.invalid_format("Invalid member ID format")

    return VerificationRequest(
        member_code=code,
        offer_id=parse_uuid(payload["offerId"], "offer ID"),
        business_id=parse_uuid(payload["businessId"], "business ID"),
        ip_address=client_ip(request),
    )


def _to_response(outcome: VerificationOutcome) -> VerificationResponse:
    pets = None
    if outcome.available_pets is not None:
        pets = [AvailablePetResponse(id=pet.id, name=pet.name) for pet in outcome.available_pets]
    return VerificationResponse(
        status=outcome.status.value,
        attempts_remaining=outcome.attempts_remaining,
        member_name=outcome.member_name,
        pet_name=outcome.pet_name,
        member_id=outcome.member_id,
        membership_id=outcome.membership_id,
        expiry_date=outcome.expiry_date,
        offer_id=outcome.offer_id,
        offer_title=outcome.offer_title,
        discount=outcome.discount,
        offer_type=outcome.offer_type,
        available_pets=pets,
        total_pets=outcome.total_pets,
        redeemed_pets_count=outcome.redeemed_pets_count,
        message=outcome.message,
    )


@router.post(
    "/verify-member",
    response_model=VerificationResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
async def verify_member(
    request: Request,
    caller: CallerIdentity = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
) -> VerificationResponse:
    try:
        payload = await read_json_object(request)
        verification = _parse_request(payload, request)
    except ApiError as exc:
        get_verification_store().record_error(exc.code)
        raise

    service = VerificationService(session)
    try:
        outcome = await service.verify(verification)
        await session.commit()
    except VerificationLockedError as exc:
        await session.rollback()
        raise ApiError(
            429,
            "RATE_LIMITED",
            "Too many failed attempts. Please try again later.",
            extra={
                "lockoutExpiresAt": exc.lockout_expires_at.isoformat() if exc.lockout_expires_at else None,
                "remainingMinutes": exc.remaining_minutes,
            },
        ) from None
    except SQLAlchemyError as exc:
        await session.rollback()
        get_verification_store().record_error("INTERNAL_ERROR")
        logger.exception(
            "Member verification failed",
            caller_id=str(caller.user_id),
            business_id=str(verification.business_id),
            error=str(exc),
        )
        raise ApiError.internal() from exc

    return _to_response(outcome)
