"""Pet health assistant chat proxy."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request, status
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.api.dependencies.auth import CallerIdentity, optional_caller
from wooffy_api.api.errors import ApiError, client_ip, read_json_object
from wooffy_api.core.settings import settings
from wooffy_api.db.session import get_session
from wooffy_api.schemas.assistant import ChatResponse
from wooffy_api.services.assistant import (
    AssistantConfigurationError,
    AssistantContext,
    AssistantGatewayClient,
    AssistantGatewayError,
    build_system_prompt,
    get_assistant_rate_limiter,
    load_context,
    rate_limit_identifier,
    sanitize_messages,
)

router = APIRouter(prefix="/assistant", tags=["Assistant"])

_GATEWAY_CODES = {
    status.HTTP_429_TOO_MANY_REQUESTS: "UPSTREAM_BUSY",
    status.HTTP_402_PAYMENT_REQUIRED: "UPSTREAM_UNAVAILABLE",
}


def get_assistant_client() -> AssistantGatewayClient:
    return AssistantGatewayClient()


@router.post("/chat", response_model=ChatResponse, response_model_by_alias=True)
async def chat(
    request: Request,
    authorization: str | None = Header(None),
    caller: CallerIdentity | None = Depends(optional_caller),
    session: AsyncSession = Depends(get_session),
    client: AssistantGatewayClient = Depends(get_assistant_client),
) -> ChatResponse:
    decision = get_assistant_rate_limiter().check(rate_limit_identifier(authorization, client_ip(request)))
    if not decision.allowed:
        raise ApiError(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "RATE_LIMITED",
            f"Too many requests. Please wait {decision.reset_in_seconds} seconds before trying again.",
            headers={
                "Retry-After": str(decision.reset_in_seconds),
                "X-RateLimit-Limit": str(decision.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(decision.reset_in_seconds),
            },
        )

    payload = await read_json_object(request)
    messages = payload.get("messages")
    if not isinstance(messages, list) or not all(isinstance(item, dict) for item in messages):
        raise ApiError.invalid_format("Invalid request")
    pet_info = payload.get("petInfo") if isinstance(payload.get("petInfo"), dict) else None

    context: AssistantContext | None = None
    if caller is not None:
        try:
            context = await load_context(session, caller.user_id)
        except SQLAlchemyError as exc:
            logger.warning("Assistant context unavailable", user_id=str(caller.user_id), error=str(exc))

    try:
        reply = await client.complete(
            build_system_prompt(context, pet_info=pet_info),
            sanitize_messages(
                messages,
                max_messages=settings.assistant_max_messages,
                max_length=settings.assistant_max_message_length,
            ),
        )
    except AssistantConfigurationError:
        logger.error("Assistant gateway API key is not configured")
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "CONFIGURATION_ERROR", "Service configuration error"
        ) from None
    except AssistantGatewayError as exc:
        raise ApiError(exc.status_code, _GATEWAY_CODES.get(exc.status_code, "UPSTREAM_ERROR"), exc.message) from None

    return ChatResponse(reply=reply)
