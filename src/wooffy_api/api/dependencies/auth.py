"""Bearer token verification for the identity provider's JWTs."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Header
from loguru import logger

from wooffy_api.api.errors import ApiError
from wooffy_api.core.settings import Settings, get_settings


@dataclass(frozen=True)
class CallerIdentity:
    user_id: UUID
    email: str | None = None


def decode_token(token: str, settings: Settings | None = None) -> CallerIdentity:
    settings = settings or get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=settings.auth_jwt_algorithms,
            audience=settings.auth_jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token", reason=str(exc))
        raise ApiError.unauthorized() from exc

    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError as exc:
        raise ApiError.unauthorized() from exc
    email = claims.get("email")
    return CallerIdentity(user_id=user_id, email=email if isinstance(email, str) else None)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_caller(authorization: str | None = Header(None)) -> CallerIdentity:
    token = _bearer_token(authorization)
    if token is None:
        raise ApiError.unauthorized()
    return decode_token(token)


async def optional_caller(authorization: str | None = Header(None)) -> CallerIdentity | None:
    """Resolve the caller when a valid token is present; anonymous otherwise."""

    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        return decode_token(token)
    except ApiError:
        return None


__all__ = ["CallerIdentity", "decode_token", "optional_caller", "require_caller"]
