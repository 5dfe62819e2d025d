"""Transport-level errors rendered as ``{error, code}`` bodies."""

from __future__ import annotations

import json
from typing import Any, Mapping
from uuid import UUID

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        extra: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.extra = dict(extra or {})
        self.headers = dict(headers or {})

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "ApiError":
        return cls(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", message)

    @classmethod
    def missing_fields(cls, message: str = "Missing required fields") -> "ApiError":
        return cls(status.HTTP_400_BAD_REQUEST, "MISSING_FIELDS", message)

    @classmethod
    def invalid_format(cls, message: str = "Invalid request format") -> "ApiError":
        return cls(status.HTTP_400_BAD_REQUEST, "INVALID_FORMAT", message)

    @classmethod
    def internal(cls) -> "ApiError":
        return cls(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Internal server error")


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    body: dict[str, Any] = {"error": exc.message, "code": exc.code, **exc.extra}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers or None)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        "Unhandled error", method=request.method, path=request.url.path, error_type=type(exc).__name__
    )
    return await api_error_handler(request, ApiError.internal())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)


async def read_json_object(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object or fail with ``INVALID_FORMAT``."""

    raw = await request.body()
    try:
        payload = json.loads(raw or b"null")
    except (ValueError, UnicodeDecodeError):
        raise ApiError.invalid_format() from None
    if not isinstance(payload, dict):
        raise ApiError.invalid_format()
    return payload


def require_fields(payload: Mapping[str, Any], *names: str) -> None:
    missing = [name for name in names if payload.get(name) in (None, "")]
    if missing:
        raise ApiError.missing_fields()


def parse_uuid(value: Any, field_name: str) -> UUID:
    if not isinstance(value, str):
        raise ApiError.invalid_format(f"Invalid {field_name} format")
    try:
        return UUID(value)
    except ValueError:
        raise ApiError.invalid_format(f"Invalid {field_name} format") from None


def client_ip(request: Request) -> str | None:
    """First hop of ``X-Forwarded-For``, then ``CF-Connecting-IP``, then the socket peer."""

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()
    return request.client.host if request.client else None


__all__ = [
    "ApiError",
    "api_error_handler",
    "client_ip",
    "install_error_handlers",
    "parse_uuid",
    "read_json_object",
    "require_fields",
    "unhandled_error_handler",
]
