from fastapi import Header

from wooffy_api.api.errors import ApiError
from wooffy_api.core.settings import settings


async def require_jobs_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    """Guard job triggers when a shared secret is configured."""

    if not settings.jobs_api_key:
        return

    if x_api_key != settings.jobs_api_key:
        raise ApiError.unauthorized("Invalid API key")
