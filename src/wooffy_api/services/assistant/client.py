from __future__ import annotations

from typing import Any, Sequence

import httpx
from loguru import logger

from wooffy_api.core.settings import Settings, get_settings


class AssistantConfigurationError(RuntimeError):
    """The gateway API key is not configured."""


class AssistantGatewayError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


_UPSTREAM_ERRORS = {
    429: (429, "Service is busy. Please try again in a moment."),
    402: (402, "Service temporarily unavailable. Please try again later."),
}
_GENERIC_ERROR = (500, "AI service error. Please try again.")


class AssistantGatewayClient:
    """Calls an OpenAI-compatible ``chat/completions`` endpoint."""

    def __init__(self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client

    async def complete(self, system_prompt: str, messages: Sequence[dict[str, str]]) -> str:
        api_key = self._settings.assistant_api_key
        if not api_key:
            raise AssistantConfigurationError("assistant_api_key is not set")

        payload: dict[str, Any] = {
            "model": self._settings.assistant_model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "stream": False,
        }

        close_client = False
        client = self._http_client
        if client is None:
            client = httpx.AsyncClient(timeout=self._settings.assistant_timeout_seconds)
            close_client = True

        try:
            response = await client.post(
                self._settings.assistant_gateway_url,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Assistant gateway unreachable", error=str(exc))
            raise AssistantGatewayError(*_GENERIC_ERROR) from exc
        finally:
            if close_client:
                await client.aclose()

        if response.status_code >= 400:
            logger.warning("Assistant gateway rejected request", status_code=response.status_code)
            raise AssistantGatewayError(*_UPSTREAM_ERRORS.get(response.status_code, _GENERIC_ERROR))

        try:
            body = response.json()
            return str(body["choices"][0]["message"]["content"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Assistant gateway returned an unexpected payload", error=str(exc))
            raise AssistantGatewayError(*_GENERIC_ERROR) from exc


__all__ = ["AssistantConfigurationError", "AssistantGatewayClient", "AssistantGatewayError"]
