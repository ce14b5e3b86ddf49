"""OpenAI chat-completions backend over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import ProviderSettings
from ..exceptions import InvalidCredentialsError, ProviderError
from .base import BaseProvider

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"

# HTTP status -> error code when the body carries none
STATUS_CODES = {
    400: "invalid_request_error",
    401: "invalid_api_key",
    403: "invalid_api_key",
    404: "model_not_found",
    408: "timeout",
    429: "rate_limit_exceeded",
    503: "service_unavailable",
}


class OpenAIProvider(BaseProvider):
    """OpenAI backend using the chat completions endpoint in JSON mode.

    Args:
        settings: Model settings. Defaults to PROVIDER_SETTINGS["openai"].
        base_url: API base URL.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        **kwargs: Forwarded to BaseProvider (sleep, rng, processor).
    """

    display_name = "OpenAI"

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        *,
        base_url: str = OPENAI_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__("openai", settings, **kwargs)
        self.base_url = base_url
        self._transport = transport

    def _create_client(self, api_key: str) -> httpx.AsyncClient:
        if not api_key.startswith("sk-"):
            raise InvalidCredentialsError("Invalid OpenAI API key format. Keys start with 'sk-'")
        headers = {"Authorization": f"Bearer {api_key}"}
        # Reconfiguring swaps the key on the open client
        if isinstance(self._client, httpx.AsyncClient) and not self._client.is_closed:
            self._client.headers.update(headers)
            return self._client
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.settings.timeout_seconds,
            transport=self._transport,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        payload = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.settings.temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        response = await self._client.post("/chat/completions", json=payload)
        if response.is_error:
            raise self._http_error(response)

        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            raise self._provider_error(
                "No response received from OpenAI", "empty_response", transient=True
            )

        choice = choices[0]
        if choice.get("finish_reason") == "length":
            logger.warning(
                "OpenAI response truncated at %d tokens; attempting recovery", max_tokens
            )
        content = (choice.get("message") or {}).get("content")
        if not content:
            raise self._provider_error(
                "No response received from OpenAI", "empty_response", transient=True
            )
        return str(content)

    async def _ping(self) -> None:
        response = await self._client.get(f"/models/{self.settings.model}")
        if response.is_error:
            raise self._http_error(response)

    def _http_error(self, response: httpx.Response) -> ProviderError:
        """Map an error response to a ProviderError with an OpenAI error code."""
        body: dict[str, Any] = {}
        try:
            parsed = response.json()
            if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
                body = parsed["error"]
        except ValueError:
            pass

        status = response.status_code
        code = body.get("code") or body.get("type")
        if not code:
            code = STATUS_CODES.get(status, "server_error" if status >= 500 else None)
        message = body.get("message") or response.reason_phrase or f"HTTP {status}"
        return self._provider_error(f"OpenAI API error ({status}): {message}", code)

    def _translate_error(self, error: Exception) -> ProviderError:
        if isinstance(error, httpx.TimeoutException):
            return self._provider_error(f"OpenAI request timeout: {error}", "timeout")
        if isinstance(error, httpx.TransportError):
            return self._provider_error(f"OpenAI network error: {error}", "network_error")
        return ProviderError(f"OpenAI API error: {error}", provider=self.name)
