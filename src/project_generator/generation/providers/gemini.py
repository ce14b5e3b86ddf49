"""Google Gemini generateContent backend over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import ProviderSettings
from ..exceptions import ProviderError
from .base import BaseProvider

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
API_KEY_HEADER = "x-goog-api-key"

# ErrorInfo reasons that mean the project quota itself is used up, not a rate limit
QUOTA_REASONS = frozenset({"QUOTA_EXCEEDED", "BILLING_DISABLED", "INSUFFICIENT_QUOTA"})

# HTTP status -> error code when the body carries no status or reason
STATUS_CODES = {
    400: "INVALID_ARGUMENT",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL",
    503: "UNAVAILABLE",
}


def _error_reason(body: dict[str, Any]) -> str | None:
    """Return the first ErrorInfo reason (e.g. API_KEY_INVALID) in an error body."""
    for detail in body.get("details") or []:
        if isinstance(detail, dict) and detail.get("reason"):
            return str(detail["reason"])
    return None


class GeminiProvider(BaseProvider):
    """Gemini backend requesting JSON output from generateContent.

    Args:
        settings: Model settings. Defaults to PROVIDER_SETTINGS["gemini"].
        base_url: API base URL.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        **kwargs: Forwarded to BaseProvider (sleep, rng, processor).
    """

    display_name = "Gemini"

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        *,
        base_url: str = GEMINI_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__("gemini", settings, **kwargs)
        self.base_url = base_url
        self._transport = transport

    def _create_client(self, api_key: str) -> httpx.AsyncClient:
        # Header auth keeps the key out of request URLs, which httpx logs at INFO
        headers = {API_KEY_HEADER: api_key}
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
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": self.settings.temperature,
                "maxOutputTokens": max_tokens,
                "responseMimeType": "application/json",
            },
        }
        response = await self._client.post(
            f"/models/{self.settings.model}:generateContent", json=payload
        )
        if response.is_error:
            raise self._http_error(response)

        data = response.json()
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise self._provider_error(
                f"Gemini blocked the prompt: {block_reason}", "PROMPT_BLOCKED", transient=False
            )

        candidates = data.get("candidates") or []
        if not candidates:
            raise self._provider_error(
                "No response received from Gemini", "EMPTY_RESPONSE", transient=True
            )

        candidate = candidates[0]
        if candidate.get("finishReason") == "MAX_TOKENS":
            logger.warning(
                "Gemini response truncated at %d tokens; attempting recovery", max_tokens
            )
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))
        if not text:
            raise self._provider_error(
                "No response received from Gemini", "EMPTY_RESPONSE", transient=True
            )
        return text

    async def _ping(self) -> None:
        response = await self._client.get(f"/models/{self.settings.model}")
        if response.is_error:
            raise self._http_error(response)

    def _http_error(self, response: httpx.Response) -> ProviderError:
        """Map an error response to a ProviderError with a Gemini status code."""
        body: dict[str, Any] = {}
        try:
            parsed = response.json()
            if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
                body = parsed["error"]
        except ValueError:
            pass

        status = response.status_code
        message = body.get("message") or response.reason_phrase or f"HTTP {status}"
        reason = _error_reason(body)
        if reason in QUOTA_REASONS:
            code: str | None = "QUOTA_EXCEEDED"
        else:
            # A bare RESOURCE_EXHAUSTED is a rate limit even when the message mentions quota
            code = reason or body.get("status") or STATUS_CODES.get(status)
        if code is None and status >= 500:
            code = "INTERNAL"
        return self._provider_error(f"Gemini API error ({status}): {message}", code)

    def _translate_error(self, error: Exception) -> ProviderError:
        if isinstance(error, httpx.TimeoutException):
            return self._provider_error(f"Gemini request timeout: {error}", "TIMEOUT")
        if isinstance(error, httpx.TransportError):
            return self._provider_error(f"Gemini network error: {error}", "NETWORK_ERROR")
        return ProviderError(f"Gemini API error: {error}", provider=self.name)
