"""Mock providers for tests and offline runs (--mock-llm).

MockProvider returns canned responses without any network access.
ProviderErrorSimulator raises provider-shaped failures so retry and
fallback behavior can be exercised deterministically.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..config import ProviderSettings
from ..exceptions import ProviderError
from .base import BaseProvider

logger = logging.getLogger(__name__)

SAMPLE_PROJECT: dict[str, Any] = {
    "name": "Sample Project",
    "description": "Project generated by the mock provider",
    "estimatedDuration": 12,
    "tasks": [
        {
            "title": "Planning",
            "description": "Gather requirements and define scope",
            "duration": 3,
            "priority": "high",
            "type": "with_deliverable",
            "deliverable": {"type": "file", "description": "Requirements document"},
            "subtasks": [
                {"title": "Requirements workshop", "description": "Meet stakeholders", "duration": 1},
                {"title": "Scope document", "description": "Write the scope", "duration": 2},
            ],
        },
        {
            "title": "Development",
            "description": "Build the core features",
            "duration": 6,
            "priority": "medium",
            "type": "simple",
            "dependencies": ["Planning"],
            "subtasks": [],
        },
        {
            "title": "Testing",
            "description": "Verify the features",
            "duration": 3,
            "priority": "medium",
            "type": "simple",
            "dependencies": ["Development"],
        },
    ],
    "teamMembers": [
        {"name": "Ana Torres", "role": "Project Manager", "email": "ana@example.com"},
        {"name": "Luis Vega", "role": "Developer", "email": "luis@example.com"},
    ],
}

DEFAULT_MOCK_RESPONSE = json.dumps(SAMPLE_PROJECT)


class MockProvider(BaseProvider):
    """Provider returning predefined responses based on prompt content.

    Useful for unit testing the generation pipeline without making actual
    API calls. Any non-blank credential configures it.

    Args:
        name: Registry name (defaults to "mock").
        responses: Dict mapping user-prompt substrings to raw responses.
        default_response: Fallback raw response if no key matches.
        **kwargs: Forwarded to BaseProvider (settings, sleep, rng, processor).
    """

    display_name = "Mock"
    error_profile = "mock"

    def __init__(
        self,
        name: str = "mock",
        responses: dict[str, str] | None = None,
        default_response: str | None = None,
        settings: ProviderSettings | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(name, settings or ProviderSettings(model="mock"), **kwargs)
        self.responses = responses or {}
        self.default_response = default_response or DEFAULT_MOCK_RESPONSE
        self.call_history: list[str] = []
        self.ping_count = 0

    def _create_client(self, api_key: str) -> None:
        return None

    async def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        self.call_history.append(user_prompt)

        for key, response in self.responses.items():
            if key in user_prompt:
                logger.debug(f"MockProvider matched key: {key}")
                return response

        logger.debug("MockProvider using default response")
        return self.default_response

    async def _ping(self) -> None:
        self.ping_count += 1

    def _translate_error(self, error: Exception) -> ProviderError:
        return ProviderError(f"Mock provider error: {error}", provider=self.name)

    def get_call_count(self) -> int:
        """Return the number of backend calls made."""
        return len(self.call_history)

    def reset(self) -> None:
        """Reset call history for fresh test runs."""
        self.call_history.clear()


class ProviderErrorSimulator(MockProvider):
    """Simulates backend failures for testing.

    Error Types:
    - invalid_api_key: Rejected credentials (permanent)
    - insufficient_quota: Exhausted quota (permanent)
    - model_not_found: Unknown model (permanent)
    - rate_limit_exceeded: Too many requests (retryable)
    - timeout: Async operation timeout (retryable)
    - connection_error: Network failure (retryable)
    - malformed_response: Model returns unparseable content
    - partial_response: Truncated but repairable response

    Args:
        error_type: One of the error types listed above.
        error_after_calls: Number of successful calls before errors start.
        recovery_response: Response returned once at least one error was raised.
        name: Registry name (defaults to "mock").
        **kwargs: Forwarded to MockProvider.
    """

    def __init__(
        self,
        error_type: str,
        error_after_calls: int = 0,
        recovery_response: str | None = None,
        name: str = "mock",
        **kwargs: Any,
    ) -> None:
        super().__init__(name, **kwargs)
        self.error_type = error_type
        self.error_after_calls = error_after_calls
        self.recovery_response = recovery_response
        self.call_count = 0
        self.errors_raised = 0

    async def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        self.call_count += 1
        self.call_history.append(user_prompt)

        # Return valid response before error trigger point
        if self.call_count <= self.error_after_calls:
            return self.default_response

        # After recovery, return recovery response if configured
        if self.recovery_response and self.errors_raised > 0:
            return self.recovery_response

        self.errors_raised += 1

        if self.error_type in ("invalid_api_key", "insufficient_quota", "model_not_found"):
            raise self._provider_error(
                f"Simulated {self.error_type.replace('_', ' ')}", self.error_type
            )

        elif self.error_type == "rate_limit_exceeded":
            raise self._provider_error("Simulated rate limit", "rate_limit_exceeded")

        elif self.error_type == "timeout":
            raise TimeoutError("Simulated timeout: request exceeded 60s limit")

        elif self.error_type == "connection_error":
            raise ConnectionError("Simulated network failure: unable to reach service")

        elif self.error_type == "malformed_response":
            return "This is not valid JSON at all {{{malformed response from model"

        elif self.error_type == "partial_response":
            return '{"name": "Partial", "tasks": [{"title": "Only task", "duration": 2}'

        raise ValueError(f"Unknown error_type: {self.error_type}")

    def _translate_error(self, error: Exception) -> ProviderError:
        if isinstance(error, TimeoutError):
            return self._provider_error(f"Mock request timeout: {error}", "timeout")
        if isinstance(error, ConnectionError):
            return self._provider_error(f"Mock network error: {error}", "network_error")
        return super()._translate_error(error)
