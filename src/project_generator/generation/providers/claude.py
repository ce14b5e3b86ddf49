"""Claude backend over the Claude Agent SDK.

The SDK runs the Claude CLI as a subprocess. The API key is handed to that
subprocess through ClaudeAgentOptions.env; tools are disabled so the model can
only answer with text.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

import psutil

from ..config import ProviderSettings
from ..exceptions import ProviderError
from .base import BaseProvider

logger = logging.getLogger(__name__)

# Message fragments -> Claude error code, first match wins
MESSAGE_CODES: tuple[tuple[str, str], ...] = (
    ("rate limit", "rate_limit_error"),
    ("rate_limit", "rate_limit_error"),
    ("overloaded", "overloaded_error"),
    ("quota", "quota_exceeded"),
    ("authentication", "authentication_error"),
    ("invalid api key", "authentication_error"),
    ("invalid x-api-key", "authentication_error"),
    ("permission", "permission_error"),
    ("not found", "not_found_error"),
    ("temporarily unavailable", "model_unavailable"),
    ("timeout", "timeout"),
    ("timed out", "timeout"),
    ("connection", "network_error"),
    ("network", "network_error"),
)

PING_PROMPT = 'Return exactly this JSON object: {"status": "ok"}'


class ClaudeProvider(BaseProvider):
    """Claude backend using claude_agent_sdk.query().

    Args:
        settings: Model settings. Defaults to PROVIDER_SETTINGS["claude"].
        max_turns: Maximum conversation turns (default: 1 for single response).
        **kwargs: Forwarded to BaseProvider (sleep, rng, processor).
    """

    display_name = "Claude"

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        *,
        max_turns: int = 1,
        **kwargs: Any,
    ) -> None:
        super().__init__("claude", settings, **kwargs)
        self.max_turns = max_turns

    def _create_client(self, api_key: str) -> dict[str, str]:
        # The SDK has no client object; the subprocess environment carries the key
        return {"ANTHROPIC_API_KEY": api_key}

    async def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Query Claude and collect the assistant text.

        Raises:
            ProviderError: If the SDK is missing or the query fails.
        """
        try:
            from claude_agent_sdk import ClaudeAgentOptions, query
        except ImportError as e:
            raise self._provider_error(
                "claude_agent_sdk not installed. Ensure Claude Code CLI is available.",
                "sdk_not_installed",
            ) from e

        options = ClaudeAgentOptions(
            tools=[],  # Explicitly disable ALL tools for JSON-only responses
            max_turns=self.max_turns,
            system_prompt=system_prompt,
            model=self.settings.model,
            env=dict(self._client),
        )
        logger.debug("Claude query (model: %s, token budget: %d)", self.settings.model, max_tokens)

        # Explicitly close the generator to prevent CLI hang
        response_text = ""
        generator = query(prompt=user_prompt, options=options)
        try:
            async with asyncio.timeout(self.settings.timeout_seconds):
                async for message in generator:
                    # Only AssistantMessage carries model text
                    if type(message).__name__ != "AssistantMessage":
                        continue
                    response_text += _message_text(message)
        finally:
            await generator.aclose()  # type: ignore[attr-defined]

        if not response_text:
            raise self._provider_error(
                "No response received from Claude", "api_error", transient=True
            )
        return response_text

    async def _ping(self) -> None:
        await self._call_api("You are a JSON-only API.", PING_PROMPT, 32)

    def _translate_error(self, error: Exception) -> ProviderError:
        if isinstance(error, TimeoutError):
            return self._provider_error(f"Claude request timeout: {error}", "timeout")
        if isinstance(error, ConnectionError):
            return self._provider_error(f"Claude network error: {error}", "network_error")

        message = str(error)
        lowered = message.lower()
        for fragment, code in MESSAGE_CODES:
            if fragment in lowered:
                return self._provider_error(f"Claude query failed: {message}", code)
        return ProviderError(f"Claude query failed: {message}", provider=self.name)


def _message_text(message: Any) -> str:
    """Extract text from an AssistantMessage (plain text or TextBlock content)."""
    text_attr = getattr(message, "text", None)
    if text_attr is not None:
        return str(text_attr)

    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            str(block.text) for block in content if getattr(block, "text", None) is not None
        )
    return ""


def cleanup_sdk_child_processes() -> None:
    """Kill any Claude CLI child processes spawned by this process.

    The Claude Agent SDK spawns actual OS subprocesses that may not terminate
    when the Python generator is closed. This function finds and terminates
    any lingering Claude CLI processes.

    IMPORTANT: Call this ONCE at program exit, not after each SDK call.
    """
    try:
        parent = psutil.Process(os.getpid())
        claude_procs = [
            p for p in parent.children(recursive=True) if "claude" in p.name().lower()
        ]
        for proc in claude_procs:
            try:
                logger.debug(f"Terminating Claude CLI process: {proc.pid}")
                proc.terminate()
            except psutil.NoSuchProcess:
                pass

        # Wait for termination with timeout, then force kill stragglers
        if claude_procs:
            _gone, alive = psutil.wait_procs(claude_procs, timeout=3)
            for proc in alive:
                try:
                    logger.warning(f"Force killing Claude CLI process: {proc.pid}")
                    proc.kill()
                except psutil.NoSuchProcess:
                    pass
    except psutil.Error as e:
        logger.warning(f"Failed to cleanup child processes: {e}")
