"""Provider abstraction for project generation.

This module defines the GenerationProvider protocol consumed by the
orchestrator and the BaseProvider class that implements the shared pipeline:
prompt construction, the backend call, response processing and the
safe-generation retry loop. Backends only implement client creation, the raw
API call, error translation and a connectivity ping.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..config import (
    PERMANENT_ERROR_CODES,
    PROVIDER_SETTINGS,
    GenerationOptions,
    ProviderSettings,
)
from ..exceptions import (
    InvalidCredentialsError,
    InvalidInputError,
    PermanentProviderError,
    ProviderError,
    ProviderNotReadyError,
    TransientProviderError,
)
from ..prompt_analyzer import analyze_prompt
from ..prompts import build_system_prompt, build_user_prompt
from ..response_processor import ResponseProcessor
from ..retry import ErrorClass, classify_error, compute_backoff_delay, error_code, hint_for
from ..task_model import Project, utc_timestamp

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class RetryRecord:
    """One failed attempt inside a safe-generation loop.

    Attributes:
        attempt: Zero-based attempt index.
        error: Error message.
        code: Provider error code, if the error carried one.
        error_class: "permanent" or "retryable".
        delay_ms: Backoff applied after this attempt (0 when none).
    """

    attempt: int
    error: str
    code: str | None = None
    error_class: str = ErrorClass.RETRYABLE.value
    delay_ms: float = 0.0


@dataclass
class SafeGenerationResult:
    """Outcome of a provider's safe-generation loop. Never raised, always returned."""

    success: bool
    project: Project | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    retry_count: int = 0
    total_time_ms: int = 0
    retry_history: list[RetryRecord] = field(default_factory=list)


@dataclass
class ConnectionTestResult:
    """Result of a provider connectivity check."""

    success: bool
    message: str = ""
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message, "error": self.error}


@runtime_checkable
class GenerationProvider(Protocol):
    """Protocol for generation backends used by the orchestrator.

    This protocol defines the interface that all providers must implement,
    allowing the orchestrator to treat real backends and mocks alike.
    """

    name: str

    def configure(self, credentials: str | None) -> None:
        """Configure the provider with an API key.

        Raises:
            InvalidCredentialsError: If the credentials are unusable.
        """
        ...

    def is_ready(self) -> bool:
        """Return True once the provider has been configured."""
        ...

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> Project:
        """Generate a project, raising on failure."""
        ...

    async def generate_safe(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> SafeGenerationResult:
        """Generate a project with retries, returning a result instead of raising."""
        ...

    async def test_connection(self) -> ConnectionTestResult:
        """Check that the backend is reachable with the configured credentials."""
        ...


def require_prompt(prompt: Any) -> str:
    """Return the prompt if it is a non-blank string.

    Raises:
        InvalidInputError: If prompt is not a string or is blank.
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidInputError("Valid prompt string is required")
    return prompt


class BaseProvider(ABC):
    """Abstract base class for generation providers.

    Subclasses must implement _create_client, _call_api, _translate_error
    and _ping.

    Args:
        name: Registry name of the provider.
        settings: Model settings. Defaults to PROVIDER_SETTINGS[name].
        sleep: Awaitable sleep used between retries.
        rng: Uniform [0, 1) source for backoff jitter.
        processor: Converts raw responses into projects.
    """

    display_name = "AI"
    # Key into the error code tables; None means the registry name
    error_profile: str | None = None

    def __init__(
        self,
        name: str,
        settings: ProviderSettings | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        processor: ResponseProcessor | None = None,
    ) -> None:
        self.name = name
        self.error_profile = type(self).error_profile or name
        self.settings = settings or PROVIDER_SETTINGS.get(name) or ProviderSettings(model=name)
        self._sleep = sleep
        self._rng = rng
        self.processor = processor or ResponseProcessor()
        self._api_key: str | None = None
        self._client: Any = None
        self._ready = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.settings.model!r})"

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """Create the backend client for an API key.

        Raises:
            InvalidCredentialsError: If the key is malformed.
        """
        ...

    @abstractmethod
    async def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Make the actual API call and return the raw response text."""
        ...

    @abstractmethod
    def _translate_error(self, error: Exception) -> ProviderError:
        """Translate a backend exception into a ProviderError with a code."""
        ...

    @abstractmethod
    async def _ping(self) -> None:
        """Make the cheapest call that proves credentials and reachability."""
        ...

    def configure(self, credentials: str | None) -> None:
        """Configure the provider with an API key.

        Args:
            credentials: API key for the backend.

        Raises:
            InvalidCredentialsError: If the key is missing or malformed.
        """
        if not isinstance(credentials, str) or not credentials.strip():
            raise InvalidCredentialsError(f"{self.display_name} API key is required")

        api_key = credentials.strip()
        self._client = self._create_client(api_key)
        self._api_key = api_key
        self._ready = True
        logger.info("%s provider configured (model: %s)", self.name, self.settings.model)

    def is_ready(self) -> bool:
        return self._ready

    async def aclose(self) -> None:
        """Release backend resources. Safe to call more than once."""
        return None

    def _provider_error(
        self,
        message: str,
        code: str | None,
        transient: bool | None = None,
    ) -> ProviderError:
        """Build a ProviderError subclass chosen from the permanent code table."""
        if transient is None:
            transient = code not in PERMANENT_ERROR_CODES.get(self.error_profile, frozenset())
        error_type = TransientProviderError if transient else PermanentProviderError
        return error_type(message, provider=self.name, code=code)

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> Project:
        """Generate a project from a prompt.

        Args:
            prompt: Project description.
            options: Generation options. The prompt is analyzed when the
                options carry no analysis.

        Returns:
            Generated Project stamped with this provider's name.

        Raises:
            ProviderNotReadyError: If the provider has not been configured.
            InvalidInputError: If prompt is not a non-blank string.
            ProviderError: If the backend call fails.
            MalformedResponseError: If the response cannot be decoded.
            ProjectValidationError: If the draft lacks the required shape.
        """
        if not self._ready:
            raise ProviderNotReadyError(f"{self.name} provider is not configured")
        require_prompt(prompt)

        options = options or GenerationOptions()
        if options.analysis_result is None:
            options = options.with_analysis(analyze_prompt(prompt))
        analysis = options.analysis_result
        complexity = options.effective_complexity

        system_prompt = build_system_prompt(
            complexity, options.include_team_members, options.max_tasks, analysis
        )
        user_prompt = build_user_prompt(prompt, options.estimated_duration)
        max_tokens = self.settings.tokens_for(complexity)

        logger.info(
            "Generating project with %s (model: %s, complexity: %s, max_tokens: %d)",
            self.name,
            self.settings.model,
            complexity,
            max_tokens,
        )

        try:
            raw = await self._call_api(system_prompt, user_prompt, max_tokens)
        except ProviderError:
            raise
        except Exception as e:
            raise self._translate_error(e) from e

        project = self.processor.process(raw, analysis)
        project.generated_by = self.name
        project.generated_at = utc_timestamp()
        return project

    async def generate_safe(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> SafeGenerationResult:
        """Generate a project, retrying transient failures with backoff.

        Permanent failures stop the loop at once. A hint for the last error
        code is appended to the errors when one is known.

        Raises:
            InvalidInputError: If prompt is not a non-blank string.
        """
        require_prompt(prompt)
        retry = (options or GenerationOptions()).retry
        started = time.monotonic()
        errors: list[str] = []
        history: list[RetryRecord] = []
        last_error: Exception | None = None

        for attempt in range(retry.max_retries + 1):
            try:
                project = await self.generate(prompt, options)
            except Exception as e:
                last_error = e
                error_class = classify_error(e, self.error_profile)
                record = RetryRecord(
                    attempt=attempt,
                    error=str(e),
                    code=error_code(e),
                    error_class=error_class.value,
                )
                history.append(record)
                errors.append(f"Attempt {attempt + 1}: {e}")
                logger.warning(
                    "%s attempt %d/%d failed (%s): %s",
                    self.name,
                    attempt + 1,
                    retry.max_retries + 1,
                    error_class.value,
                    e,
                )

                if error_class is ErrorClass.PERMANENT:
                    logger.info("%s: permanent error, not retrying", self.name)
                    break

                if attempt < retry.max_retries:
                    record.delay_ms = compute_backoff_delay(attempt, retry, self._rng)
                    logger.debug("%s: retrying in %.0f ms", self.name, record.delay_ms)
                    await self._sleep(record.delay_ms / 1000)
                continue

            if attempt > 0:
                logger.info("%s succeeded after %d retries", self.name, attempt)
            return SafeGenerationResult(
                success=True,
                project=project,
                errors=errors,
                warnings=list(project.warnings),
                retry_count=attempt,
                total_time_ms=_elapsed_ms(started),
                retry_history=history,
            )

        if last_error is not None:
            hint = hint_for(last_error)
            if hint:
                errors.append(hint)

        return SafeGenerationResult(
            success=False,
            errors=errors,
            retry_count=max(0, len(history) - 1),
            total_time_ms=_elapsed_ms(started),
            retry_history=history,
        )

    async def test_connection(self) -> ConnectionTestResult:
        """Check connectivity, returning a result instead of raising."""
        if not self._ready:
            return ConnectionTestResult(
                success=False, error=f"{self.name} provider is not configured"
            )
        try:
            await self._ping()
        except Exception as e:
            error = e if isinstance(e, ProviderError) else self._translate_error(e)
            logger.warning("%s connection test failed: %s", self.name, error)
            return ConnectionTestResult(success=False, error=str(error))
        return ConnectionTestResult(
            success=True,
            message=f"{self.display_name} connection successful (model: {self.settings.model})",
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
