"""Multi-provider generation orchestrator.

The orchestrator owns a registry of named providers and a "current provider"
selection. generate_with_fallback() tries the current provider first and then
every other ready provider in registry order, strictly one at a time, and
returns a GenerationOutcome with an ordered attempt log. Provider failures
never escape as exceptions; only invalid prompts do.

The registry and selection are mutable and unsynchronized: callers must not
run configure() concurrently with generation on the same instance.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .config import GenerationOptions
from .exceptions import (
    GenerationError,
    NoProviderConfiguredError,
    NoProviderReadyError,
    ProviderNotReadyError,
    UnknownProviderError,
)
from .prompt_analyzer import analyze_prompt
from .providers.base import (
    ConnectionTestResult,
    GenerationProvider,
    SafeGenerationResult,
    require_prompt,
)
from .providers.claude import ClaudeProvider
from .providers.gemini import GeminiProvider
from .providers.openai import OpenAIProvider
from .task_model import Project

logger = logging.getLogger(__name__)

NO_PROVIDERS_MESSAGE = "No AI providers are configured"


@dataclass(frozen=True)
class AttemptRecord:
    """One provider attempt inside a fallback run.

    Attributes:
        provider: Provider name.
        success: Whether the provider produced a project.
        time_ms: Wall time spent on the provider, retries included.
        retry_count: Retries performed by the provider's safe generation.
        error: Final error message for a failed attempt.
    """

    provider: str
    success: bool
    time_ms: int
    retry_count: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "success": self.success,
            "time_ms": self.time_ms,
            "retry_count": self.retry_count,
            "error": self.error,
        }


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of a generate_with_fallback() call. Never mutated after return."""

    success: bool
    project: Project | None = None
    provider: str | None = None
    errors: tuple[str, ...] = ()
    attempts: tuple[AttemptRecord, ...] = ()

    def raise_for_status(self) -> None:
        """Raise if the run failed.

        Raises:
            NoProviderConfiguredError: If no provider was ready to try.
            GenerationError: If every attempted provider failed.
        """
        if self.success:
            return
        message = "; ".join(self.errors) or "Generation failed"
        if not self.attempts:
            raise NoProviderConfiguredError(message)
        raise GenerationError(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "project": self.project.to_dict() if self.project else None,
            "provider": self.provider,
            "errors": list(self.errors),
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


def create_default_providers(**provider_kwargs: Any) -> list[GenerationProvider]:
    """Create the production providers in fallback registry order.

    Args:
        **provider_kwargs: Keyword arguments passed to every provider
            (e.g. sleep, rng).
    """
    return [
        OpenAIProvider(**provider_kwargs),
        GeminiProvider(**provider_kwargs),
        ClaudeProvider(**provider_kwargs),
    ]


class GenerationOrchestrator:
    """Selects providers and runs generation with sequential fallback.

    Args:
        providers: Providers in registry (fallback) order. Defaults to
            create_default_providers().
        default_provider: Name selected as current when registered.

    Example:
        >>> orchestrator = GenerationOrchestrator()
        >>> orchestrator.configure({"openai": "sk-...", "gemini": None})
        >>> outcome = await orchestrator.generate_with_fallback("Sistema con módulos ...")
    """

    def __init__(
        self,
        providers: Iterable[GenerationProvider] | None = None,
        default_provider: str = "openai",
    ) -> None:
        if providers is None:
            providers = create_default_providers()
        self._providers: dict[str, GenerationProvider] = {}
        for provider in providers:
            self._providers[provider.name] = provider

        self._current: str | None = None
        if default_provider in self._providers:
            self._current = default_provider
        elif self._providers:
            self._current = next(iter(self._providers))

    @property
    def providers(self) -> Mapping[str, GenerationProvider]:
        """Registered providers by name, in registry order."""
        return dict(self._providers)

    @property
    def current_provider(self) -> str | None:
        """Name of the currently selected provider."""
        return self._current

    def get_provider(self, name: str) -> GenerationProvider:
        """Return a registered provider.

        Raises:
            UnknownProviderError: If name is not registered.
        """
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProviderError(f"Unknown provider: {name}") from None

    def configure(
        self,
        credentials: Mapping[str, str | None],
        default_provider: str | None = None,
    ) -> dict[str, bool]:
        """Configure providers from per-provider credentials.

        A provider that fails to configure is logged and skipped; it never
        prevents the others from being configured.

        Args:
            credentials: Provider name -> API key. None or missing keys are skipped.
            default_provider: Provider to select when it ends up ready.

        Returns:
            Provider name -> whether it is ready after configuration.
        """
        for name, key in credentials.items():
            if not key:
                continue
            provider = self._providers.get(name)
            if provider is None:
                logger.warning("Ignoring credentials for unknown provider: %s", name)
                continue
            try:
                provider.configure(key)
            except Exception as e:
                logger.warning("Failed to configure %s provider: %s", name, e)

        if default_provider and self._is_provider_ready(default_provider):
            self._current = default_provider
        elif not (self._current and self._is_provider_ready(self._current)):
            ready = self.ready_providers()
            if ready:
                self._current = ready[0]

        return {name: provider.is_ready() for name, provider in self._providers.items()}

    def set_provider(self, name: str) -> None:
        """Select the current provider.

        Raises:
            UnknownProviderError: If name is not registered.
            ProviderNotReadyError: If the provider is not configured.
        """
        provider = self.get_provider(name)
        if not provider.is_ready():
            raise ProviderNotReadyError(f"Provider {name} is not configured")
        self._current = name
        logger.info("Switched to %s provider", name)

    def get_active_provider(self) -> GenerationProvider:
        """Return the current provider, switching to the first ready one if needed.

        Raises:
            NoProviderReadyError: If no provider is configured.
        """
        if self._current and self._is_provider_ready(self._current):
            return self._providers[self._current]

        ready = self.ready_providers()
        if not ready:
            raise NoProviderReadyError("No AI provider is configured. Please configure an API key")

        logger.info("Current provider not ready, switching to %s", ready[0])
        self._current = ready[0]
        return self._providers[ready[0]]

    def is_ready(self) -> bool:
        """Return True if at least one provider is ready."""
        return bool(self.ready_providers())

    def ready_providers(self) -> list[str]:
        """Names of ready providers, in registry order."""
        return [name for name, provider in self._providers.items() if provider.is_ready()]

    def get_provider_status(self) -> dict[str, dict[str, Any]]:
        """Readiness and selection status of every registered provider."""
        status: dict[str, dict[str, Any]] = {}
        for name, provider in self._providers.items():
            settings = getattr(provider, "settings", None)
            status[name] = {
                "ready": provider.is_ready(),
                "current": name == self._current,
                "model": getattr(settings, "model", None),
            }
        return status

    def _is_provider_ready(self, name: str) -> bool:
        provider = self._providers.get(name)
        return provider is not None and provider.is_ready()

    def _fallback_order(self) -> list[str]:
        ready = self.ready_providers()
        if self._current in ready:
            ready.remove(self._current)
            ready.insert(0, self._current)
        return ready

    @staticmethod
    def _prepare_options(prompt: str, options: GenerationOptions | None) -> GenerationOptions:
        options = options or GenerationOptions()
        analysis = options.analysis_result
        if analysis is None:
            analysis = analyze_prompt(prompt)
        return options.with_analysis(analysis)

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> Project:
        """Generate with the active provider only, raising on failure.

        Raises:
            InvalidInputError: If prompt is not a non-blank string.
            NoProviderReadyError: If no provider is configured.
            GenerationError: Whatever the provider raises.
        """
        require_prompt(prompt)
        provider = self.get_active_provider()
        return await provider.generate(prompt, self._prepare_options(prompt, options))

    async def generate_with_fallback(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> GenerationOutcome:
        """Generate a project, falling back across ready providers.

        Args:
            prompt: Project description.
            options: Generation options. The prompt is analyzed once here
                when the options carry no analysis.

        Returns:
            GenerationOutcome with the attempt log. success=False when no
            provider is ready or every provider failed.

        Raises:
            InvalidInputError: If prompt is not a non-blank string.
        """
        require_prompt(prompt)
        options = self._prepare_options(prompt, options)

        order = self._fallback_order()
        if not order:
            logger.error(NO_PROVIDERS_MESSAGE)
            return GenerationOutcome(success=False, errors=(NO_PROVIDERS_MESSAGE,))

        errors: list[str] = []
        attempts: list[AttemptRecord] = []

        for name in order:
            provider = self._providers[name]
            started = time.monotonic()
            logger.info("Trying provider %s", name)

            result = await self._attempt(provider, prompt, options)
            elapsed = int((time.monotonic() - started) * 1000)

            if result.success and result.project is not None:
                attempts.append(
                    AttemptRecord(
                        provider=name,
                        success=True,
                        time_ms=elapsed,
                        retry_count=result.retry_count,
                    )
                )
                logger.info("Provider %s succeeded in %d ms", name, elapsed)
                return GenerationOutcome(
                    success=True,
                    project=result.project,
                    provider=name,
                    errors=tuple(errors),
                    attempts=tuple(attempts),
                )

            error = "; ".join(result.errors) or "Unknown error"
            attempts.append(
                AttemptRecord(
                    provider=name,
                    success=False,
                    time_ms=elapsed,
                    retry_count=result.retry_count,
                    error=error,
                )
            )
            errors.append(f"{name}: {error}")
            logger.warning("Provider %s failed: %s", name, error)

        summary = f"All AI providers failed. Tried: {', '.join(order)}"
        logger.error(summary)
        return GenerationOutcome(
            success=False,
            errors=(summary, *errors),
            attempts=tuple(attempts),
        )

    async def _attempt(
        self,
        provider: GenerationProvider,
        prompt: str,
        options: GenerationOptions,
    ) -> SafeGenerationResult:
        """Run one provider, converting anything it raises into a failed result."""
        generate_safe = getattr(provider, "generate_safe", None)
        try:
            if callable(generate_safe):
                return await generate_safe(prompt, options)
            project = await provider.generate(prompt, options)
        except Exception as e:
            logger.debug("Provider %s raised", provider.name, exc_info=True)
            return SafeGenerationResult(success=False, errors=[str(e)])
        return SafeGenerationResult(success=True, project=project, warnings=list(project.warnings))

    async def test_connection(self, name: str | None = None) -> ConnectionTestResult:
        """Test one provider, the active one by default.

        Raises:
            UnknownProviderError: If name is not registered.
            NoProviderReadyError: If name is None and no provider is configured.
        """
        provider = self.get_provider(name) if name else self.get_active_provider()
        return await provider.test_connection()

    async def test_all_connections(self) -> dict[str, ConnectionTestResult]:
        """Test every registered provider, one at a time."""
        results: dict[str, ConnectionTestResult] = {}
        for name, provider in self._providers.items():
            results[name] = await provider.test_connection()
        return results

    async def aclose(self) -> None:
        """Release resources held by every provider."""
        for provider in self._providers.values():
            close = getattr(provider, "aclose", None)
            if callable(close):
                await close()
