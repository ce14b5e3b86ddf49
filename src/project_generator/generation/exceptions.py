"""Exceptions for the generation module.

This module defines the exception hierarchy for project generation,
from prompt validation through provider calls, response recovery and
hierarchy validation.
"""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base exception for all generation-related errors.

    This is the root exception class for the generation module.
    All other generation exceptions inherit from this class.
    """

    pass


class InputError(GenerationError):
    """Raised for caller mistakes that must fail fast and are never retried."""

    pass


class InvalidInputError(InputError):
    """Raised when a prompt is not a usable string."""

    pass


class InvalidCredentialsError(InputError):
    """Raised when a provider is configured with unusable credentials."""

    pass


class ProviderConfigurationError(GenerationError):
    """Base for provider registry and readiness errors."""

    pass


class UnknownProviderError(ProviderConfigurationError):
    """Raised when a provider name is not registered."""

    pass


class ProviderNotReadyError(ProviderConfigurationError):
    """Raised when a registered provider has not been configured."""

    pass


class NoProviderReadyError(ProviderConfigurationError):
    """Raised when no registered provider is configured and ready."""

    pass


class NoProviderConfiguredError(ProviderConfigurationError):
    """Raised when a fallback run has no configured provider to try."""

    pass


class ProviderError(GenerationError):
    """Raised when a provider backend call fails.

    Attributes:
        provider: Name of the provider that failed.
        code: Provider-specific error code (e.g. "rate_limit_exceeded").
    """

    def __init__(self, message: str, *, provider: str = "", code: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.code = code


class TransientProviderError(ProviderError):
    """Timeouts, rate limits and network failures. Retried with backoff."""

    pass


class PermanentProviderError(ProviderError):
    """Bad credentials, exhausted quota or unknown model. Never retried."""

    pass


class MalformedResponseError(GenerationError):
    """Raised when LLM output cannot be decoded as JSON, even after repair.

    Attributes:
        diagnostics: Lengths and head/tail excerpts of the offending response.
    """

    def __init__(self, message: str, diagnostics: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics or {}


class ProjectValidationError(GenerationError):
    """Raised when decoded JSON lacks the required project shape.

    Attributes:
        errors: Every shape violation found, in discovery order.
        warnings: Non-fatal observations collected during the same pass.
    """

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.warnings = warnings or []


class HierarchyError(GenerationError):
    """Raised when a task tree cannot be built or violates structural limits."""

    pass
