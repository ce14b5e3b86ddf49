"""Retry policy for provider calls.

Defines how long to wait between attempts and whether a failed attempt is
worth repeating. Classification consults the provider's static error code
tables first, then the exception type, then keywords in the error message
(network keywords before validation keywords). Anything still unclassified
is retried.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from enum import Enum

from .config import (
    DEFAULT_RETRY_CONFIG,
    ERROR_HINTS,
    PERMANENT_ERROR_CODES,
    PERMANENT_MESSAGE_KEYWORDS,
    RETRYABLE_ERROR_CODES,
    RETRYABLE_MESSAGE_KEYWORDS,
    RetryConfig,
)
from .exceptions import (
    InputError,
    MalformedResponseError,
    PermanentProviderError,
    ProjectValidationError,
    ProviderConfigurationError,
    ProviderError,
    TransientProviderError,
)


class ErrorClass(Enum):
    """Retry classification of a failed attempt."""

    PERMANENT = "permanent"  # Stop retrying this provider
    RETRYABLE = "retryable"  # Back off and try again


# Failures that repeat identically on every attempt
_NEVER_RETRIED = (
    InputError,
    ProviderConfigurationError,
    MalformedResponseError,
    ProjectValidationError,
)


def error_code(error: BaseException) -> str | None:
    """Return the provider error code carried by an exception, if any."""
    return getattr(error, "code", None) if isinstance(error, ProviderError) else None


def classify_error(error: BaseException, provider: str) -> ErrorClass:
    """Classify a failed attempt as permanent or retryable.

    Args:
        error: Exception raised by the attempt.
        provider: Name of the provider whose code tables apply.

    Returns:
        ErrorClass.PERMANENT or ErrorClass.RETRYABLE.
    """
    code = error_code(error)
    if code is not None:
        if code in PERMANENT_ERROR_CODES.get(provider, frozenset()):
            return ErrorClass.PERMANENT
        if code in RETRYABLE_ERROR_CODES.get(provider, frozenset()):
            return ErrorClass.RETRYABLE

    if isinstance(error, (PermanentProviderError, *_NEVER_RETRIED)):
        return ErrorClass.PERMANENT
    if isinstance(error, TransientProviderError):
        return ErrorClass.RETRYABLE

    message = str(error).lower()
    if any(keyword in message for keyword in RETRYABLE_MESSAGE_KEYWORDS):
        return ErrorClass.RETRYABLE
    if any(keyword in message for keyword in PERMANENT_MESSAGE_KEYWORDS):
        return ErrorClass.PERMANENT

    return ErrorClass.RETRYABLE


def is_retryable(error: BaseException, provider: str) -> bool:
    return classify_error(error, provider) is ErrorClass.RETRYABLE


def compute_backoff_delay(
    attempt: int,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    rng: Callable[[], float] = random.random,
) -> float:
    """Return the delay in milliseconds before the next attempt.

    delay = min(base * 2**attempt * jitter, cap) with jitter in [0.5, 1.0).

    Args:
        attempt: Zero-based index of the attempt that just failed.
        config: Backoff parameters.
        rng: Source of uniform floats in [0, 1).
    """
    jitter = 0.5 + rng() * 0.5
    delay = config.base_delay_ms * (2**attempt) * jitter
    return min(delay, float(config.max_delay_ms))


def hint_for(error: BaseException) -> str | None:
    """Return a user-facing hint for a provider error code, if one is known."""
    code = error_code(error)
    return ERROR_HINTS.get(code) if code else None
