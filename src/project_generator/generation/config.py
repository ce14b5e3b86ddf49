"""Configuration for the project generation pipeline.

This module defines configuration dataclasses and constant tables for the
generation pipeline: per-provider model settings, task limits by complexity,
draft validation rules, hierarchy limits and the error tables used to decide
whether a failed provider call is worth retrying.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .prompt_analyzer import PromptAnalysis

# Complexity levels accepted in generation options
GENERATION_COMPLEXITIES: tuple[str, ...] = ("basic", "medium", "detailed")

# Analyzer complexity -> generation complexity
ANALYSIS_TO_GENERATION_COMPLEXITY: dict[str, str] = {
    "simple": "basic",
    "medium": "medium",
    "detailed": "detailed",
}


@dataclass(frozen=True)
class TaskLimits:
    """Main-task count bounds for one complexity level."""

    min: int
    max: int


TASK_LIMITS: dict[str, TaskLimits] = {
    "basic": TaskLimits(min=3, max=8),
    "medium": TaskLimits(min=5, max=15),
    "detailed": TaskLimits(min=10, max=20),
}


@dataclass(frozen=True)
class ProviderSettings:
    """Model settings for a single provider backend.

    Attributes:
        model: Model identifier sent to the backend.
        temperature: Sampling temperature (ignored by backends without one).
        max_tokens: Output token budget keyed by generation complexity.
        timeout_seconds: HTTP timeout for a single call.
    """

    model: str
    temperature: float = 0.7
    max_tokens: dict[str, int] = field(
        default_factory=lambda: {"basic": 2500, "medium": 3500, "detailed": 4000}
    )
    timeout_seconds: float = 60.0

    def tokens_for(self, complexity: str) -> int:
        """Return the output token budget for a complexity level."""
        return self.max_tokens.get(complexity, 3500)


PROVIDER_SETTINGS: dict[str, ProviderSettings] = {
    "openai": ProviderSettings(model="gpt-4o-mini"),
    "gemini": ProviderSettings(model="gemini-1.5-flash"),
    "claude": ProviderSettings(model="claude-sonnet-4-20250514", timeout_seconds=120.0),
    "mock": ProviderSettings(model="mock"),
}


@dataclass(frozen=True)
class ValidationRules:
    """Limits applied to generated drafts and built hierarchies."""

    min_duration: int = 1
    max_duration: int = 365
    max_subtasks: int = 20
    max_total_tasks: int = 100
    max_title_length: int = 200
    max_description_length: int = 1000
    valid_priorities: tuple[str, ...] = ("low", "medium", "high")
    valid_task_types: tuple[str, ...] = ("simple", "with_deliverable")
    valid_deliverable_types: tuple[str, ...] = ("presentation", "file", "exposition", "other")


DEFAULT_VALIDATION_RULES = ValidationRules()

# Hierarchy levels counted from the root: main task -> subtask -> sub-subtask
MAX_HIERARCHY_LEVELS = 3

# Hard recursion guard for the builder; deeper input is rejected outright
MAX_BUILD_DEPTH = 16

# Errors that should not be retried, by provider
PERMANENT_ERROR_CODES: dict[str, frozenset[str]] = {
    "openai": frozenset(
        {"insufficient_quota", "invalid_api_key", "model_not_found", "invalid_request_error"}
    ),
    "gemini": frozenset(
        {"API_KEY_INVALID", "QUOTA_EXCEEDED", "PERMISSION_DENIED", "INVALID_ARGUMENT", "NOT_FOUND"}
    ),
    "claude": frozenset(
        {
            "authentication_error",
            "permission_error",
            "not_found_error",
            "invalid_request_error",
            "quota_exceeded",
            "sdk_not_installed",
        }
    ),
    "mock": frozenset({"invalid_api_key", "insufficient_quota", "model_not_found"}),
}

# Errors that should be retried, by provider
RETRYABLE_ERROR_CODES: dict[str, frozenset[str]] = {
    "openai": frozenset(
        {"rate_limit_exceeded", "server_error", "timeout", "network_error", "service_unavailable"}
    ),
    "gemini": frozenset(
        {"RATE_LIMIT_EXCEEDED", "RESOURCE_EXHAUSTED", "INTERNAL", "INTERNAL_ERROR",
         "TIMEOUT", "NETWORK_ERROR", "UNAVAILABLE", "SERVICE_UNAVAILABLE"}
    ),
    "claude": frozenset(
        {"rate_limit_error", "overloaded_error", "api_error", "timeout", "network_error",
         "model_unavailable"}
    ),
    "mock": frozenset({"rate_limit_exceeded", "timeout", "network_error"}),
}

# Message keywords that mark an otherwise unclassified error as retryable
RETRYABLE_MESSAGE_KEYWORDS: tuple[str, ...] = ("network", "timeout", "fetch", "connection")

# Message keywords that mark an otherwise unclassified error as permanent
PERMANENT_MESSAGE_KEYWORDS: tuple[str, ...] = ("validation", "invalid")

# Hints appended to a provider's error list when it finally gives up
ERROR_HINTS: dict[str, str] = {
    "insufficient_quota": "Hint: check the billing settings of your account",
    "QUOTA_EXCEEDED": "Hint: check the billing settings of your account",
    "quota_exceeded": "Hint: check the billing settings of your account",
    "invalid_api_key": "Hint: verify that the API key is valid and has permissions",
    "API_KEY_INVALID": "Hint: verify that the API key is valid and has permissions",
    "authentication_error": "Hint: verify that the API key is valid and has permissions",
    "rate_limit_exceeded": "Hint: wait a few minutes before trying again",
    "RATE_LIMIT_EXCEEDED": "Hint: wait a few minutes before trying again",
    "rate_limit_error": "Hint: wait a few minutes before trying again",
}


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters for a provider's safe-generation loop.

    Attributes:
        max_retries: Retries after the first attempt (attempts = max_retries + 1).
        base_delay_ms: Base delay before jitter and doubling.
        max_delay_ms: Upper bound for any single delay.
    """

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000


DEFAULT_RETRY_CONFIG = RetryConfig()


@dataclass(frozen=True)
class GenerationOptions:
    """Options for a single generation request.

    Attributes:
        complexity: "basic" | "medium" | "detailed"; derived from the prompt
            analysis when left as None.
        include_team_members: Ask the model for a team member list.
        max_tasks: Maximum number of main tasks to request.
        max_retries: Retries per provider in safe generation.
        base_delay_ms: Base backoff delay in milliseconds.
        max_delay_ms: Backoff delay cap in milliseconds.
        analysis_result: Precomputed prompt analysis; computed when None.
        estimated_duration: Optional total duration hint in working days.
    """

    complexity: str | None = None
    include_team_members: bool = True
    max_tasks: int = 20
    max_retries: int = DEFAULT_RETRY_CONFIG.max_retries
    base_delay_ms: int = DEFAULT_RETRY_CONFIG.base_delay_ms
    max_delay_ms: int = DEFAULT_RETRY_CONFIG.max_delay_ms
    analysis_result: PromptAnalysis | None = None
    estimated_duration: int | None = None

    @property
    def effective_complexity(self) -> str:
        """Complexity to use in prompts, falling back to "medium"."""
        if self.complexity in GENERATION_COMPLEXITIES:
            return self.complexity  # type: ignore[return-value]
        return "medium"

    @property
    def retry(self) -> RetryConfig:
        """Retry parameters carried by these options."""
        return RetryConfig(
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
        )

    def with_analysis(self, analysis: PromptAnalysis) -> GenerationOptions:
        """Return a copy carrying the analysis and a derived complexity."""
        complexity = self.complexity
        if complexity is None:
            complexity = ANALYSIS_TO_GENERATION_COMPLEXITY.get(analysis.complexity, "medium")
        return replace(self, analysis_result=analysis, complexity=complexity)
