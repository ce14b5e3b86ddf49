"""Generation backends.

Public API:
    - GenerationProvider: Protocol consumed by the orchestrator
    - BaseProvider: Shared generate / generate_safe / test_connection pipeline
    - OpenAIProvider, GeminiProvider, ClaudeProvider: Production backends
    - MockProvider, ProviderErrorSimulator: Offline backends for tests
"""

from .base import (
    BaseProvider,
    ConnectionTestResult,
    GenerationProvider,
    RetryRecord,
    SafeGenerationResult,
)
from .claude import ClaudeProvider, cleanup_sdk_child_processes
from .gemini import GeminiProvider
from .mock import MockProvider, ProviderErrorSimulator
from .openai import OpenAIProvider

__all__ = [
    "BaseProvider",
    "ClaudeProvider",
    "ConnectionTestResult",
    "GeminiProvider",
    "GenerationProvider",
    "MockProvider",
    "OpenAIProvider",
    "ProviderErrorSimulator",
    "RetryRecord",
    "SafeGenerationResult",
    "cleanup_sdk_child_processes",
]
