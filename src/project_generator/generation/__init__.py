"""Generation module: free-text prompt to validated task hierarchy.

This module analyzes a project description, asks one or more LLM providers
for a project draft, recovers JSON from imperfect responses, and builds and
validates the resulting multi-level task tree.

Public API:
    Prompt Analysis:
    - PromptAnalyzer / analyze_prompt: Detect language, modules and depth
    - PromptAnalysis, Module, Component: Analysis result types
    - summarize_analysis: Human-readable analysis summary

    Response Recovery:
    - clean_response: Strip fences and prose around the JSON object
    - attempt_repair: Close truncated strings, brackets and braces
    - decode_response: Clean, decode and repair in one step

    Hierarchy:
    - HierarchyBuilder / build_hierarchy: Enrich raw task nodes into a forest
    - HierarchyValidator / validate_hierarchy: Structural validation
    - detect_circular_dependencies: Cycles in a child -> parent map
    - EnrichedTask, BuiltHierarchy, Project: Data model

    Orchestration:
    - GenerationOrchestrator: Provider registry with sequential fallback
    - GenerationOptions: Per-request options
    - GenerationOutcome, AttemptRecord: Fallback run result
    - GenerationProvider, BaseProvider and the provider backends

    Exceptions:
    - GenerationError: Base exception for generation errors
    - See exceptions.py for the full hierarchy
"""

from __future__ import annotations

from .config import GenerationOptions, ProviderSettings, RetryConfig
from .exceptions import (
    GenerationError,
    HierarchyError,
    InputError,
    InvalidCredentialsError,
    InvalidInputError,
    MalformedResponseError,
    NoProviderConfiguredError,
    NoProviderReadyError,
    PermanentProviderError,
    ProjectValidationError,
    ProviderConfigurationError,
    ProviderError,
    ProviderNotReadyError,
    TransientProviderError,
    UnknownProviderError,
)
from .hierarchy_builder import HierarchyBuilder, build_hierarchy
from .hierarchy_validator import (
    HierarchyStatistics,
    HierarchyValidator,
    ValidationResult,
    detect_circular_dependencies,
    validate_hierarchy,
)
from .orchestrator import (
    AttemptRecord,
    GenerationOrchestrator,
    GenerationOutcome,
    create_default_providers,
)
from .project_validator import DraftValidation, validate_generated_project
from .prompt_analyzer import (
    Component,
    Module,
    PromptAnalysis,
    PromptAnalyzer,
    analyze_prompt,
    summarize_analysis,
)
from .providers import (
    BaseProvider,
    ClaudeProvider,
    ConnectionTestResult,
    GeminiProvider,
    GenerationProvider,
    MockProvider,
    OpenAIProvider,
    ProviderErrorSimulator,
    SafeGenerationResult,
)
from .response_processor import ResponseProcessor, process_response
from .response_repair import attempt_repair, clean_response, decode_response
from .retry import ErrorClass, classify_error, compute_backoff_delay
from .task_model import BuiltHierarchy, Deliverable, EnrichedTask, Project, TeamMember

__all__ = [
    # Configuration
    "GenerationOptions",
    "ProviderSettings",
    "RetryConfig",
    # Prompt analysis
    "Component",
    "Module",
    "PromptAnalysis",
    "PromptAnalyzer",
    "analyze_prompt",
    "summarize_analysis",
    # Response recovery
    "attempt_repair",
    "clean_response",
    "decode_response",
    "DraftValidation",
    "validate_generated_project",
    "ResponseProcessor",
    "process_response",
    # Hierarchy
    "BuiltHierarchy",
    "Deliverable",
    "EnrichedTask",
    "HierarchyBuilder",
    "HierarchyStatistics",
    "HierarchyValidator",
    "Project",
    "TeamMember",
    "ValidationResult",
    "build_hierarchy",
    "detect_circular_dependencies",
    "validate_hierarchy",
    # Orchestration
    "AttemptRecord",
    "BaseProvider",
    "ClaudeProvider",
    "ConnectionTestResult",
    "ErrorClass",
    "GeminiProvider",
    "GenerationOrchestrator",
    "GenerationOutcome",
    "GenerationProvider",
    "MockProvider",
    "OpenAIProvider",
    "ProviderErrorSimulator",
    "SafeGenerationResult",
    "classify_error",
    "compute_backoff_delay",
    "create_default_providers",
    # Exceptions
    "GenerationError",
    "HierarchyError",
    "InputError",
    "InvalidCredentialsError",
    "InvalidInputError",
    "MalformedResponseError",
    "NoProviderConfiguredError",
    "NoProviderReadyError",
    "PermanentProviderError",
    "ProjectValidationError",
    "ProviderConfigurationError",
    "ProviderError",
    "ProviderNotReadyError",
    "TransientProviderError",
    "UnknownProviderError",
]
