"""Project Generator.

This package turns a free-text project description into a validated,
multi-level task hierarchy by prompting one or more LLM providers with
sequential fallback.
"""

from __future__ import annotations

from .generation import (
    GenerationOptions,
    GenerationOrchestrator,
    GenerationOutcome,
    Project,
    analyze_prompt,
)
from .project_config import PlannerConfig, load_project_config, resolve_config_for_cli
from .cli import cli, main

__version__ = "0.1.0"

__all__ = [
    "GenerationOptions",
    "GenerationOrchestrator",
    "GenerationOutcome",
    "PlannerConfig",
    "Project",
    "analyze_prompt",
    "cli",
    "load_project_config",
    "main",
    "resolve_config_for_cli",
]
