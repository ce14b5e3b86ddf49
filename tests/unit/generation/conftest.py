"""Shared fixtures for generation tests."""

from __future__ import annotations

import json
from typing import Any

import pytest

from project_generator.generation.prompt_analyzer import Module, PromptAnalysis


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    """Sleep replacement that returns immediately."""
    return RecordingSleep()


@pytest.fixture
def hierarchical_analysis() -> PromptAnalysis:
    """A hierarchical three-level analysis naming two modules."""
    return PromptAnalysis(
        language="spanish",
        is_hierarchical=True,
        modules=(Module(name="INTRANET", order=0), Module(name="COMERCIAL", order=1)),
        complexity="detailed",
        suggested_levels=3,
        confidence=80,
    )


def make_draft(**overrides: Any) -> dict[str, Any]:
    """Build a valid project draft, applying top-level overrides."""
    draft: dict[str, Any] = {
        "name": "Portal",
        "description": "Company portal",
        "estimatedDuration": 10,
        "tasks": [
            {
                "title": "INTRANET",
                "description": "Internal site",
                "duration": 5,
                "priority": "high",
                "type": "simple",
                "subtasks": [
                    {"title": "Login", "description": "Auth", "duration": 2},
                    {"title": "News", "description": "Feed", "duration": 3},
                ],
            },
            {
                "title": "COMERCIAL",
                "description": "Sales area",
                "duration": 5,
                "priority": "medium",
                "type": "simple",
            },
        ],
        "teamMembers": [{"name": "Ana", "role": "PM", "email": "ana@example.com"}],
    }
    draft.update(overrides)
    return draft


@pytest.fixture
def draft_json() -> str:
    """Raw JSON text of a valid two-level project draft."""
    return json.dumps(make_draft())
