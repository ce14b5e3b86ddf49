"""Shape validation for decoded project drafts.

A draft is the JSON object returned by a model before any enrichment. Errors
make the draft unusable (missing name, no tasks, task without title or
duration); warnings flag fields that are missing or out of vocabulary but can
be defaulted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .config import DEFAULT_VALIDATION_RULES, MAX_BUILD_DEPTH, ValidationRules


@dataclass
class DraftValidation:
    """Result of draft validation.

    Attributes:
        is_valid: Whether the draft has the required shape.
        errors: Every shape violation found.
        warnings: Non-fatal observations.
    """

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_generated_project(
    data: Any, rules: ValidationRules = DEFAULT_VALIDATION_RULES
) -> DraftValidation:
    """Validate the shape of a decoded project draft.

    Args:
        data: Decoded JSON value returned by a model.
        rules: Vocabulary for priorities, task and deliverable types.

    Returns:
        DraftValidation with all errors and warnings found.
    """
    result = DraftValidation()

    if not isinstance(data, dict):
        result.add_error("Project data must be an object")
        return result

    if not _is_text(data.get("name")):
        result.add_error("Project must have a valid name")

    if not isinstance(data.get("description"), str) or not data.get("description"):
        result.warnings.append("Project should have a description")

    if not _is_positive_number(data.get("estimatedDuration")):
        result.warnings.append("Project should have a valid estimated duration")

    tasks = data.get("tasks")
    if not isinstance(tasks, list):
        result.add_error("Project must have a tasks array")
    elif not tasks:
        result.add_error("Project must have at least one task")
    else:
        for index, task in enumerate(tasks):
            _validate_task(task, str(index), 0, rules, result)

    members = data.get("teamMembers")
    if members:
        if not isinstance(members, list):
            result.warnings.append("Team members should be an array")
        else:
            for index, member in enumerate(members):
                member = member if isinstance(member, dict) else {}
                if not _is_text(member.get("name")):
                    result.warnings.append(f"Team member at index {index} should have a name")
                if not _is_text(member.get("role")):
                    result.warnings.append(f"Team member at index {index} should have a role")

    return result


def _validate_task(
    task: Any,
    path: str,
    depth: int,
    rules: ValidationRules,
    result: DraftValidation,
) -> None:
    if not isinstance(task, dict):
        result.add_error(f"Task at index {path} must be an object")
        return

    if depth >= MAX_BUILD_DEPTH:
        result.add_error(f"Task at index {path} is nested too deeply")
        return

    if not _is_text(task.get("title")):
        result.add_error(f"Task at index {path} must have a valid title")

    if not isinstance(task.get("description"), str) or not task.get("description"):
        result.warnings.append(f"Task at index {path} should have a description")

    if not _is_positive_number(task.get("duration")):
        result.add_error(f"Task at index {path} must have a valid duration")

    priority = task.get("priority")
    if priority and priority not in rules.valid_priorities:
        result.warnings.append(f'Task at index {path} has invalid priority "{priority}"')

    task_type = task.get("type")
    if task_type and task_type not in rules.valid_task_types:
        result.warnings.append(f'Task at index {path} has invalid type "{task_type}"')

    deliverable = task.get("deliverable")
    if deliverable:
        if task_type != "with_deliverable":
            result.warnings.append(
                f'Task at index {path} has deliverable but type is not "with_deliverable"'
            )
        deliverable_type = deliverable.get("type") if isinstance(deliverable, dict) else None
        if deliverable_type not in rules.valid_deliverable_types:
            result.warnings.append(f"Task at index {path} deliverable has invalid type")

    subtasks = task.get("subtasks")
    if isinstance(subtasks, list):
        for index, subtask in enumerate(subtasks):
            _validate_task(subtask, f"{path}.{index}", depth + 1, rules, result)
