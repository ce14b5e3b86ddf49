"""Data model for generated projects and their task trees.

EnrichedTask is the node type produced by the hierarchy builder. Each task
keeps its children in ``subtasks`` for serialization, while BuiltHierarchy
carries an id-addressed index and an explicit child -> parent map so that
validation never depends on object identity.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utc_timestamp() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Deliverable:
    """Tangible output attached to a ``with_deliverable`` task."""

    type: str = "other"
    description: str = ""
    status: str = "pending"
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "status": self.status,
            "notes": self.notes,
        }


@dataclass
class TeamMember:
    """A team member suggested by the model."""

    id: str
    name: str = ""
    email: str = ""
    role: str = ""
    avatar: str | None = None
    joined_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "avatar": self.avatar,
            "joined_at": self.joined_at,
        }


@dataclass
class EnrichedTask:
    """A task node with identity, position and derived duration.

    Attributes:
        id: Unique id assigned by the builder.
        project_id: Id of the owning project.
        parent_task_id: Id of the enclosing task, None for main tasks.
        title: Task title as authored by the model.
        description: Task description as authored by the model.
        duration: Authored duration in working days. Never rewritten.
        aggregated_duration: Bottom-up sum of child aggregates, or the own
            duration for a leaf.
        level: Depth in the tree, 0 for main tasks.
        is_main_task: True for level-0 tasks.
        has_subtasks: True when the node has at least one child.
        original_order: Pre-order position across the whole forest.
        module_type: Module name the task was tagged with, if any.
        deliverable: Deliverable for ``with_deliverable`` tasks.
        subtasks: Child tasks in authored order.
        priority: "low" | "medium" | "high".
        task_type: "simple" | "with_deliverable".
        dependencies: Advisory list of task titles this task depends on.
        status: Lifecycle status, "pending" on creation.
    """

    id: str
    project_id: str
    parent_task_id: str | None
    title: str
    description: str
    duration: int
    aggregated_duration: int
    level: int
    is_main_task: bool
    has_subtasks: bool
    original_order: int
    module_type: str | None = None
    deliverable: Deliverable | None = None
    subtasks: list[EnrichedTask] = field(default_factory=list)
    priority: str = "medium"
    task_type: str = "simple"
    dependencies: list[str] = field(default_factory=list)
    status: str = "pending"

    @property
    def child_ids(self) -> list[str]:
        """Ids of the direct children, in order."""
        return [child.id for child in self.subtasks]

    def iter_tree(self) -> Iterator[EnrichedTask]:
        """Yield this task and all descendants in pre-order."""
        yield self
        for child in self.subtasks:
            yield from child.iter_tree()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation, children included.

        Returns:
            Dictionary containing all task fields.
        """
        return {
            "id": self.id,
            "project_id": self.project_id,
            "parent_task_id": self.parent_task_id,
            "title": self.title,
            "description": self.description,
            "duration": self.duration,
            "aggregated_duration": self.aggregated_duration,
            "level": self.level,
            "is_main_task": self.is_main_task,
            "has_subtasks": self.has_subtasks,
            "original_order": self.original_order,
            "module_type": self.module_type,
            "deliverable": self.deliverable.to_dict() if self.deliverable else None,
            "priority": self.priority,
            "type": self.task_type,
            "dependencies": self.dependencies,
            "status": self.status,
            "subtasks": [child.to_dict() for child in self.subtasks],
        }


def iter_forest(tasks: list[EnrichedTask]) -> Iterator[EnrichedTask]:
    """Yield every task of a forest in pre-order."""
    for task in tasks:
        yield from task.iter_tree()


@dataclass
class BuiltHierarchy:
    """Result of building a task forest.

    Attributes:
        tasks: Main tasks, each carrying its subtree.
        relationships: Child id -> parent id for every non-root task.
        index: Task id -> task for every node in the forest.
    """

    tasks: list[EnrichedTask] = field(default_factory=list)
    relationships: dict[str, str] = field(default_factory=dict)
    index: dict[str, EnrichedTask] = field(default_factory=dict)

    @property
    def task_count(self) -> int:
        return len(self.index)

    @property
    def main_task_count(self) -> int:
        return len(self.tasks)

    @property
    def subtask_count(self) -> int:
        return self.task_count - self.main_task_count

    @property
    def max_depth(self) -> int:
        """Number of levels in the forest (0 when empty)."""
        if not self.index:
            return 0
        return max(task.level for task in self.index.values()) + 1

    def flatten(self) -> list[EnrichedTask]:
        """All tasks in pre-order."""
        return list(iter_forest(self.tasks))


@dataclass(frozen=True)
class HierarchyMetadata:
    """Summary attached to projects built along the hierarchical path."""

    total_tasks: int
    max_depth: int
    main_task_count: int
    subtask_count: int
    modules: tuple[str, ...] = ()
    analysis_complexity: str = "medium"
    is_hierarchical: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_hierarchical": self.is_hierarchical,
            "total_tasks": self.total_tasks,
            "max_depth": self.max_depth,
            "main_task_count": self.main_task_count,
            "subtask_count": self.subtask_count,
            "modules": list(self.modules),
            "analysis_complexity": self.analysis_complexity,
        }


@dataclass
class Project:
    """A generated project ready to hand to a persistence layer.

    Attributes:
        id: Unique project id.
        name: Project name.
        description: Project description.
        estimated_duration: Total duration in working days as authored.
        status: Lifecycle status, "active" on creation.
        created_at: ISO 8601 creation timestamp.
        updated_at: ISO 8601 last-update timestamp.
        tasks: Main tasks with their subtrees.
        team_members: Suggested team members.
        generated_by: Name of the provider that produced the project.
        generated_at: ISO 8601 timestamp of the successful generation.
        hierarchy_metadata: Present only for the hierarchical path.
        warnings: Non-fatal findings from validation.
    """

    id: str
    name: str
    description: str = ""
    estimated_duration: int = 0
    status: str = "active"
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)
    tasks: list[EnrichedTask] = field(default_factory=list)
    team_members: list[TeamMember] = field(default_factory=list)
    generated_by: str | None = None
    generated_at: str | None = None
    hierarchy_metadata: HierarchyMetadata | None = None
    warnings: list[str] = field(default_factory=list)

    def iter_tasks(self) -> Iterator[EnrichedTask]:
        """Yield every task in pre-order."""
        return iter_forest(self.tasks)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            Dictionary containing all project fields, tasks included.
        """
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "estimated_duration": self.estimated_duration,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "tasks": [task.to_dict() for task in self.tasks],
            "team_members": [member.to_dict() for member in self.team_members],
            "generated_by": self.generated_by,
            "generated_at": self.generated_at,
            "hierarchy_metadata": (
                self.hierarchy_metadata.to_dict() if self.hierarchy_metadata else None
            ),
            "warnings": self.warnings,
        }
