"""Hierarchy builder: raw LLM task nodes -> enriched task forest.

The builder assigns identities, parent links, levels and a forest-wide
pre-order sequence number, tags main tasks with detected modules and
aggregates durations bottom-up. The authored ``duration`` of a task is never
changed; the derived sum lives in ``aggregated_duration``.
"""

from __future__ import annotations

import itertools
import logging
import math
import uuid
from collections.abc import Callable, Iterator
from typing import Any

from .config import MAX_BUILD_DEPTH
from .exceptions import HierarchyError
from .prompt_analyzer import PromptAnalysis
from .task_model import BuiltHierarchy, Deliverable, EnrichedTask

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]

# Module names looked up in main task titles when no hierarchical analysis applies
FALLBACK_MODULES: tuple[str, ...] = (
    "INTRANET",
    "COMERCIAL",
    "OPERACIONES",
    "ADMIN",
    "USUARIOS",
    "REPORTES",
)

DELIVERABLE_TASK_TYPE = "with_deliverable"


def new_task_id() -> str:
    """Return a fresh, never reused task id."""
    return f"task_{uuid.uuid4().hex}"


def coerce_duration(value: Any) -> int:
    """Read an authored duration in whole days, defaulting to 1.

    Numbers are truncated toward zero; anything that truncates to 0 (0, 0.5)
    or is unusable becomes 1. Negative values are kept so the validator can
    report them.
    """
    if isinstance(value, bool):
        return 1
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 1
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value) or 1
    return 1


def match_module(title: str, analysis: PromptAnalysis | None) -> str | None:
    """Return the module a main task title belongs to, or None.

    With a hierarchical analysis, the first module (in discovery order) whose
    name contains or is contained in the title, or whose keyword appears in
    the title, wins. Otherwise the fixed fallback catalogue is searched.
    """
    normalized = title.upper()
    if not normalized:
        return None

    if analysis is not None and analysis.is_hierarchical:
        for module in analysis.modules:
            name = module.name.upper()
            if name in normalized or normalized in name:
                return module.name
            if any(keyword and keyword.upper() in normalized for keyword in module.keywords):
                return module.name
        return None

    for name in FALLBACK_MODULES:
        if name in normalized:
            return name
    return None


def _build_deliverable(node: dict[str, Any]) -> Deliverable | None:
    raw = node.get("deliverable")
    if node.get("type") != DELIVERABLE_TASK_TYPE or not isinstance(raw, dict):
        return None
    return Deliverable(
        type=str(raw.get("type") or "other"),
        description=str(raw.get("description") or ""),
    )


class HierarchyBuilder:
    """Builds an EnrichedTask forest from untrusted task nodes.

    Args:
        id_factory: Callable returning a new unique id per call.
        max_depth: Hard recursion guard, in levels.
    """

    def __init__(
        self,
        id_factory: IdFactory | None = None,
        max_depth: int = MAX_BUILD_DEPTH,
    ) -> None:
        self.id_factory = id_factory or new_task_id
        self.max_depth = max_depth

    def build(
        self,
        nodes: Any,
        project_id: str,
        analysis: PromptAnalysis | None = None,
    ) -> BuiltHierarchy:
        """Build the forest for one project.

        Args:
            nodes: Decoded list of raw task nodes.
            project_id: Id stamped on every task.
            analysis: Prompt analysis used for module tagging.

        Returns:
            BuiltHierarchy with roots, child -> parent map and id index.

        Raises:
            HierarchyError: If nodes is not a list, the tree is deeper than
                max_depth, or the id factory repeats an id.
        """
        if not isinstance(nodes, list):
            raise HierarchyError(f"Task list must be a list, got {type(nodes).__name__}")

        hierarchy = BuiltHierarchy()
        counter = itertools.count()
        hierarchy.tasks = list(
            self._build_level(nodes, project_id, None, 0, analysis, counter, hierarchy)
        )

        logger.debug(
            "Built hierarchy: %d tasks, %d main, %d levels",
            hierarchy.task_count,
            hierarchy.main_task_count,
            hierarchy.max_depth,
        )
        return hierarchy

    def _build_level(
        self,
        nodes: list[Any],
        project_id: str,
        parent_id: str | None,
        level: int,
        analysis: PromptAnalysis | None,
        counter: Iterator[int],
        hierarchy: BuiltHierarchy,
    ) -> Iterator[EnrichedTask]:
        if level >= self.max_depth:
            raise HierarchyError(f"Task tree exceeds {self.max_depth} levels")

        for position, node in enumerate(nodes):
            if not isinstance(node, dict):
                logger.warning(
                    "Skipping non-object task node at level %d, position %d: %r",
                    level,
                    position,
                    node,
                )
                continue
            yield self._build_task(node, project_id, parent_id, level, analysis, counter, hierarchy)

    def _build_task(
        self,
        node: dict[str, Any],
        project_id: str,
        parent_id: str | None,
        level: int,
        analysis: PromptAnalysis | None,
        counter: Iterator[int],
        hierarchy: BuiltHierarchy,
    ) -> EnrichedTask:
        task_id = self.id_factory()
        if task_id in hierarchy.index:
            raise HierarchyError(f"Duplicate task id generated: {task_id}")

        title = str(node.get("title") or "")
        duration = coerce_duration(node.get("duration"))
        dependencies = node.get("dependencies")

        # Claimed before children so the order is pre-order
        task = EnrichedTask(
            id=task_id,
            project_id=project_id,
            parent_task_id=parent_id,
            title=title,
            description=str(node.get("description") or ""),
            duration=duration,
            aggregated_duration=duration,
            level=level,
            is_main_task=level == 0,
            has_subtasks=False,
            original_order=next(counter),
            module_type=match_module(title, analysis) if level == 0 else None,
            deliverable=_build_deliverable(node),
            priority=str(node.get("priority") or "medium"),
            task_type=str(node.get("type") or "simple"),
            dependencies=[str(d) for d in dependencies] if isinstance(dependencies, list) else [],
        )
        hierarchy.index[task_id] = task
        if parent_id is not None:
            hierarchy.relationships[task_id] = parent_id

        raw_children = node.get("subtasks")
        if isinstance(raw_children, list) and raw_children:
            task.subtasks = list(
                self._build_level(
                    raw_children, project_id, task_id, level + 1, analysis, counter, hierarchy
                )
            )

        if task.subtasks:
            task.has_subtasks = True
            task.aggregated_duration = sum(child.aggregated_duration for child in task.subtasks)

        return task


def build_hierarchy(
    nodes: Any,
    project_id: str,
    analysis: PromptAnalysis | None = None,
    id_factory: IdFactory | None = None,
) -> BuiltHierarchy:
    """Build an enriched task forest. See HierarchyBuilder.build()."""
    return HierarchyBuilder(id_factory=id_factory).build(nodes, project_id, analysis)
