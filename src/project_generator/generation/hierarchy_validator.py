"""Structural validation of built task hierarchies.

The validator reads a forest of EnrichedTask nodes plus its child -> parent
relationship map and reports every violation it finds in a single pass. It
never mutates the forest. Statistics are computed even for invalid input so
failures can be diagnosed.

Cycle detection works on the relationship map alone, independent of the tree
shape, using Kahn's algorithm to prune acyclic nodes and a walk over the
remaining nodes to report each cycle.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from .config import DEFAULT_VALIDATION_RULES, MAX_HIERARCHY_LEVELS, ValidationRules
from .task_model import BuiltHierarchy, EnrichedTask

logger = logging.getLogger(__name__)


@dataclass
class HierarchyStatistics:
    """Counts and totals gathered from a forest.

    Attributes:
        total_tasks: Number of task nodes in the forest.
        main_tasks: Level-0 tasks.
        subtasks: Tasks at the second level.
        sub_subtasks: Tasks at the third level.
        tasks_with_subtasks: Tasks flagged as having children.
        total_duration: Sum of authored durations of every node.
        average_duration: total_duration / total_tasks, two decimals.
        relationship_count: Entries in the relationship map.
        max_depth_found: Levels found by traversal (0 for an empty forest).
    """

    total_tasks: int = 0
    main_tasks: int = 0
    subtasks: int = 0
    sub_subtasks: int = 0
    tasks_with_subtasks: int = 0
    total_duration: int = 0
    average_duration: float = 0.0
    relationship_count: int = 0
    max_depth_found: int = 0


@dataclass
class ValidationResult:
    """Result of hierarchy validation.

    Attributes:
        is_valid: False as soon as any error has been recorded.
        errors: Every violation found, in discovery order.
        warnings: Non-fatal findings.
        statistics: Forest statistics, always populated.
        cycles: Cycles found in the relationship map, one id list per cycle.
    """

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    statistics: HierarchyStatistics = field(default_factory=HierarchyStatistics)
    cycles: list[list[str]] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def detect_circular_dependencies(relationships: Mapping[str, str]) -> list[list[str]]:
    """Find cycles in a child -> parent relationship map.

    Uses Kahn's algorithm (BFS topological sort) over the graph whose edges
    run from child to parent. Nodes left with a positive in-degree lie on a
    cycle and are traced to report each distinct cycle once.

    Args:
        relationships: Mapping of child id -> parent id.

    Returns:
        List of cycles, each an ordered list of ids where every id's parent
        is the next id and the last id's parent is the first. Empty when the
        map is acyclic.
    """
    if not relationships:
        return []

    # Nodes are every id that appears as a child or a parent
    adj: dict[str, list[str]] = {}
    for child, parent in relationships.items():
        adj.setdefault(child, []).append(parent)
        adj.setdefault(parent, [])

    in_degree: dict[str, int] = {node: 0 for node in adj}
    for targets in adj.values():
        for target in targets:
            in_degree[target] += 1

    queue: deque[str] = deque(node for node, degree in in_degree.items() if degree == 0)
    visited_count = 0
    while queue:
        node = queue.popleft()
        visited_count += 1
        for neighbor in adj[node]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if visited_count == len(adj):
        return []

    remaining = [node for node, degree in in_degree.items() if degree > 0]
    return _trace_cycles(adj, remaining)


def _trace_cycles(adj: dict[str, list[str]], remaining: list[str]) -> list[list[str]]:
    """Trace each cycle among nodes known to lie on one.

    Args:
        adj: Adjacency list for the full graph.
        remaining: Nodes left after Kahn pruning, in discovery order.

    Returns:
        One id list per distinct cycle.
    """
    remaining_set = set(remaining)
    cycles: list[list[str]] = []
    visited: set[str] = set()

    for start in remaining:
        if start in visited:
            continue

        path: list[str] = []
        path_set: set[str] = set()
        node = start

        while node not in path_set and node not in visited:
            path.append(node)
            path_set.add(node)
            next_node = next((n for n in adj[node] if n in remaining_set), None)
            if next_node is None:
                break
            node = next_node

        visited.update(path)
        if node in path_set:
            cycles.append(path[path.index(node) :])

    return cycles


def _walk(forest: list[Any]) -> Iterator[tuple[Any, int, int]]:
    """Yield (node, index among siblings, depth in levels) in pre-order.

    Each node object is visited once even if the forest links it twice.
    """
    seen: set[int] = set()
    stack: list[tuple[Any, int, int]] = [
        (node, index, 1) for index, node in reversed(list(enumerate(forest)))
    ]
    while stack:
        node, index, depth = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node, index, depth
        children = getattr(node, "subtasks", None)
        if isinstance(children, list):
            stack.extend(
                (child, child_index, depth + 1)
                for child_index, child in reversed(list(enumerate(children)))
            )


class HierarchyValidator:
    """Validates structural invariants of a built task forest.

    Checks, collecting every violation:
    - Forest and relationship map types, total task ceiling
    - Per task: title, duration, level, subtask count, child level and
      parent id consistency
    - Duplicate ids across the whole forest
    - Relationship membership and level consistency
    - Depth ceiling measured by traversal
    - Cycles in the relationship map

    Example:
        >>> result = HierarchyValidator().validate(tasks, relationships)
        >>> if not result.is_valid:
        ...     print(result.errors)
    """

    def __init__(
        self,
        rules: ValidationRules = DEFAULT_VALIDATION_RULES,
        max_levels: int = MAX_HIERARCHY_LEVELS,
    ) -> None:
        self.rules = rules
        self.max_levels = max_levels

    def validate(
        self,
        forest: Any,
        relationships: Any,
        declared_task_count: int | None = None,
        declared_max_depth: int | None = None,
    ) -> ValidationResult:
        """Validate a forest against its relationship map.

        Args:
            forest: List of root EnrichedTask nodes.
            relationships: Mapping of child id -> parent id.
            declared_task_count: Task count reported by the builder. Defaults
                to the number of nodes found.
            declared_max_depth: Depth in levels reported by the builder.

        Returns:
            ValidationResult with all errors, warnings, cycles and statistics.
        """
        result = ValidationResult()

        if not isinstance(forest, list):
            result.add_error("Invalid hierarchy data: tasks must be a list")
            return result
        if not isinstance(relationships, Mapping):
            result.add_error("Invalid hierarchy data: relationships must be a mapping")
            return result

        nodes = list(_walk(forest))
        task_count = declared_task_count if declared_task_count is not None else len(nodes)
        result.statistics = self.compute_statistics(nodes, relationships)

        if task_count > self.rules.max_total_tasks:
            result.add_error(
                f"Too many tasks: {task_count}. Maximum allowed: {self.rules.max_total_tasks}"
            )
            return result

        if not forest:
            result.add_warning("Hierarchy contains no tasks")

        tasks: dict[str, EnrichedTask] = {}
        for node, index, _depth in nodes:
            if not isinstance(node, EnrichedTask):
                result.add_error(f"Task at index {index}: not a task object")
                continue
            self._validate_task(node, index, result)
            if node.id in tasks:
                result.add_error(f"Task {node.id}: Duplicate task ID detected")
            else:
                tasks[node.id] = node

        self._validate_relationships(tasks, relationships, result)
        self._validate_depth(result.statistics.max_depth_found, declared_max_depth, result)

        result.cycles = detect_circular_dependencies(relationships)
        if result.cycles:
            chains = ", ".join(" -> ".join(cycle) for cycle in result.cycles)
            result.add_error(f"Circular dependencies detected: {chains}")

        if not result.is_valid:
            logger.debug("Hierarchy validation failed with %d errors", len(result.errors))
        return result

    def validate_built(self, hierarchy: BuiltHierarchy) -> ValidationResult:
        """Validate a BuiltHierarchy using its own reported count and depth."""
        return self.validate(
            hierarchy.tasks,
            hierarchy.relationships,
            hierarchy.task_count,
            hierarchy.max_depth,
        )

    def _validate_task(self, task: EnrichedTask, index: int, result: ValidationResult) -> None:
        rules = self.rules
        ref = f"Task {task.id or f'at index {index}'}"

        if not isinstance(task.title, str) or not task.title.strip():
            result.add_error(f"{ref}: Missing or invalid title")
        elif len(task.title) > rules.max_title_length:
            result.add_warning(
                f"{ref}: Title too long ({len(task.title)} chars). "
                f"Maximum: {rules.max_title_length}"
            )

        if isinstance(task.description, str) and len(task.description) > rules.max_description_length:
            result.add_warning(
                f"{ref}: Description too long ({len(task.description)} chars). "
                f"Maximum: {rules.max_description_length}"
            )

        duration = task.duration
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < rules.min_duration:
            result.add_error(
                f"{ref}: Invalid duration ({duration}). Must be >= {rules.min_duration}"
            )
        elif duration > rules.max_duration:
            result.add_warning(f"{ref}: Very long duration ({duration} days)")

        if not isinstance(task.level, int) or task.level < 0:
            result.add_error(f"{ref}: Invalid level ({task.level})")

        children = task.subtasks if isinstance(task.subtasks, list) else []
        if task.has_subtasks and not children:
            result.add_warning(f"{ref}: Marked as having subtasks but subtasks list is empty")
        if not task.has_subtasks and children:
            result.add_warning(f"{ref}: Has subtasks but not marked as having subtasks")

        if len(children) > rules.max_subtasks:
            result.add_error(
                f"{ref}: Too many subtasks ({len(children)}). Maximum: {rules.max_subtasks}"
            )

        if children:
            expected = sum(getattr(child, "aggregated_duration", 0) or 0 for child in children)
            if abs(task.aggregated_duration - expected) > 1:
                result.add_warning(
                    f"{ref}: Aggregated duration mismatch. "
                    f"Expected: {expected}, Actual: {task.aggregated_duration}"
                )

        for child in children:
            if not isinstance(child, EnrichedTask):
                continue
            if child.level != task.level + 1:
                result.add_error(
                    f"{ref}: Subtask level inconsistency. "
                    f"Parent level: {task.level}, Subtask level: {child.level}"
                )
            if child.parent_task_id != task.id:
                result.add_error(
                    f"{ref}: Subtask parent ID mismatch. "
                    f"Expected: {task.id}, Actual: {child.parent_task_id}"
                )

    def _validate_relationships(
        self,
        tasks: dict[str, EnrichedTask],
        relationships: Mapping[str, str],
        result: ValidationResult,
    ) -> None:
        for child_id, parent_id in relationships.items():
            child = tasks.get(child_id)
            parent = tasks.get(parent_id)
            if child is None:
                result.add_error(f"Invalid relationship: Child task {child_id} not found in hierarchy")
            if parent is None:
                result.add_error(
                    f"Invalid relationship: Parent task {parent_id} not found in hierarchy"
                )
            if child is not None and parent is not None and child.level != parent.level + 1:
                result.add_error(
                    f"Relationship level mismatch: {child_id} (level {child.level}) "
                    f"under {parent_id} (level {parent.level})"
                )

        actual_child_ids = [
            child.id
            for task in tasks.values()
            for child in task.subtasks
            if isinstance(child, EnrichedTask)
        ]
        for child_id in actual_child_ids:
            if child_id not in relationships:
                result.add_warning(f"Missing relationship entry for child task: {child_id}")
        actual = set(actual_child_ids)
        for child_id in relationships:
            if child_id not in actual:
                result.add_warning(f"Extra relationship entry for non-existent child: {child_id}")

    def _validate_depth(
        self,
        actual_depth: int,
        declared_max_depth: int | None,
        result: ValidationResult,
    ) -> None:
        if actual_depth > self.max_levels:
            result.add_error(
                f"Hierarchy too deep: {actual_depth} levels. Maximum allowed: {self.max_levels}"
            )
        if declared_max_depth is not None and declared_max_depth != actual_depth:
            result.add_warning(
                f"Reported max depth ({declared_max_depth}) doesn't match "
                f"actual max depth ({actual_depth})"
            )

    def compute_statistics(
        self,
        nodes: list[tuple[Any, int, int]],
        relationships: Mapping[str, str],
    ) -> HierarchyStatistics:
        """Compute forest statistics from walked (node, index, depth) entries."""
        stats = HierarchyStatistics(relationship_count=len(relationships))
        for node, _index, depth in nodes:
            stats.total_tasks += 1
            if depth == 1:
                stats.main_tasks += 1
            elif depth == 2:
                stats.subtasks += 1
            elif depth == 3:
                stats.sub_subtasks += 1
            if getattr(node, "has_subtasks", False):
                stats.tasks_with_subtasks += 1
            duration = getattr(node, "duration", 0)
            if isinstance(duration, int) and not isinstance(duration, bool):
                stats.total_duration += duration
            stats.max_depth_found = max(stats.max_depth_found, depth)

        if stats.total_tasks:
            stats.average_duration = round(stats.total_duration / stats.total_tasks, 2)
        return stats


def validate_hierarchy(
    forest: Any,
    relationships: Any,
    declared_task_count: int | None = None,
    declared_max_depth: int | None = None,
) -> ValidationResult:
    """Validate a forest with the default rules. See HierarchyValidator.validate()."""
    return HierarchyValidator().validate(
        forest, relationships, declared_task_count, declared_max_depth
    )
