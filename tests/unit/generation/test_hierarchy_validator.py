"""Tests for hierarchy validation and cycle detection."""

from __future__ import annotations

from typing import Any

import pytest

from project_generator.generation.config import ValidationRules
from project_generator.generation.hierarchy_builder import build_hierarchy
from project_generator.generation.hierarchy_validator import (
    HierarchyValidator,
    detect_circular_dependencies,
    validate_hierarchy,
)
from project_generator.generation.task_model import EnrichedTask


def make_task(
    task_id: str,
    level: int = 0,
    parent: str | None = None,
    subtasks: list[EnrichedTask] | None = None,
    duration: Any = 1,
    title: str = "Task",
) -> EnrichedTask:
    """Build an EnrichedTask with consistent derived fields."""
    children = subtasks or []
    aggregated = sum(child.aggregated_duration for child in children) if children else duration
    return EnrichedTask(
        id=task_id,
        project_id="p1",
        parent_task_id=parent,
        title=title,
        description="",
        duration=duration,
        aggregated_duration=aggregated,
        level=level,
        is_main_task=level == 0,
        has_subtasks=bool(children),
        original_order=0,
        subtasks=children,
    )


def chain(levels: int) -> dict[str, Any]:
    """Raw nodes nested `levels` deep: root -> child -> grandchild -> ..."""
    node: dict[str, Any] = {"title": f"Level {levels - 1}", "duration": 1}
    for level in reversed(range(levels - 1)):
        node = {"title": f"Level {level}", "duration": 1, "subtasks": [node]}
    return node


class TestDepth:
    """Tests for the depth ceiling."""

    def test_four_levels_is_too_deep(self) -> None:
        """A root -> child -> grandchild -> great-grandchild tree is rejected."""
        hierarchy = build_hierarchy([chain(4)], "p1")

        result = HierarchyValidator().validate_built(hierarchy)

        assert result.is_valid is False
        assert "Hierarchy too deep: 4 levels. Maximum allowed: 3" in result.errors
        assert result.statistics.max_depth_found == 4

    def test_three_levels_is_valid(self) -> None:
        """Three levels is the maximum allowed."""
        hierarchy = build_hierarchy([chain(3)], "p1")

        result = HierarchyValidator().validate_built(hierarchy)

        assert result.is_valid is True
        assert result.errors == []
        assert result.statistics.sub_subtasks == 1

    def test_declared_depth_mismatch_warns(self) -> None:
        """A reported depth that disagrees with traversal is a warning."""
        hierarchy = build_hierarchy([chain(2)], "p1")

        result = validate_hierarchy(hierarchy.tasks, hierarchy.relationships, None, 5)

        assert result.is_valid is True
        assert any("doesn't match actual max depth (2)" in w for w in result.warnings)


class TestTaskChecks:
    """Tests for per-task validation."""

    def test_missing_title_and_bad_duration(self) -> None:
        """Every field violation is reported, not only the first."""
        bad = make_task("t1", title="  ", duration=0)

        result = validate_hierarchy([bad], {})

        assert result.is_valid is False
        assert "Task t1: Missing or invalid title" in result.errors
        assert "Task t1: Invalid duration (0). Must be >= 1" in result.errors

    def test_child_level_and_parent_mismatch(self) -> None:
        """Children must sit one level below and point at their parent."""
        child = make_task("c1", level=2, parent="other")
        root = make_task("r1", subtasks=[child])

        result = validate_hierarchy([root], {"c1": "r1"})

        assert any("Subtask level inconsistency" in e for e in result.errors)
        assert any("Subtask parent ID mismatch" in e for e in result.errors)
        assert any("Relationship level mismatch" in e for e in result.errors)

    def test_too_many_subtasks(self) -> None:
        """Subtask count above the limit is an error."""
        children = [make_task(f"c{i}", level=1, parent="r1") for i in range(3)]
        root = make_task("r1", subtasks=children)
        validator = HierarchyValidator(rules=ValidationRules(max_subtasks=2))

        result = validator.validate([root], {f"c{i}": "r1" for i in range(3)})

        assert "Task r1: Too many subtasks (3). Maximum: 2" in result.errors

    def test_aggregate_mismatch_is_a_warning(self) -> None:
        """A parent aggregate off by more than one only warns."""
        child = make_task("c1", level=1, parent="r1", duration=2)
        root = make_task("r1", subtasks=[child])
        root.aggregated_duration = 10

        result = validate_hierarchy([root], {"c1": "r1"})

        assert result.is_valid is True
        assert any("Aggregated duration mismatch" in w for w in result.warnings)

    def test_long_duration_warns(self) -> None:
        """Durations above the maximum only warn."""
        result = validate_hierarchy([make_task("t1", duration=400)], {})

        assert result.is_valid is True
        assert "Task t1: Very long duration (400 days)" in result.warnings


class TestForestChecks:
    """Tests for forest-wide checks."""

    def test_duplicate_ids_across_subtrees(self) -> None:
        """The same id in two subtrees is a duplicate."""
        first = make_task("dup")
        second = make_task("dup")

        result = validate_hierarchy([first, second], {})

        assert "Task dup: Duplicate task ID detected" in result.errors

    def test_relationship_to_unknown_task(self) -> None:
        """Relationships must reference tasks in the forest."""
        result = validate_hierarchy([make_task("t1")], {"ghost": "t1"})

        assert any("Child task ghost not found" in e for e in result.errors)
        assert any("Extra relationship entry" in w for w in result.warnings)

    def test_missing_relationship_warns(self) -> None:
        """A linked child without a relationship entry is a warning."""
        root = make_task("r1", subtasks=[make_task("c1", level=1, parent="r1")])

        result = validate_hierarchy([root], {})

        assert "Missing relationship entry for child task: c1" in result.warnings

    def test_too_many_tasks_stops_early(self) -> None:
        """The total task ceiling is reported on its own."""
        forest = [make_task(f"t{i}", title="") for i in range(3)]
        validator = HierarchyValidator(rules=ValidationRules(max_total_tasks=2))

        result = validator.validate(forest, {})

        assert result.errors == ["Too many tasks: 3. Maximum allowed: 2"]

    def test_empty_forest_warns(self) -> None:
        """An empty forest is valid but flagged."""
        result = validate_hierarchy([], {})

        assert result.is_valid is True
        assert "Hierarchy contains no tasks" in result.warnings

    @pytest.mark.parametrize(("forest", "relationships"), [("tasks", {}), ([], ["a"])])
    def test_wrong_container_types(self, forest: Any, relationships: Any) -> None:
        """Non-list forests and non-mapping relationships are rejected."""
        result = validate_hierarchy(forest, relationships)

        assert result.is_valid is False
        assert result.errors[0].startswith("Invalid hierarchy data")

    def test_statistics(self) -> None:
        """Statistics count levels, parents and durations."""
        hierarchy = build_hierarchy(
            [
                {"title": "A", "duration": 2, "subtasks": [{"title": "A1", "duration": 4}]},
                {"title": "B", "duration": 3},
            ],
            "p1",
        )

        stats = HierarchyValidator().validate_built(hierarchy).statistics

        assert stats.total_tasks == 3
        assert stats.main_tasks == 2
        assert stats.subtasks == 1
        assert stats.tasks_with_subtasks == 1
        assert stats.total_duration == 9
        assert stats.average_duration == 3.0
        assert stats.relationship_count == 1
        assert stats.max_depth_found == 2


class TestCycleDetection:
    """Tests for detect_circular_dependencies()."""

    def test_two_node_cycle(self) -> None:
        """A <-> B is reported once."""
        assert detect_circular_dependencies({"A": "B", "B": "A"}) == [["A", "B"]]

    def test_acyclic_map(self) -> None:
        """A proper tree has no cycles."""
        assert detect_circular_dependencies({"B": "A", "C": "A", "D": "B"}) == []

    def test_empty_map(self) -> None:
        """No relationships, no cycles."""
        assert detect_circular_dependencies({}) == []

    def test_self_loop(self) -> None:
        """A task that is its own parent is a cycle."""
        assert detect_circular_dependencies({"A": "A"}) == [["A"]]

    def test_cycle_with_tail(self) -> None:
        """Nodes leading into a cycle are not part of it."""
        cycles = detect_circular_dependencies({"X": "A", "A": "B", "B": "C", "C": "A"})

        assert len(cycles) == 1
        assert set(cycles[0]) == {"A", "B", "C"}

    def test_cycle_makes_validation_fail(self) -> None:
        """Cycles in the relationship map are validation errors."""
        a = make_task("A")
        b = make_task("B")

        result = validate_hierarchy([a, b], {"A": "B", "B": "A"})

        assert result.is_valid is False
        assert result.cycles == [["A", "B"]]
        assert "Circular dependencies detected: A -> B" in result.errors
