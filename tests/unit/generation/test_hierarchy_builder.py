"""Tests for the hierarchy builder."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import pytest

from project_generator.generation.exceptions import HierarchyError
from project_generator.generation.hierarchy_builder import (
    HierarchyBuilder,
    build_hierarchy,
    coerce_duration,
    match_module,
)
from project_generator.generation.prompt_analyzer import Module, PromptAnalysis, analyze_prompt


def sequential_ids() -> Any:
    """Id factory producing t0, t1, t2, ..."""
    counter = itertools.count()
    return lambda: f"t{next(counter)}"


NODES: list[dict[str, Any]] = [
    {
        "title": "INTRANET",
        "duration": 10,
        "subtasks": [
            {
                "title": "Login",
                "duration": 4,
                "subtasks": [
                    {"title": "Form", "duration": 1},
                    {"title": "Reset password", "duration": 2},
                ],
            },
            {"title": "News", "duration": 3},
        ],
    },
    {"title": "Reports", "duration": 5},
]


class TestBuildStructure:
    """Tests for ids, parents, levels and ordering."""

    def test_assigns_levels_and_parents(self) -> None:
        """Every task gets its level and parent id."""
        hierarchy = build_hierarchy(NODES, "p1", id_factory=sequential_ids())
        intranet, reports = hierarchy.tasks
        login, news = intranet.subtasks
        form, reset = login.subtasks

        assert (intranet.level, login.level, form.level) == (0, 1, 2)
        assert intranet.parent_task_id is None
        assert login.parent_task_id == intranet.id
        assert reset.parent_task_id == login.id
        assert intranet.is_main_task and reports.is_main_task
        assert not login.is_main_task
        assert all(task.project_id == "p1" for task in hierarchy.flatten())

    def test_original_order_is_forest_pre_order(self) -> None:
        """original_order follows a pre-order walk across all roots."""
        hierarchy = build_hierarchy(NODES, "p1", id_factory=sequential_ids())

        titles = [task.title for task in hierarchy.flatten()]
        orders = [task.original_order for task in hierarchy.flatten()]

        assert titles == ["INTRANET", "Login", "Form", "Reset password", "News", "Reports"]
        assert orders == [0, 1, 2, 3, 4, 5]

    def test_relationships_and_index(self) -> None:
        """The child -> parent map covers every non-root task."""
        hierarchy = build_hierarchy(NODES, "p1", id_factory=sequential_ids())

        assert hierarchy.relationships == {"t1": "t0", "t2": "t1", "t3": "t1", "t4": "t0"}
        assert set(hierarchy.index) == {"t0", "t1", "t2", "t3", "t4", "t5"}
        assert hierarchy.task_count == 6
        assert hierarchy.main_task_count == 2
        assert hierarchy.subtask_count == 4
        assert hierarchy.max_depth == 3

    def test_default_ids_are_unique(self) -> None:
        """The default id factory never repeats within a build."""
        hierarchy = build_hierarchy(NODES, "p1")

        assert len(hierarchy.index) == 6
        assert all(task_id.startswith("task_") for task_id in hierarchy.index)

    def test_has_subtasks_flags(self) -> None:
        """has_subtasks is true exactly for nodes with children."""
        hierarchy = build_hierarchy(NODES, "p1", id_factory=sequential_ids())

        flags = {task.title: task.has_subtasks for task in hierarchy.flatten()}
        assert flags == {
            "INTRANET": True,
            "Login": True,
            "Form": False,
            "Reset password": False,
            "News": False,
            "Reports": False,
        }

    def test_empty_input_builds_empty_forest(self) -> None:
        """An empty list yields an empty hierarchy."""
        hierarchy = build_hierarchy([], "p1")

        assert hierarchy.tasks == []
        assert hierarchy.max_depth == 0


class TestDurations:
    """Tests for duration coercion and aggregation."""

    def test_aggregated_duration_sums_children(self) -> None:
        """A parent's aggregate is the sum of its children's aggregates."""
        hierarchy = build_hierarchy(NODES, "p1", id_factory=sequential_ids())
        intranet = hierarchy.tasks[0]
        login = intranet.subtasks[0]

        assert login.aggregated_duration == 3
        assert intranet.aggregated_duration == 6
        assert hierarchy.tasks[1].aggregated_duration == 5

    def test_authored_duration_is_never_rewritten(self) -> None:
        """The authored duration survives aggregation."""
        hierarchy = build_hierarchy(NODES, "p1", id_factory=sequential_ids())

        assert hierarchy.tasks[0].duration == 10
        assert hierarchy.tasks[0].subtasks[0].duration == 4

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (3, 3),
            (2.9, 2),
            ("4", 4),
            (None, 1),
            ("abc", 1),
            (True, 1),
            (0, 1),
            (0.5, 1),
            ("0.25", 1),
            (-3, -3),
            (float("nan"), 1),
        ],
    )
    def test_coerce_duration(self, value: Any, expected: int) -> None:
        """Unusable durations default to 1; out-of-range numbers are kept."""
        assert coerce_duration(value) == expected


class TestModuleTagging:
    """Tests for module_type assignment."""

    def test_tags_main_tasks_from_analysis(self) -> None:
        """Main tasks take the first module whose name matches the title."""
        analysis = PromptAnalysis(
            is_hierarchical=True,
            modules=(Module(name="INTRANET", order=0), Module(name="COMERCIAL", order=1)),
        )
        nodes = [
            {"title": "Portal INTRANET", "duration": 1, "subtasks": [{"title": "INTRANET login"}]},
            {"title": "Área comercial", "duration": 1},
            {"title": "Reports", "duration": 1},
        ]

        hierarchy = build_hierarchy(nodes, "p1", analysis)

        assert [task.module_type for task in hierarchy.tasks] == ["INTRANET", "COMERCIAL", None]
        assert hierarchy.tasks[0].subtasks[0].module_type is None

    def test_title_contained_in_module_name(self) -> None:
        """A title that is part of a module name matches it."""
        analysis = PromptAnalysis(is_hierarchical=True, modules=(Module(name="RECURSOS HUMANOS"),))

        assert match_module("Recursos", analysis) == "RECURSOS HUMANOS"

    def test_module_keywords_match(self) -> None:
        """Module keywords tag titles that do not contain the module name."""
        analysis = PromptAnalysis(
            is_hierarchical=True, modules=(Module(name="VENTAS", keywords=("cotización",)),)
        )

        assert match_module("Módulo de cotización", analysis) == "VENTAS"

    def test_harvested_components_tag_titles(self) -> None:
        """Components found by the analyzer tag main tasks named after them."""
        analysis = analyze_prompt(
            "Sistema con módulos:\n"
            "INTRANET:\n"
            "- Noticias internas\n"
            "COMERCIAL:\n"
            "- Cotizaciones\n"
        )

        assert match_module("Noticias internas", analysis) == "INTRANET"
        assert match_module("Cotizaciones y ventas", analysis) == "COMERCIAL"

    def test_fallback_catalogue_without_hierarchical_analysis(self) -> None:
        """Without a hierarchical analysis the fixed catalogue applies."""
        assert match_module("Panel ADMIN", None) == "ADMIN"
        assert match_module("Reportes mensuales", None) == "REPORTES"
        assert match_module("Billing", None) is None

    def test_empty_title_is_never_tagged(self) -> None:
        """Empty titles never match a module."""
        analysis = PromptAnalysis(is_hierarchical=True, modules=(Module(name="INTRANET"),))

        assert match_module("", analysis) is None
        assert match_module("", None) is None


class TestDeliverablesAndFields:
    """Tests for deliverables and copied task fields."""

    def test_deliverable_only_for_with_deliverable_type(self) -> None:
        """Deliverables are attached to with_deliverable tasks only."""
        nodes = [
            {
                "title": "Docs",
                "type": "with_deliverable",
                "deliverable": {"type": "file", "description": "Manual"},
            },
            {"title": "Code", "type": "simple", "deliverable": {"type": "file"}},
        ]

        docs, code = build_hierarchy(nodes, "p1").tasks

        assert docs.deliverable is not None
        assert docs.deliverable.type == "file"
        assert docs.deliverable.status == "pending"
        assert code.deliverable is None

    def test_copies_priority_type_and_dependencies(self) -> None:
        """Authored fields are carried onto the enriched task."""
        nodes = [{"title": "B", "priority": "high", "type": "simple", "dependencies": ["A"]}]

        task = build_hierarchy(nodes, "p1").tasks[0]

        assert task.priority == "high"
        assert task.task_type == "simple"
        assert task.dependencies == ["A"]
        assert task.status == "pending"


class TestBuildErrors:
    """Tests for malformed input."""

    def test_non_list_input_raises(self) -> None:
        """A non-list task collection raises HierarchyError."""
        with pytest.raises(HierarchyError, match="must be a list"):
            build_hierarchy({"title": "x"}, "p1")

    def test_non_object_nodes_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Non-dict nodes are skipped with a warning."""
        with caplog.at_level(logging.WARNING):
            hierarchy = build_hierarchy([{"title": "A"}, "oops", 42], "p1")

        assert [task.title for task in hierarchy.tasks] == ["A"]
        assert "Skipping non-object task node" in caplog.text

    def test_depth_guard(self) -> None:
        """Trees deeper than the guard are rejected."""
        node: dict[str, Any] = {"title": "leaf"}
        for level in range(5):
            node = {"title": f"level {level}", "subtasks": [node]}

        with pytest.raises(HierarchyError, match="exceeds 3 levels"):
            HierarchyBuilder(max_depth=3).build([node], "p1")

    def test_duplicate_ids_raise(self) -> None:
        """An id factory that repeats itself is detected."""
        builder = HierarchyBuilder(id_factory=lambda: "same")

        with pytest.raises(HierarchyError, match="Duplicate task id"):
            builder.build([{"title": "A"}, {"title": "B"}], "p1")
