"""Tests for prompt structure analysis."""

from __future__ import annotations

import pytest

from project_generator.generation.exceptions import InvalidInputError
from project_generator.generation.prompt_analyzer import (
    PromptAnalysis,
    PromptAnalyzer,
    analyze_prompt,
    summarize_analysis,
)


class TestModuleDetection:
    """Tests for module extraction."""

    def test_catalogue_modules_in_spanish_prompt(self) -> None:
        """Named catalogue modules make a Spanish prompt hierarchical."""
        analysis = analyze_prompt("Sistema con módulos INTRANET, COMERCIAL y OPERACIONES")

        assert analysis.is_hierarchical is True
        assert analysis.language == "spanish"
        assert {"INTRANET", "COMERCIAL", "OPERACIONES"} <= set(analysis.module_names)

    def test_modules_keep_discovery_order(self) -> None:
        """Modules are ordered by where they appear in the text."""
        analysis = analyze_prompt("Sistema con OPERACIONES, luego VENTAS y después INTRANET")

        assert analysis.module_names == ["OPERACIONES", "VENTAS", "INTRANET"]
        assert [module.order for module in analysis.modules] == [0, 1, 2]

    def test_numbered_modules(self) -> None:
        """'Módulo N: Name' lines name the modules."""
        prompt = "Sistema de gestión\nMódulo 1: Facturación\nMódulo 2: Inventario\n"

        analysis = analyze_prompt(prompt)

        assert analysis.module_names == ["Facturación", "Inventario"]
        assert analysis.indicators.has_modules is True
        assert analysis.is_hierarchical is True

    def test_numbered_modules_take_precedence_over_catalogue(self) -> None:
        """The catalogue is only consulted when no numbered modules exist."""
        prompt = "Module 1: Billing\nModule 2: Reports\nAlso an INTRANET page"

        analysis = analyze_prompt(prompt)

        assert analysis.module_names == ["Billing", "Reports"]

    def test_components_harvested_after_module_line(self) -> None:
        """List lines following a module become its components."""
        prompt = (
            "Sistema con módulos:\n"
            "INTRANET:\n"
            "- Login de usuarios\n"
            "- Noticias internas\n"
            "COMERCIAL:\n"
            "- Cotizaciones\n"
        )

        analysis = analyze_prompt(prompt)
        intranet = analysis.modules[0]

        assert intranet.name == "INTRANET"
        assert [c.name for c in intranet.components] == ["Login de usuarios", "Noticias internas"]
        assert intranet.keywords == ("Login de usuarios", "Noticias internas")

    @pytest.mark.parametrize(
        ("prompt", "expected"),
        [
            (
                "Sistema de gestión. Módulo 1: INTRANET. Módulo 2: COMERCIAL. Módulo 3: VENTAS.",
                ["INTRANET", "COMERCIAL", "VENTAS"],
            ),
            ("Create a system with Module 1: Sales and Module 2: Finance", ["Sales", "Finance"]),
            ("Un sistema con Módulo 1: Compras y Módulo 2: Logística", ["Compras", "Logística"]),
            ("Module 1: Sales Module 2: Finance", ["Sales", "Finance"]),
        ],
    )
    def test_numbered_modules_on_one_line(self, prompt: str, expected: list[str]) -> None:
        """Declarations sharing a line are split at periods and conjunctions."""
        assert analyze_prompt(prompt).module_names == expected


class TestSimplePrompts:
    """Tests for flat, unstructured prompts."""

    def test_basic_english_prompt_is_flat(self) -> None:
        """A one-line English prompt is simple and non-hierarchical."""
        analysis = analyze_prompt(
            "Create a basic todo list application with add, edit, and delete functionality"
        )

        assert analysis.is_hierarchical is False
        assert analysis.complexity == "simple"
        assert analysis.suggested_levels == 1
        assert analysis.modules == ()
        assert analysis.language == "english"

    def test_blank_prompt_yields_default_analysis(self) -> None:
        """Whitespace-only prompts produce the zero-confidence default."""
        analysis = analyze_prompt("   \n  ")

        assert analysis == PromptAnalysis()
        assert analysis.confidence == 0
        assert analysis.language == "spanish"

    def test_language_ties_go_to_spanish(self) -> None:
        """Spanish wins unless English vocabulary strictly dominates."""
        analyzer = PromptAnalyzer()

        assert analyzer.detect_language("sistema project") == "spanish"
        assert analyzer.detect_language("application project sistema") == "english"


class TestStructureIndicators:
    """Tests for structural indicators and complexity scoring."""

    def test_nested_bullets_detected(self) -> None:
        """Deeper-indented bullets count as nested structure."""
        prompt = "Features:\n- Users\n  - Login\n  - Logout\n- Reports\n"

        analysis = analyze_prompt(prompt)

        assert analysis.indicators.has_nested_structure is True
        assert analysis.indicators.has_indentation is True
        assert analysis.indicators.has_colons is True

    def test_multi_level_numbering_is_nested(self) -> None:
        """'1.1' style numbering is nested structure."""
        assert PromptAnalyzer().detect_nested_structure("1. Core\n1.1 Login\n1.2 Logout") is True

    def test_structured_prompt_is_hierarchical_without_modules(self) -> None:
        """Three layout indicators are enough for a hierarchical decision."""
        prompt = "Plan:\n1. Backend\n  2. Frontend\n3. Deployment\n"

        analysis = analyze_prompt(prompt)

        assert analysis.modules == ()
        assert analysis.indicators.structural_count() >= 3
        assert analysis.is_hierarchical is True

    def test_confidence_is_capped(self) -> None:
        """Confidence never exceeds 100."""
        prompt = (
            "Sistema con módulos INTRANET, COMERCIAL, OPERACIONES y VENTAS:\n"
            "1. INTRANET\n"
            "  - Login\n"
            "    - Recuperar clave\n"
            "1.1 Noticias\n"
        )

        analysis = analyze_prompt(prompt)

        assert analysis.confidence <= 100
        assert analysis.complexity == "detailed"
        assert analysis.suggested_levels == 3


class TestAnalyzerContract:
    """Tests for input handling and determinism."""

    def test_non_string_prompt_raises(self) -> None:
        """Non-string input raises InvalidInputError."""
        with pytest.raises(InvalidInputError, match="Valid prompt string is required"):
            analyze_prompt(None)

    def test_analysis_is_deterministic(self) -> None:
        """The same prompt always yields an equal analysis."""
        prompt = "Sistema con módulos INTRANET y COMERCIAL\n- Login\n  - Clave"

        assert analyze_prompt(prompt) == analyze_prompt(prompt)

    def test_to_dict_is_serializable(self) -> None:
        """to_dict() returns plain data."""
        data = analyze_prompt("Sistema con módulos INTRANET y VENTAS").to_dict()

        assert data["is_hierarchical"] is True
        assert [m["name"] for m in data["modules"]] == ["INTRANET", "VENTAS"]

    def test_summary_lists_modules(self) -> None:
        """summarize_analysis() mentions the detected modules."""
        summary = summarize_analysis(analyze_prompt("Sistema con módulos INTRANET y VENTAS"))

        assert "Hierarchical: Yes" in summary
        assert "Modules (2): INTRANET, VENTAS" in summary
