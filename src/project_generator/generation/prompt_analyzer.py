"""Prompt structure analysis for hierarchical project generation.

This module inspects a free-text project description (Spanish or English) and
decides whether it describes a modular project, which modules it names, how
deep the generated task tree should be and how confident that decision is.

Everything here is a pure function of the prompt text: no I/O, no randomness,
so identical prompts always produce identical analyses.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any

from .exceptions import InvalidInputError

PRIMARY_LANGUAGE = "spanish"
SECONDARY_LANGUAGE = "english"

# Domain vocabulary used to guess the prompt language
LANGUAGE_PATTERNS: dict[str, re.Pattern[str]] = {
    "spanish": re.compile(
        r"\b(crear|desarrollar|implementar|sistema|aplicación|proyecto|gestión"
        r"|administración|módulos|secciones)\b",
        re.IGNORECASE,
    ),
    "english": re.compile(
        r"\b(create|develop|implement|system|application|project|management"
        r"|administration|modules|sections)\b",
        re.IGNORECASE,
    ),
}

# Words that announce an explicit modular structure
MODULE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "spanish": ("módulos", "módulo", "modulos", "modulo", "secciones", "sección", "areas", "área"),
    "english": (
        "modules", "module", "sections", "section", "areas", "area", "components", "component",
    ),
}

# Known module names, matched as whole words when no numbered modules exist
MODULE_CATALOGUE: tuple[str, ...] = (
    "INTRANET",
    "COMERCIAL",
    "OPERACIONES",
    "ADMINISTRACIÓN",
    "VENTAS",
    "MARKETING",
    "RECURSOS HUMANOS",
    "COMMERCIAL",
    "OPERATIONS",
    "ADMINISTRATION",
    "SALES",
    "FINANCE",
    "HUMAN RESOURCES",
)

# Keywords that make a line following a module a component line
COMPONENT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "spanish": ("gestión", "administración", "control", "registro", "sistema", "módulo"),
    "english": ("management", "administration", "control", "registration", "system", "module"),
}

# Lines scanned after a module mention when harvesting components
COMPONENT_LOOKAHEAD = 4

# The name ends at punctuation, a line break or the next "Módulo N" declaration
NUMBERED_MODULE_PATTERN = re.compile(
    r"\b(?:m[óo]dulo|module)[ \t]*\d+[ \t]*[.:][ \t]*"
    r"([^\n,;:().]+?)"
    r"(?=[ \t]+(?:y|e|and)[ \t]+(?:m[óo]dulo|module)\b"
    r"|[ \t]*\b(?:m[óo]dulo|module)[ \t]*\d"
    r"|[\n,;:().]|$)",
    re.IGNORECASE,
)
NUMBERED_LIST_PATTERN = re.compile(r"^[ \t]*\d+[.)][ \t]+", re.MULTILINE)
MULTI_LEVEL_NUMBERING_PATTERN = re.compile(r"^[ \t]*\d+\.\d+[.)]*[ \t]+", re.MULTILINE)
INDENTATION_PATTERN = re.compile(r"^[ \t]{2,}\S", re.MULTILINE)
COLON_BREAK_PATTERN = re.compile(r":[ \t]*\n")
SUB_ITEMS_PATTERN = re.compile(
    r"^[ \t]*[-*+][ \t]+.+\n(?:[ \t]{2,}[-*+][ \t]+.+\n?)+",
    re.MULTILINE,
)
BULLET_PATTERN = re.compile(r"^([ \t]*)[-*+][ \t]+")
LIST_MARKER_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
COMPONENT_NAME_SPLIT = re.compile(r"[:\-(]")
TRAILING_DESCRIPTION = re.compile(r"\s+[-–]\s+")


@dataclass(frozen=True)
class Component:
    """A sub-feature textually associated with a module."""

    name: str
    description: str


@dataclass(frozen=True)
class Module:
    """A top-level named grouping detected in the prompt.

    Attributes:
        name: Module name as it should appear on the level-0 task.
        components: Components harvested from the lines following the module.
        order: Discovery order, used for first-match tagging.
        keywords: Extra words that tag a task title with this module.
    """

    name: str
    components: tuple[Component, ...] = ()
    order: int = 0
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class StructureIndicators:
    """Structural signals found in the prompt."""

    has_modules: bool = False
    has_nested_structure: bool = False
    has_numbered_lists: bool = False
    has_indentation: bool = False
    has_colons: bool = False

    def structural_count(self) -> int:
        """Number of the four layout indicators (modules excluded) that are set."""
        return sum(
            (
                self.has_nested_structure,
                self.has_numbered_lists,
                self.has_indentation,
                self.has_colons,
            )
        )

    def active(self) -> list[str]:
        """Names of the indicators that are set."""
        return [name for name, value in asdict(self).items() if value]


@dataclass(frozen=True)
class PromptAnalysis:
    """Result of analyzing a project prompt. One per generation request."""

    language: str = PRIMARY_LANGUAGE
    is_hierarchical: bool = False
    modules: tuple[Module, ...] = ()
    complexity: str = "simple"
    suggested_levels: int = 1
    confidence: int = 0
    indicators: StructureIndicators = field(default_factory=StructureIndicators)
    score: int = 0

    @property
    def module_names(self) -> list[str]:
        return [module.name for module in self.modules]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class ComplexityScore:
    """Intermediate result of complexity scoring."""

    level: str
    levels: int
    confidence: int
    score: int


class PromptAnalyzer:
    """Detects hierarchical structure in Spanish and English project prompts.

    Example:
        >>> analysis = PromptAnalyzer().analyze("Sistema con módulos INTRANET y VENTAS")
        >>> analysis.is_hierarchical
        True
    """

    def analyze(self, prompt: Any) -> PromptAnalysis:
        """Analyze a prompt and return its structure descriptor.

        Args:
            prompt: User project description.

        Returns:
            PromptAnalysis for the prompt. Blank prompts yield a degenerate,
            non-hierarchical analysis with zero confidence.

        Raises:
            InvalidInputError: If prompt is not a string.
        """
        if not isinstance(prompt, str):
            raise InvalidInputError(
                f"Valid prompt string is required, got {type(prompt).__name__}"
            )

        text = prompt.strip()
        if not text:
            return PromptAnalysis()

        language = self.detect_language(text)
        has_module_keywords, modules = self.detect_modules(text, language)

        indicators = StructureIndicators(
            has_modules=has_module_keywords or bool(modules),
            has_nested_structure=self.detect_nested_structure(text),
            has_numbered_lists=bool(NUMBERED_LIST_PATTERN.search(text)),
            has_indentation=bool(INDENTATION_PATTERN.search(text)),
            has_colons=bool(COLON_BREAK_PATTERN.search(text)),
        )

        complexity = self.calculate_complexity(text, indicators, modules)

        return PromptAnalysis(
            language=language,
            is_hierarchical=self.should_use_hierarchy(indicators, modules, complexity.confidence),
            modules=modules,
            complexity=complexity.level,
            suggested_levels=complexity.levels,
            confidence=complexity.confidence,
            indicators=indicators,
            score=complexity.score,
        )

    def detect_language(self, text: str) -> str:
        """Return "english" only when English vocabulary strictly dominates."""
        spanish = len(LANGUAGE_PATTERNS["spanish"].findall(text))
        english = len(LANGUAGE_PATTERNS["english"].findall(text))
        return PRIMARY_LANGUAGE if spanish >= english else SECONDARY_LANGUAGE

    def detect_modules(self, text: str, language: str) -> tuple[bool, tuple[Module, ...]]:
        """Detect module vocabulary and extract named modules.

        Returns:
            Tuple of (explicit module vocabulary present, modules in discovery order).
        """
        keywords = MODULE_KEYWORDS.get(language, MODULE_KEYWORDS[PRIMARY_LANGUAGE])
        keyword_pattern = re.compile(
            r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b", re.IGNORECASE
        )
        has_keywords = bool(keyword_pattern.search(text))

        names = self._numbered_module_names(text)
        if not names:
            names = self._catalogue_module_names(text)

        components = self._harvest_components(text, names, language)
        # Component names double as tagging keywords for the module
        modules = tuple(
            Module(
                name=name,
                components=tuple(components[name]),
                order=order,
                keywords=tuple(component.name for component in components[name]),
            )
            for order, name in enumerate(names)
        )
        return has_keywords, modules

    def _numbered_module_names(self, text: str) -> list[str]:
        names: list[str] = []
        for match in NUMBERED_MODULE_PATTERN.finditer(text):
            name = TRAILING_DESCRIPTION.split(match.group(1), maxsplit=1)[0]
            name = name.strip().rstrip(".").strip()
            if not name or not name[0].isalpha():
                continue
            if name.upper() not in (n.upper() for n in names):
                names.append(name)
        return names

    def _catalogue_module_names(self, text: str) -> list[str]:
        found: list[tuple[int, str]] = []
        for name in MODULE_CATALOGUE:
            pattern = r"\b" + r"\s+".join(re.escape(part) for part in name.split()) + r"\b"
            match = re.search(pattern, text, re.IGNORECASE)
            if match:
                found.append((match.start(), name))
        found.sort(key=lambda item: item[0])
        return [name for _, name in found]

    def _harvest_components(
        self, text: str, names: list[str], language: str
    ) -> dict[str, list[Component]]:
        lines = text.split("\n")
        upper_names = [name.upper() for name in names]
        harvested: dict[str, list[Component]] = {name: [] for name in names}

        for name in names:
            target = name.upper()
            for index, line in enumerate(lines):
                if target not in line.upper():
                    continue
                end = min(index + 1 + COMPONENT_LOOKAHEAD, len(lines))
                for following in lines[index + 1 : end]:
                    candidate = following.strip()
                    if not candidate:
                        continue
                    # Stop at the next module mention
                    if any(other in candidate.upper() for other in upper_names):
                        break
                    if not self.is_component_line(candidate, language):
                        continue
                    component_name = self.extract_component_name(candidate)
                    if component_name and all(
                        c.name != component_name for c in harvested[name]
                    ):
                        harvested[name].append(
                            Component(name=component_name, description=candidate)
                        )
        return harvested

    def is_component_line(self, line: str, language: str) -> bool:
        """Check if a line is list-marked or carries a component keyword."""
        if LIST_MARKER_PATTERN.match(line):
            return True
        keywords = COMPONENT_KEYWORDS.get(language, COMPONENT_KEYWORDS[PRIMARY_LANGUAGE])
        lowered = line.lower()
        return any(keyword in lowered for keyword in keywords)

    def extract_component_name(self, line: str) -> str:
        """Strip list markers and keep the text before the first ':', '-' or '('."""
        cleaned = LIST_MARKER_PATTERN.sub("", line, count=1)
        return COMPONENT_NAME_SPLIT.split(cleaned, maxsplit=1)[0].strip()

    def detect_nested_structure(self, text: str) -> bool:
        """Detect sub-indented list runs, multi-level numbering or deepening bullets."""
        if SUB_ITEMS_PATTERN.search(text):
            return True

        if MULTI_LEVEL_NUMBERING_PATTERN.search(text):
            return True

        previous_indent = -1
        found_bullet = False
        for line in text.split("\n"):
            match = BULLET_PATTERN.match(line)
            if not match:
                continue
            indent = len(match.group(1))
            if found_bullet and indent > previous_indent:
                return True
            previous_indent = indent
            found_bullet = True
        return False

    def calculate_complexity(
        self,
        text: str,
        indicators: StructureIndicators,
        modules: tuple[Module, ...],
    ) -> ComplexityScore:
        """Score prompt complexity and hierarchy confidence.

        Word count, module count and each structural indicator add to the
        score; module and indicator terms also add to the confidence, which
        gets a bonus for medium/detailed levels and is capped at 100.
        """
        score = 0
        confidence = 0

        word_count = len(text.split())
        if word_count > 100:
            score += 2
        elif word_count > 50:
            score += 1

        module_count = len(modules)
        if module_count > 3:
            score += 3
            confidence += 30
        elif module_count > 1:
            score += 2
            confidence += 20
        elif module_count == 1:
            score += 1
            confidence += 10

        if indicators.has_nested_structure:
            score += 2
            confidence += 25
        if indicators.has_numbered_lists:
            score += 1
            confidence += 15
        if indicators.has_indentation:
            score += 1
            confidence += 15
        if indicators.has_colons:
            score += 1
            confidence += 10

        if score >= 6:
            level, levels = "detailed", 3
            confidence += 20
        elif score >= 3:
            level, levels = "medium", 2
            confidence += 15
        else:
            level, levels = "simple", 1

        return ComplexityScore(
            level=level, levels=levels, confidence=min(confidence, 100), score=score
        )

    def should_use_hierarchy(
        self,
        indicators: StructureIndicators,
        modules: tuple[Module, ...],
        confidence: int,
    ) -> bool:
        """Decide whether the prompt calls for a hierarchical task tree."""
        if confidence >= 60:
            return True
        if len(modules) >= 2:
            return True
        if indicators.has_nested_structure and indicators.has_modules:
            return True
        return indicators.structural_count() >= 3


_DEFAULT_ANALYZER = PromptAnalyzer()


def analyze_prompt(prompt: Any) -> PromptAnalysis:
    """Analyze a prompt with the default analyzer.

    Raises:
        InvalidInputError: If prompt is not a string.
    """
    return _DEFAULT_ANALYZER.analyze(prompt)


def summarize_analysis(analysis: PromptAnalysis) -> str:
    """Return a human-readable multi-line summary of an analysis."""
    lines = [
        f"Language: {analysis.language}",
        f"Hierarchical: {'Yes' if analysis.is_hierarchical else 'No'}",
        f"Complexity: {analysis.complexity}",
        f"Suggested Levels: {analysis.suggested_levels}",
        f"Confidence: {analysis.confidence}%",
    ]
    if analysis.modules:
        lines.append(
            f"Modules ({len(analysis.modules)}): {', '.join(analysis.module_names)}"
        )
    active = analysis.indicators.active()
    if active:
        lines.append(f"Indicators: {', '.join(active)}")
    return "\n".join(lines)
