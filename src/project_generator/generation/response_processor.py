"""Turn a raw model response into a Project.

Pipeline: clean -> decode -> repair -> draft validation -> hierarchy build ->
hierarchy validation. When the prompt analysis is hierarchical but the built
tree fails validation (or cannot be built), the processor falls back to the
flat enhancement: the same builder without hierarchy metadata, with the
validation errors kept as project warnings.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from .exceptions import HierarchyError, ProjectValidationError
from .hierarchy_builder import HierarchyBuilder
from .hierarchy_validator import HierarchyValidator
from .project_validator import validate_generated_project
from .prompt_analyzer import PromptAnalysis
from .response_repair import decode_response
from .task_model import HierarchyMetadata, Project, TeamMember

logger = logging.getLogger(__name__)


def new_project_id() -> str:
    return f"project_{uuid.uuid4().hex}"


def new_member_id() -> str:
    return f"member_{uuid.uuid4().hex}"


def _positive_int(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return int(value)
    return 0


def build_team_members(raw: Any) -> list[TeamMember]:
    """Build TeamMember records from the draft's teamMembers list."""
    if not isinstance(raw, list):
        return []
    members = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        members.append(
            TeamMember(
                id=new_member_id(),
                name=str(entry.get("name") or ""),
                email=str(entry.get("email") or ""),
                role=str(entry.get("role") or ""),
            )
        )
    return members


class ResponseProcessor:
    """Converts raw provider output into validated projects."""

    def __init__(
        self,
        builder: HierarchyBuilder | None = None,
        validator: HierarchyValidator | None = None,
    ) -> None:
        self.builder = builder or HierarchyBuilder()
        self.validator = validator or HierarchyValidator()

    def process(self, raw: str, analysis: PromptAnalysis | None = None) -> Project:
        """Decode, validate and build a project from a raw response.

        Args:
            raw: Raw response text from a provider.
            analysis: Prompt analysis for module tagging and the hierarchy decision.

        Returns:
            The enriched Project.

        Raises:
            MalformedResponseError: If the response is not decodable JSON.
            ProjectValidationError: If the draft lacks the required shape.
        """
        data = decode_response(raw)

        draft = validate_generated_project(data)
        if not draft.is_valid:
            raise ProjectValidationError(
                f"Generated project validation failed: {', '.join(draft.errors)}",
                draft.errors,
                draft.warnings,
            )

        project = Project(
            id=new_project_id(),
            name=data["name"].strip(),
            description=str(data.get("description") or ""),
            estimated_duration=_positive_int(data.get("estimatedDuration")),
            warnings=list(draft.warnings),
        )

        if analysis is not None and analysis.is_hierarchical:
            try:
                self._build_hierarchical(project, data["tasks"], analysis)
            except HierarchyError as e:
                logger.error("Hierarchical processing failed: %s", e)
                project.warnings.append(str(e))
                self._build_flat(project, data["tasks"], analysis)
        else:
            self._build_flat(project, data["tasks"], analysis)

        project.team_members = build_team_members(data.get("teamMembers"))
        return project

    def _build_hierarchical(
        self, project: Project, tasks: list[Any], analysis: PromptAnalysis
    ) -> None:
        hierarchy = self.builder.build(tasks, project.id, analysis)
        result = self.validator.validate_built(hierarchy)

        if not result.is_valid:
            logger.warning(
                "Hierarchy validation failed, falling back to standard processing: %s",
                result.errors,
            )
            project.warnings.extend(result.errors)
            self._build_flat(project, tasks, analysis)
            return

        project.tasks = hierarchy.tasks
        project.warnings.extend(result.warnings)
        project.hierarchy_metadata = HierarchyMetadata(
            total_tasks=hierarchy.task_count,
            max_depth=hierarchy.max_depth,
            main_task_count=hierarchy.main_task_count,
            subtask_count=hierarchy.subtask_count,
            modules=tuple(analysis.module_names),
            analysis_complexity=analysis.complexity,
        )

    def _build_flat(
        self, project: Project, tasks: list[Any], analysis: PromptAnalysis | None
    ) -> None:
        project.tasks = self.builder.build(tasks, project.id, analysis).tasks
        project.hierarchy_metadata = None


_DEFAULT_PROCESSOR = ResponseProcessor()


def process_response(raw: str, analysis: PromptAnalysis | None = None) -> Project:
    """Process a raw response with the default processor. See ResponseProcessor.process()."""
    return _DEFAULT_PROCESSOR.process(raw, analysis)
