"""Prompt templates for project generation.

This module builds the two messages sent to every provider:
- System prompt: JSON contract, hierarchy instructions and guidelines
- User prompt: the project description plus an optional duration hint

The system prompt adapts to the prompt analysis: a hierarchical analysis with
three suggested levels asks for main tasks -> subtasks -> sub-subtasks and
names the detected modules.

IMPORTANT: Keep angle brackets out of templates. The Claude Agent SDK CLI
interprets <tag> patterns specially, causing empty responses.
"""

from __future__ import annotations

from .config import TASK_LIMITS
from .prompt_analyzer import PRIMARY_LANGUAGE, PromptAnalysis

# =============================================================================
# SYSTEM PROMPT
# =============================================================================

SYSTEM_PROMPT = """You are an expert project manager and software architect. Your task is to generate a comprehensive project structure from user descriptions.

CRITICAL INSTRUCTIONS:
1. You MUST respond with ONLY valid, complete JSON
2. Do NOT include any explanations, comments, or text outside the JSON
3. Ensure the JSON is properly closed with all braces and brackets
4. Keep descriptions concise to avoid token limits
5. Maximum {max_tasks} main tasks
{hierarchy_instructions}
Generate a project with the following structure:
{{
  "name": "Project Name",
  "description": "Detailed project description",
  "estimatedDuration": number_of_working_days,
  "tasks": [
    {{
      "title": "Task title",
      "description": "Detailed task description",
      "duration": number_of_working_days,
      "priority": "low|medium|high",
      "type": "simple|with_deliverable",
      "dependencies": ["task_title_1", "task_title_2"],
      "deliverable": {{
        "type": "presentation|file|exposition|other",
        "description": "Deliverable description"
      }},
{subtasks_example}
    }}
  ]{team_members_example}
}}

Guidelines:
- Complexity level: {complexity}
- Maximum tasks: {max_tasks}{max_tasks_note}
- Duration should be realistic working days (Monday-Saturday, excluding Sunday)
- Create a logical hierarchy with main tasks and subtasks{sub_subtasks_note}
- Include dependencies between tasks where appropriate
- For {complexity} complexity: {complexity_guidelines}
- Only include deliverable object if type is "with_deliverable"
- Dependencies should reference exact task titles
- Ensure all durations are positive integers
- Keep descriptions concise (max 100 characters each)
- Assign appropriate priorities based on task importance and dependencies
{hierarchy_guidelines}- ENSURE the JSON response is complete and properly formatted"""

DEEP_HIERARCHY_INSTRUCTIONS = """
HIERARCHICAL PROJECT DETECTED:
- This project has {module_count} main modules: {module_names}
- CRITICAL: Generate EXACTLY {levels} levels of hierarchy: Main Tasks -> Subtasks -> Sub-subtasks
- Level 0 (Main Tasks): Major modules (e.g., "INTRANET", "COMERCIAL")
- Level 1 (Subtasks): Submodules within each main module (e.g., "Login Submodule")
- Level 2 (Sub-subtasks): Specific features within each submodule (e.g., "User Login", "Password Reset")
- IMPORTANT: Every Level 1 task MUST have multiple Level 2 sub-subtasks
- DO NOT group multiple features into one task - create separate sub-subtasks for each feature
- Preserve the exact modular structure from the user description
{language_note}"""

SHALLOW_HIERARCHY_INSTRUCTIONS = """
HIERARCHICAL STRUCTURE DETECTED:
- Generate {levels} levels of hierarchy
- Create logical groupings based on detected modules
{language_note}"""

SPANISH_NOTE = "- Maintain Spanish terminology and descriptions\n"

SUBTASK_EXAMPLE = """      "subtasks": [
        {
          "title": "Subtask title",
          "description": "Subtask description",
          "duration": number_of_working_days,
          "priority": "low|medium|high",
          "type": "simple|with_deliverable"
        }
      ]"""

DEEP_SUBTASK_EXAMPLE = """      "subtasks": [
        {
          "title": "Login Submodule",
          "description": "User authentication and login management",
          "duration": number_of_working_days,
          "priority": "low|medium|high",
          "type": "simple|with_deliverable",
          "subtasks": [
            {
              "title": "User Login Implementation",
              "description": "Implement encrypted user login functionality",
              "duration": number_of_working_days,
              "priority": "low|medium|high",
              "type": "simple|with_deliverable"
            },
            {
              "title": "User Registration System",
              "description": "Create new user registration process",
              "duration": number_of_working_days,
              "priority": "low|medium|high",
              "type": "simple|with_deliverable"
            }
          ]
        }
      ]"""

TEAM_MEMBERS_EXAMPLE = """,
  "teamMembers": [
    {
      "name": "Team member name",
      "role": "Role/Position",
      "email": "email@example.com"
    }
  ]"""

COMPLEXITY_FOCUS = {
    "basic": "with minimal subtasks. Focus on essential milestones.",
    "medium": "with relevant subtasks. Include planning, development, and testing phases.",
    "detailed": (
        "with comprehensive subtasks. Include detailed planning, development, testing, "
        "deployment, and maintenance phases."
    ),
}


# =============================================================================
# USER PROMPT
# =============================================================================

USER_PROMPT = """Create a project for: {prompt}
{duration_hint}
Please ensure the project structure is realistic and follows software development best practices. Include appropriate task dependencies and realistic time estimates."""


# =============================================================================
# Formatting
# =============================================================================


def complexity_guidelines(complexity: str, is_hierarchical: bool = False, levels: int = 2) -> str:
    """Return the task-count guideline sentence for a complexity level."""
    if is_hierarchical and levels >= 3:
        suffix = (
            f" Generate {levels} levels: main tasks (modules) -> subtasks (submodules)"
            " -> sub-subtasks (specific features)."
        )
    elif is_hierarchical:
        suffix = f" Generate {levels} levels with logical groupings."
    else:
        suffix = ""

    limits = TASK_LIMITS.get(complexity)
    if limits is None:
        return f"Create a balanced project structure with appropriate task breakdown.{suffix}"
    return f"Create {limits.min}-{limits.max} main tasks {COMPLEXITY_FOCUS[complexity]}{suffix}"


def build_system_prompt(
    complexity: str = "medium",
    include_team_members: bool = True,
    max_tasks: int = 20,
    analysis: PromptAnalysis | None = None,
) -> str:
    """Build the system prompt for a generation request.

    Args:
        complexity: "basic" | "medium" | "detailed".
        include_team_members: Ask for a teamMembers list.
        max_tasks: Maximum number of main tasks.
        analysis: Prompt analysis; hierarchy instructions are added when it
            reports a hierarchical prompt.

    Returns:
        Formatted system prompt.
    """
    is_hierarchical = bool(analysis and analysis.is_hierarchical)
    levels = analysis.suggested_levels if analysis else 2
    deep = is_hierarchical and levels >= 3
    module_names = analysis.module_names if analysis else []
    language_note = SPANISH_NOTE if analysis and analysis.language == PRIMARY_LANGUAGE else ""

    if deep:
        hierarchy_instructions = DEEP_HIERARCHY_INSTRUCTIONS.format(
            module_count=len(module_names),
            module_names=", ".join(module_names),
            levels=levels,
            language_note=language_note,
        )
    elif is_hierarchical:
        hierarchy_instructions = SHALLOW_HIERARCHY_INSTRUCTIONS.format(
            levels=levels, language_note=language_note
        )
    else:
        hierarchy_instructions = ""

    hierarchy_guidelines = []
    if is_hierarchical:
        hierarchy_guidelines.append(
            f"- CRITICAL HIERARCHY REQUIREMENT: Generate comprehensive {levels}-level "
            "hierarchy matching the detected structure"
        )
    if deep:
        hierarchy_guidelines.extend(
            [
                "- MANDATORY: Each Level 1 subtask MUST contain multiple Level 2 sub-subtasks",
                "- DO NOT combine multiple features into single tasks - break them down "
                "into individual sub-subtasks",
            ]
        )
    if module_names:
        hierarchy_guidelines.append(
            f"- MODULE-SPECIFIC GUIDELINES: Create main tasks for: {', '.join(module_names)}"
        )

    return SYSTEM_PROMPT.format(
        max_tasks=max_tasks,
        hierarchy_instructions=hierarchy_instructions,
        subtasks_example=DEEP_SUBTASK_EXAMPLE if deep else SUBTASK_EXAMPLE,
        team_members_example=TEAM_MEMBERS_EXAMPLE if include_team_members else "",
        complexity=complexity,
        max_tasks_note=(
            " (Level 0 main tasks only - Level 1 and 2 subtasks are unlimited within reason)"
            if deep
            else ""
        ),
        sub_subtasks_note=" and sub-subtasks" if deep else "",
        complexity_guidelines=complexity_guidelines(complexity, is_hierarchical, levels),
        hierarchy_guidelines="".join(f"{line}\n" for line in hierarchy_guidelines),
    )


def build_user_prompt(prompt: str, estimated_duration: int | None = None) -> str:
    """Build the user message for a generation request.

    Args:
        prompt: Project description as typed by the user.
        estimated_duration: Optional total duration hint in working days.

    Returns:
        Formatted user prompt.
    """
    duration_hint = ""
    if estimated_duration:
        duration_hint = f"\nEstimated total duration: {estimated_duration} working days\n"
    return USER_PROMPT.format(prompt=prompt, duration_hint=duration_hint)
