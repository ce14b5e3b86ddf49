"""CLI for the project generator.

Provides commands to analyze a project prompt, generate a task hierarchy
with provider fallback, and inspect or test the configured providers.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from .generation import (
    GenerationOrchestrator,
    InputError,
    MockProvider,
    analyze_prompt,
    summarize_analysis,
)
from .generation.config import GENERATION_COMPLEXITIES
from .generation.providers import (
    ClaudeProvider,
    GeminiProvider,
    OpenAIProvider,
    cleanup_sdk_child_processes,
)
from .project_config import PlannerConfig, create_default_config, resolve_config_for_cli

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

MOCK_CREDENTIAL = "mock-key"


def _provider_key_options(func: Any) -> Any:
    """Attach the per-provider API key options, read from the environment."""
    func = click.option("--claude-key", envvar="ANTHROPIC_API_KEY", default=None,
                        help="Anthropic API key")(func)
    func = click.option("--gemini-key", envvar="GEMINI_API_KEY", default=None,
                        help="Gemini API key")(func)
    func = click.option("--openai-key", envvar="OPENAI_API_KEY", default=None,
                        help="OpenAI API key")(func)
    return func


def _load_config(config_path: str | None) -> PlannerConfig:
    try:
        return resolve_config_for_cli(config_path)
    except (FileNotFoundError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def build_orchestrator(
    config: PlannerConfig,
    keys: dict[str, str | None],
    *,
    mock_llm: bool = False,
    default_provider: str | None = None,
) -> GenerationOrchestrator:
    """Create and configure an orchestrator for a CLI command.

    Args:
        config: Resolved project configuration.
        keys: Provider name -> API key (None when unset).
        mock_llm: Use an offline mock provider instead of real backends.
        default_provider: Preferred provider; defaults to the config value.

    Returns:
        Configured GenerationOrchestrator.
    """
    if mock_llm:
        orchestrator = GenerationOrchestrator([MockProvider()], default_provider="mock")
        orchestrator.configure({"mock": MOCK_CREDENTIAL})
        return orchestrator

    preferred = default_provider or config.generation.default_provider
    orchestrator = GenerationOrchestrator(
        [
            OpenAIProvider(config.provider_settings("openai")),
            GeminiProvider(config.provider_settings("gemini")),
            ClaudeProvider(config.provider_settings("claude")),
        ],
        default_provider=preferred,
    )
    orchestrator.configure(keys, default_provider=preferred)
    return orchestrator


async def _with_cleanup(orchestrator: GenerationOrchestrator, coro: Any) -> Any:
    """Await coro, then release provider resources.

    The Claude Agent SDK may leave CLI child processes behind, so they are
    cleaned up ONCE here at command exit, never per call.
    """
    try:
        return await coro
    finally:
        await orchestrator.aclose()
        cleanup_sdk_child_processes()


def _read_prompt(prompt: str | None, prompt_file: str | None) -> str:
    if prompt_file is not None:
        return Path(prompt_file).read_text(encoding="utf-8")
    if prompt is None or prompt == "-":
        return click.get_text_stream("stdin").read()
    return prompt


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """Project Generator - Turn project descriptions into task hierarchies."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command("init")
@click.option(
    "--project",
    "-p",
    "project_path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Path to the project directory (default: current directory)",
)
@click.option("--force", is_flag=True, help="Overwrite existing .planner/ configuration")
def init_command(project_path: str, force: bool) -> None:
    """Create a .planner/config.toml with default settings."""
    path = Path(project_path)
    try:
        create_default_config(path, force=force)
    except FileExistsError:
        click.echo(
            f"Error: Project already initialized at {path / '.planner'}. "
            "Use --force to overwrite.",
            err=True,
        )
        sys.exit(1)

    click.echo(f"Initialized project generator config at {path / '.planner'}")


@cli.command()
@click.argument("prompt", required=False)
@click.option("--prompt-file", "-f", type=click.Path(exists=True, dir_okay=False),
              help="Read the prompt from a file")
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON")
def analyze(prompt: str | None, prompt_file: str | None, as_json: bool) -> None:
    """Analyze a prompt's structure without calling any provider."""
    text = _read_prompt(prompt, prompt_file)
    try:
        analysis = analyze_prompt(text)
    except InputError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False))
    else:
        click.echo(summarize_analysis(analysis))


@cli.command()
@click.argument("prompt", required=False)
@click.option("--prompt-file", "-f", type=click.Path(exists=True, dir_okay=False),
              help="Read the prompt from a file")
@click.option("--provider", "-p", default=None, help="Preferred provider (tried first)")
@click.option("--complexity", "-c", type=click.Choice(GENERATION_COMPLEXITIES), default=None,
              help="Override the complexity derived from the prompt")
@click.option("--max-tasks", type=int, default=None, help="Maximum number of main tasks")
@click.option("--max-retries", type=int, default=None, help="Retries per provider")
@click.option("--duration", type=int, default=None, help="Estimated duration in working days")
@click.option("--no-team", is_flag=True, help="Do not request team members")
@click.option("--output", "-o", type=click.Path(dir_okay=False),
              help="Write the project JSON to a file instead of stdout")
@click.option("--config", "config_path", type=click.Path(), default=None,
              help="Explicit config.toml path")
@click.option("--mock-llm", is_flag=True, help="Use an offline mock provider")
@_provider_key_options
def generate(
    prompt: str | None,
    prompt_file: str | None,
    provider: str | None,
    complexity: str | None,
    max_tasks: int | None,
    max_retries: int | None,
    duration: int | None,
    no_team: bool,
    output: str | None,
    config_path: str | None,
    mock_llm: bool,
    openai_key: str | None,
    gemini_key: str | None,
    claude_key: str | None,
) -> None:
    """Generate a project task hierarchy from a description."""
    config = _load_config(config_path)
    text = _read_prompt(prompt, prompt_file)

    options = config.to_options(
        complexity=complexity,
        max_tasks=max_tasks,
        max_retries=max_retries,
        estimated_duration=duration,
        include_team_members=False if no_team else None,
    )
    keys = {"openai": openai_key, "gemini": gemini_key, "claude": claude_key}
    orchestrator = build_orchestrator(
        config, keys, mock_llm=mock_llm, default_provider=provider
    )

    try:
        outcome = asyncio.run(
            _with_cleanup(orchestrator, orchestrator.generate_with_fallback(text, options))
        )
    except InputError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if not outcome.success or outcome.project is None:
        for error in outcome.errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    project = outcome.project
    payload = json.dumps(project.to_dict(), indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(payload + "\n", encoding="utf-8")
        click.echo(f"Wrote project '{project.name}' to {output}", err=True)
    else:
        click.echo(payload)

    click.echo(
        f"Generated {sum(1 for _ in project.iter_tasks())} tasks with {outcome.provider} "
        f"({len(outcome.attempts)} attempt(s))",
        err=True,
    )
    for warning in project.warnings:
        click.echo(f"Warning: {warning}", err=True)


@cli.command()
@click.option("--config", "config_path", type=click.Path(), default=None,
              help="Explicit config.toml path")
@click.option("--json", "as_json", is_flag=True, help="Print status as JSON")
@_provider_key_options
def providers(
    config_path: str | None,
    as_json: bool,
    openai_key: str | None,
    gemini_key: str | None,
    claude_key: str | None,
) -> None:
    """Show which providers are configured."""
    config = _load_config(config_path)
    keys = {"openai": openai_key, "gemini": gemini_key, "claude": claude_key}
    orchestrator = build_orchestrator(config, keys)
    status = orchestrator.get_provider_status()
    asyncio.run(orchestrator.aclose())

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    click.echo(f"{'Provider':<10} {'Ready':<6} {'Model'}")
    click.echo("-" * 40)
    for name, info in status.items():
        marker = "*" if info["current"] else " "
        ready = "yes" if info["ready"] else "no"
        click.echo(f"{name:<9}{marker} {ready:<6} {info['model']}")


@cli.command("test-connection")
@click.option("--provider", "-p", default=None,
              help="Provider to test (default: every configured provider)")
@click.option("--config", "config_path", type=click.Path(), default=None,
              help="Explicit config.toml path")
@click.option("--mock-llm", is_flag=True, help="Use an offline mock provider")
@_provider_key_options
def test_connection(
    provider: str | None,
    config_path: str | None,
    mock_llm: bool,
    openai_key: str | None,
    gemini_key: str | None,
    claude_key: str | None,
) -> None:
    """Check connectivity of the configured providers."""
    config = _load_config(config_path)
    keys = {"openai": openai_key, "gemini": gemini_key, "claude": claude_key}
    orchestrator = build_orchestrator(config, keys, mock_llm=mock_llm)

    if provider is not None and provider not in orchestrator.providers:
        click.echo(f"Error: Unknown provider: {provider}", err=True)
        sys.exit(1)

    async def _run() -> dict[str, Any]:
        if provider is not None:
            return {provider: await orchestrator.test_connection(provider)}
        return await orchestrator.test_all_connections()

    results = asyncio.run(_with_cleanup(orchestrator, _run()))

    failed = False
    for name, result in results.items():
        if result.success:
            click.echo(f"{name}: OK - {result.message}")
        else:
            failed = True
            click.echo(f"{name}: FAILED - {result.error}")
    if failed and provider is not None:
        sys.exit(1)


def main() -> None:
    """Entry point for the project-generator console script."""
    cli()


if __name__ == "__main__":
    main()
