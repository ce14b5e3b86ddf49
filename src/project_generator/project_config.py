"""Project configuration for the project generator.

Manages a per-directory .planner/ directory holding config.toml. Provides
discovery via find_project_root() and CLI integration via
resolve_config_for_cli(). API keys are never stored here; they come from
environment variables.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .generation.config import (
    GENERATION_COMPLEXITIES,
    PROVIDER_SETTINGS,
    GenerationOptions,
    ProviderSettings,
    RetryConfig,
)

logger = logging.getLogger(__name__)

_PLANNER_DIR = ".planner"
_CONFIG_FILE = "config.toml"

KNOWN_PROVIDERS: tuple[str, ...] = ("openai", "gemini", "claude")


@dataclass(frozen=True)
class GenerationSettings:
    """Defaults for generation requests."""

    default_provider: str = "openai"
    complexity: str | None = None
    include_team_members: bool = True
    max_tasks: int = 20


@dataclass(frozen=True)
class PlannerConfig:
    """Per-directory project generator configuration.

    Loaded from .planner/config.toml via load_project_config().
    """

    generation: GenerationSettings = field(default_factory=GenerationSettings)
    retry: RetryConfig = field(default_factory=RetryConfig)
    providers: dict[str, ProviderSettings] = field(
        default_factory=lambda: {name: PROVIDER_SETTINGS[name] for name in KNOWN_PROVIDERS}
    )

    def provider_settings(self, name: str) -> ProviderSettings:
        """Settings for a provider, falling back to the built-in defaults."""
        return self.providers.get(name) or PROVIDER_SETTINGS.get(name) or ProviderSettings(model=name)

    def to_options(self, **overrides: Any) -> GenerationOptions:
        """Build GenerationOptions from this config plus explicit overrides.

        Overrides whose value is None are ignored.
        """
        options = GenerationOptions(
            complexity=self.generation.complexity,
            include_team_members=self.generation.include_team_members,
            max_tasks=self.generation.max_tasks,
            max_retries=self.retry.max_retries,
            base_delay_ms=self.retry.base_delay_ms,
            max_delay_ms=self.retry.max_delay_ms,
        )
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(options, **changes) if changes else options


def load_project_config(project_path: Path) -> PlannerConfig:
    """Load config from .planner/config.toml.

    Args:
        project_path: Path to the directory containing .planner/.

    Returns:
        Parsed PlannerConfig.

    Raises:
        FileNotFoundError: If .planner/config.toml is missing.
        ValueError: On invalid, empty, or corrupt TOML.
    """
    config_file = project_path / _PLANNER_DIR / _CONFIG_FILE
    if not config_file.exists():
        msg = f"Project config not found: {config_file}"
        raise FileNotFoundError(msg)

    return load_config_file(config_file)


def load_config_file(config_file: Path) -> PlannerConfig:
    """Load a config file from an explicit path.

    Raises:
        ValueError: On invalid, empty, or corrupt TOML.
    """
    content = config_file.read_text(encoding="utf-8")
    if not content.strip():
        msg = f"Config file is empty: {config_file}"
        raise ValueError(msg)

    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {config_file}: {exc}"
        raise ValueError(msg) from exc

    return _parse_config(data)


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        msg = f"[{key}] section must be a table"
        raise ValueError(msg)
    return value


def _parse_config(data: dict[str, Any]) -> PlannerConfig:
    """Parse raw TOML data into a PlannerConfig.

    Unknown fields are silently ignored for forward compatibility.
    """
    generation_data = _table(data, "generation")
    retry_data = _table(data, "retry")
    providers_data = _table(data, "providers")

    complexity = generation_data.get("complexity")
    defaults = RetryConfig()

    providers = dict(PlannerConfig().providers)
    for name, table in providers_data.items():
        if not isinstance(table, dict):
            msg = f"[providers.{name}] section must be a table"
            raise ValueError(msg)
        base = PROVIDER_SETTINGS.get(name) or ProviderSettings(model=name)
        providers[name] = replace(
            base,
            model=str(table.get("model", base.model)),
            temperature=float(table.get("temperature", base.temperature)),
            timeout_seconds=float(table.get("timeout_seconds", base.timeout_seconds)),
        )

    config = PlannerConfig(
        generation=GenerationSettings(
            default_provider=str(generation_data.get("default_provider", "openai")),
            complexity=str(complexity) if complexity is not None else None,
            include_team_members=bool(generation_data.get("include_team_members", True)),
            max_tasks=int(generation_data.get("max_tasks", 20)),
        ),
        retry=RetryConfig(
            max_retries=int(retry_data.get("max_retries", defaults.max_retries)),
            base_delay_ms=int(retry_data.get("base_delay_ms", defaults.base_delay_ms)),
            max_delay_ms=int(retry_data.get("max_delay_ms", defaults.max_delay_ms)),
        ),
        providers=providers,
    )
    _validate_config(config)
    return config


def create_default_config(project_path: Path, *, force: bool = False) -> PlannerConfig:
    """Create .planner/ directory with a default config.toml.

    Args:
        project_path: Directory in which to create .planner/.
        force: Overwrite an existing configuration.

    Returns:
        The created PlannerConfig.

    Raises:
        FileExistsError: If .planner/ exists and force=False.
    """
    planner_dir = project_path / _PLANNER_DIR
    if planner_dir.exists() and not force:
        msg = f"Project already initialized: {planner_dir}"
        raise FileExistsError(msg)

    config = PlannerConfig()
    planner_dir.mkdir(parents=True, exist_ok=True)
    (planner_dir / _CONFIG_FILE).write_text(_generate_toml(config), encoding="utf-8")

    logger.info("Initialized project generator config at %s", planner_dir)
    return config


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start to find nearest .planner/ directory.

    Args:
        start: Starting directory. Defaults to cwd.

    Returns:
        The directory containing .planner/, or None if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        if (current / _PLANNER_DIR).is_dir():
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent


def resolve_config_for_cli(config_override: str | None = None) -> PlannerConfig:
    """Resolve configuration for CLI commands with auto-discovery fallback.

    Args:
        config_override: Explicit --config file path. If given, skips discovery.

    Returns:
        The loaded config, or defaults when no .planner/ directory is found.

    Raises:
        FileNotFoundError: If config_override does not exist.
        ValueError: If the config file is corrupt or invalid.
    """
    if config_override is not None:
        path = Path(config_override)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        return load_config_file(path)

    project_root = find_project_root()
    if project_root is None:
        logger.debug("No %s/ directory found, using defaults", _PLANNER_DIR)
        return PlannerConfig()
    return load_project_config(project_root)


def _generate_toml(config: PlannerConfig) -> str:
    """Generate TOML string from a PlannerConfig.

    Handles Python->TOML type mapping: booleans as true/false,
    numbers unquoted, strings quoted. An unset complexity is omitted.
    """
    generation = config.generation
    lines = [
        "[generation]",
        f'default_provider = "{_escape_toml_string(generation.default_provider)}"',
    ]
    if generation.complexity is not None:
        lines.append(f'complexity = "{_escape_toml_string(generation.complexity)}"')
    lines += [
        f"include_team_members = {'true' if generation.include_team_members else 'false'}",
        f"max_tasks = {generation.max_tasks}",
        "",
        "[retry]",
        f"max_retries = {config.retry.max_retries}",
        f"base_delay_ms = {config.retry.base_delay_ms}",
        f"max_delay_ms = {config.retry.max_delay_ms}",
        "",
    ]
    for name, settings in config.providers.items():
        lines += [
            f"[providers.{name}]",
            f'model = "{_escape_toml_string(settings.model)}"',
            f"temperature = {settings.temperature}",
            f"timeout_seconds = {settings.timeout_seconds}",
            "",
        ]
    return "\n".join(lines)


def _escape_toml_string(value: str) -> str:
    """Escape special characters for TOML string values."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _validate_config(config: PlannerConfig) -> None:
    """Validate config values.

    Raises:
        ValueError: On invalid configuration.
    """
    generation = config.generation
    if generation.default_provider not in config.providers:
        msg = f"generation.default_provider is not a known provider: '{generation.default_provider}'"
        raise ValueError(msg)

    if generation.complexity is not None and generation.complexity not in GENERATION_COMPLEXITIES:
        msg = (
            f"generation.complexity must be one of {', '.join(GENERATION_COMPLEXITIES)}, "
            f"got '{generation.complexity}'"
        )
        raise ValueError(msg)

    if generation.max_tasks < 1:
        msg = f"generation.max_tasks must be >= 1, got {generation.max_tasks}"
        raise ValueError(msg)

    retry = config.retry
    if retry.max_retries < 0 or retry.max_retries > 10:
        msg = f"retry.max_retries must be 0-10, got {retry.max_retries}"
        raise ValueError(msg)
    if retry.base_delay_ms < 0 or retry.max_delay_ms < retry.base_delay_ms:
        msg = (
            "retry delays must satisfy 0 <= base_delay_ms <= max_delay_ms, "
            f"got {retry.base_delay_ms} and {retry.max_delay_ms}"
        )
        raise ValueError(msg)

    for name, settings in config.providers.items():
        if not settings.model.strip():
            msg = f"providers.{name}.model must not be empty"
            raise ValueError(msg)
        if settings.timeout_seconds <= 0:
            msg = f"providers.{name}.timeout_seconds must be positive, got {settings.timeout_seconds}"
            raise ValueError(msg)
