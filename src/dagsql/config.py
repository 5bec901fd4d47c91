"""Project configuration: project.yml parsing and defaults."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dagsql.engine.template import RenderContext
from dagsql.engine.utils import validate_identifier
from dagsql.errors import ConfigError

logger = logging.getLogger("dagsql.config")

PROJECT_FILE = "project.yml"

# ${VAR} or ${VAR:default}
_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::([^}]*))?\}")


class DatabaseConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")
    path: str = "warehouse.duckdb"


class TargetConfig(BaseModel):
    """Overrides applied when a target is active (e.g. dev, prod)."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    database: dict[str, Any] = Field(default_factory=dict)  # {"path": "prod.duckdb"}
    schema_name: str | None = Field(default=None, alias="schema")
    vars: dict[str, Any] = Field(default_factory=dict)


class ProjectConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = "default"
    version: str = "1.0"
    schema_name: str = Field(default="", alias="schema")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    model_paths: list[str] = Field(default_factory=lambda: ["models"], alias="model-paths")
    seed_paths: list[str] = Field(default_factory=lambda: ["seeds"], alias="seed-paths")
    seed_schema: str = Field(default="", alias="seed-schema")
    vars: dict[str, Any] = Field(default_factory=dict)
    config_values: dict[str, Any] = Field(default_factory=dict, alias="config")
    # sources[source_name][table_name] = qualified name
    sources: dict[str, dict[str, str]] = Field(default_factory=dict)
    targets: dict[str, TargetConfig] = Field(default_factory=dict)
    active_target: str | None = None
    project_dir: Path = Field(default_factory=Path.cwd)

    @property
    def model_dirs(self) -> list[Path]:
        return [self.project_dir / p for p in self.model_paths]

    @property
    def seed_dirs(self) -> list[Path]:
        return [self.project_dir / p for p in self.seed_paths]

    @property
    def effective_seed_schema(self) -> str:
        return self.seed_schema or self.schema_name

    @property
    def database_path(self) -> str:
        """Database path resolved against the project directory."""
        path = self.database.path
        if path == ":memory:" or Path(path).is_absolute():
            return path
        return str(self.project_dir / path)

    def render_context(self, seeds: dict[str, str] | None = None) -> RenderContext:
        """Base render context for this project. Use ``for_model`` per model."""
        return RenderContext(
            schema=self.schema_name,
            vars=dict(self.vars),
            config=dict(self.config_values),
            sources={k: dict(v) for k, v in self.sources.items()},
            seeds=dict(seeds or {}),
        )


def _expand_env_vars(value: Any) -> Any:
    """Expand ${ENV_VAR} and ${ENV_VAR:default} references in string values.

    Unset variables without a default are left as-is.
    """
    if isinstance(value, str):
        def _sub(m: re.Match) -> str:
            env_value = os.environ.get(m.group(1))
            if env_value is not None:
                return env_value
            if m.group(2) is not None:
                return m.group(2)
            return m.group(0)

        return _ENV_VAR_PATTERN.sub(_sub, value)
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    return value


def load_env(project_dir: Path) -> dict[str, str]:
    """Load KEY=value pairs from .env into os.environ. Returns loaded keys."""
    env_path = project_dir / ".env"
    loaded: dict[str, str] = {}
    if not env_path.exists():
        return loaded

    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        # Strip surrounding quotes
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        os.environ[key] = value
        loaded[key] = value

    return loaded


def find_project_dir(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` (or cwd) to the first directory holding project.yml."""
    current = Path(start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / PROJECT_FILE).exists():
            return candidate
    return None


def _apply_target(config: ProjectConfig, target: str | None, config_path: Path) -> None:
    """Activate ``target`` (or "dev" when targets exist and none was asked for)."""
    if target is None:
        target = "dev" if "dev" in config.targets else None
    if target is None:
        return
    if target not in config.targets:
        available = ", ".join(sorted(config.targets)) or "none defined"
        raise ConfigError(f"unknown target {target!r} in {config_path} (available: {available})")

    overrides = config.targets[target]
    if "path" in overrides.database:
        config.database = DatabaseConfig(path=str(overrides.database["path"]))
    if overrides.schema_name is not None:
        config.schema_name = overrides.schema_name
    config.vars = {**config.vars, **overrides.vars}
    config.active_target = target
    logger.debug("Using target %s", target)


def load_project(project_dir: Path | None = None, target: str | None = None) -> ProjectConfig:
    """Load project.yml from the given directory (or cwd).

    Args:
        project_dir: Path to the project directory.
        target: Target to activate (e.g. "dev", "prod"). If targets are
            defined and target is None, defaults to "dev" when present.

    A missing project.yml yields defaults. Raises ConfigError on unreadable
    YAML, a non-mapping document, invalid values, or an unknown target.
    """
    project_dir = Path(project_dir) if project_dir else Path.cwd()
    config_path = project_dir / PROJECT_FILE

    # Load .env secrets into environment before expanding vars
    load_env(project_dir)

    if not config_path.exists():
        logger.debug("No %s in %s, using defaults", PROJECT_FILE, project_dir)
        config = ProjectConfig(name=project_dir.name, project_dir=project_dir)
        _apply_target(config, target, config_path)
        return config

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    raw = _expand_env_vars(raw)
    raw.setdefault("name", project_dir.name)
    raw["project_dir"] = project_dir

    try:
        config = ProjectConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration in {config_path}: {e}") from e

    _apply_target(config, target, config_path)

    for label, schema in (("schema", config.schema_name), ("seed-schema", config.seed_schema)):
        if schema:
            try:
                validate_identifier(schema, label)
            except ValueError as e:
                raise ConfigError(str(e)) from e

    return config
