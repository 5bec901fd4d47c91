"""CLI interface for dagsql.

Split into modules by command group. The Typer app and shared helpers live
here; each module registers its commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

app = typer.Typer(
    name="dagsql",
    help="Dependency-ordered SQL models on DuckDB: ref(), incremental merges, seeds.",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    log_level: Annotated[str, typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")] = "WARNING",
) -> None:
    """Dependency-ordered SQL model runner."""
    from dagsql import setup_logging

    setup_logging(log_level)


def _resolve_project(project_dir: Path | None = None) -> Path:
    from dagsql.config import PROJECT_FILE, find_project_dir

    if project_dir is None:
        found = find_project_dir()
        if found is None:
            console.print(f"[red]No {PROJECT_FILE} found in {Path.cwd()} or its parents[/red]")
            raise typer.Exit(1)
        return found
    if not (project_dir / PROJECT_FILE).exists():
        console.print(f"[red]No {PROJECT_FILE} found in {project_dir}[/red]")
        raise typer.Exit(1)
    return project_dir


def _load_config(project_dir: Path, target: str | None = None):
    """Load project config, exiting with a message on invalid configuration."""
    from dagsql.config import load_project
    from dagsql.errors import ConfigError

    try:
        return load_project(project_dir, target)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _compile_project(config, select: str | None = None, full_refresh: bool = False):
    """Discover, render and (optionally) filter the project's models.

    Returns ``(models, base_context)``.
    """
    from dagsql.engine.compiler import compile_models, discover_models, filter_models
    from dagsql.engine.seeds import discover_seeds, seed_table_map
    from dagsql.errors import DagsqlError

    try:
        seeds = discover_seeds(config.seed_dirs, config.effective_seed_schema)
        base = config.render_context(seed_table_map(seeds))
        models = discover_models(config.model_dirs)
        compile_models(
            models,
            lambda m: base.for_model(m.id),
            full_refresh=full_refresh,
        )
        if select:
            models = filter_models(models, select.split(","))
    except (DagsqlError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    return models, base


# Import submodules so they register their commands on `app`.
from dagsql.cli import models  # noqa: E402, F401
from dagsql.cli import pipeline  # noqa: E402, F401
from dagsql.cli import project  # noqa: E402, F401
