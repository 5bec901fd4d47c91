"""Pipeline commands: run, seed, build."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape

from dagsql.cli import _compile_project, _load_config, _resolve_project, app, console

ProjectOption = Annotated[Optional[Path], typer.Option("--project", "-p", help="Project directory (default: current dir)")]
TargetOption = Annotated[Optional[str], typer.Option("--target", "-t", help="Target from project.yml (default: dev if defined)")]


def _run_models(config, select, full_refresh, fail_fast, verbose) -> bool:
    """Compile and execute the project's models. Returns True if all succeeded."""
    from dagsql.engine.database import DuckDBAdapter, ensure_schemas
    from dagsql.engine.executor import ExecutionEngine, ExecutionStatus
    from dagsql.engine.template import TemplateEngine
    from dagsql.errors import ExecutionError, StorageError

    models, base = _compile_project(config, select, full_refresh)

    if not models:
        console.print("[yellow]No models found in model paths[/yellow]")
        return True

    mode = "full refresh" if full_refresh else "incremental"
    target = f", target {config.active_target}" if config.active_target else ""
    console.print(f"[bold]Running {len(models)} model(s)[/bold] [dim]({mode}{target})[/dim]:")

    adapter = DuckDBAdapter(config.database_path)
    try:
        with adapter:
            ensure_schemas(adapter, [config.schema_name])
            engine = ExecutionEngine(
                adapter,
                TemplateEngine(),
                schema=config.schema_name,
                context=base,
            )
            error = None
            try:
                result = engine.execute_models(models, fail_fast=fail_fast)
            except ExecutionError as e:
                result, error = e.result, e
    except StorageError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return False

    for mr in result.model_results:
        label = f"[bold]{mr.model_id}[/bold]"
        if mr.status == ExecutionStatus.SUCCESS:
            console.print(f"  [green]done[/green]  {label} [dim]({mr.duration:.2f}s)[/dim]")
        else:
            console.print(f"  [red]fail[/red]  {label}: {escape(mr.error)}")
        if verbose:
            for stmt in mr.sql:
                console.print(f"        [dim]{escape(stmt)}[/dim]", highlight=False)

    if error is not None:
        console.print(f"[red]{escape(str(error))}[/red]")

    console.print(
        f"\nExecuted {result.success_count}/{len(result.model_results)} model(s) "
        f"successfully in {result.duration:.2f}s"
    )
    return error is None and not result.failure_count


def _load_seeds(config) -> bool:
    """Load the project's CSV seeds. Returns True if every seed loaded."""
    from dagsql.engine.database import DuckDBAdapter
    from dagsql.engine.seeds import discover_seeds, run_seeds
    from dagsql.errors import StorageError

    try:
        seeds = discover_seeds(config.seed_dirs, config.effective_seed_schema)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return False

    console.print("[bold]Loading seeds:[/bold]")
    try:
        with DuckDBAdapter(config.database_path) as adapter:
            results = run_seeds(adapter, seeds)
    except StorageError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return False

    if not results:
        return True
    built = sum(1 for s in results.values() if s == "built")
    errors = sum(1 for s in results.values() if s == "error")
    console.print(f"\n  {built} loaded, {errors} errors")
    return errors == 0


@app.command()
def run(
    select: Annotated[Optional[str], typer.Option("--select", "-s", help="Comma-separated models to run (plus their upstream)")] = None,
    full_refresh: Annotated[bool, typer.Option("--full-refresh", help="Rebuild incremental models from scratch")] = False,
    fail_fast: Annotated[bool, typer.Option("--fail-fast", help="Stop at the first failed model")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show executed SQL")] = False,
    target: TargetOption = None,
    project_dir: ProjectOption = None,
) -> None:
    """Compile models, resolve the DAG, and execute in dependency order."""
    project_dir = _resolve_project(project_dir)
    config = _load_config(project_dir, target)
    if not _run_models(config, select, full_refresh, fail_fast, verbose):
        raise typer.Exit(1)


@app.command()
def seed(
    target: TargetOption = None,
    project_dir: ProjectOption = None,
) -> None:
    """Load CSV files from the seed paths into DuckDB tables."""
    project_dir = _resolve_project(project_dir)
    config = _load_config(project_dir, target)
    if not _load_seeds(config):
        raise typer.Exit(1)


@app.command()
def build(
    select: Annotated[Optional[str], typer.Option("--select", "-s", help="Comma-separated models to run (plus their upstream)")] = None,
    full_refresh: Annotated[bool, typer.Option("--full-refresh", help="Rebuild incremental models from scratch")] = False,
    fail_fast: Annotated[bool, typer.Option("--fail-fast", help="Stop at the first failed model")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show executed SQL")] = False,
    target: TargetOption = None,
    project_dir: ProjectOption = None,
) -> None:
    """Load seeds, then run models. Models are skipped if any seed fails."""
    project_dir = _resolve_project(project_dir)
    config = _load_config(project_dir, target)

    if not _load_seeds(config):
        console.print("[red]Seed loading failed, models not run[/red]")
        raise typer.Exit(1)
    console.print()
    if not _run_models(config, select, full_refresh, fail_fast, verbose):
        raise typer.Exit(1)
    console.print("[green]Build completed[/green]")
