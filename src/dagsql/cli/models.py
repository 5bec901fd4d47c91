"""Model inspection commands: compile, dag."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from dagsql.cli import _compile_project, _load_config, _resolve_project, app, console


def _ordered(models):
    """Models in execution order. Exits on cycles or unknown dependencies."""
    from dagsql.engine.graph import build_graph, topological_sort, validate
    from dagsql.errors import GraphError

    by_id = {m.id: m for m in models}
    try:
        graph = build_graph((m.id, m.dependencies) for m in models)
        validate(graph)
        order = topological_sort(graph)
    except GraphError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    return [by_id[node.id] for node in order]


@app.command(name="compile")
def compile_cmd(
    select: Annotated[Optional[str], typer.Option("--select", "-s", help="Comma-separated models to compile (plus their upstream)")] = None,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", "-o", help="Write <model>.sql files here instead of printing")] = None,
    target: Annotated[Optional[str], typer.Option("--target", "-t", help="Target from project.yml (default: dev if defined)")] = None,
    project_dir: Annotated[Optional[Path], typer.Option("--project", "-p", help="Project directory (default: current dir)")] = None,
) -> None:
    """Render model templates in dependency order without executing them."""
    project_dir = _resolve_project(project_dir)
    config = _load_config(project_dir, target)
    models, _ = _compile_project(config, select)

    if not models:
        console.print("[yellow]No models found in model paths[/yellow]")
        return

    ordered = _ordered(models)

    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        for model in ordered:
            (output_dir / f"{model.id}.sql").write_text(model.compiled_sql.strip() + "\n")
        console.print(f"Compiled {len(ordered)} model(s) to [bold]{output_dir}[/bold]")
        return

    for model in ordered:
        console.print(f"[bold]-- {model.id}[/bold] [dim]({model.materialization.type_name})[/dim]")
        console.print(model.compiled_sql.strip(), highlight=False, markup=False)
        console.print()


@app.command()
def dag(
    target: Annotated[Optional[str], typer.Option("--target", "-t", help="Target from project.yml (default: dev if defined)")] = None,
    project_dir: Annotated[Optional[Path], typer.Option("--project", "-p", help="Project directory (default: current dir)")] = None,
) -> None:
    """Show the execution order with each model's dependencies."""
    project_dir = _resolve_project(project_dir)
    config = _load_config(project_dir, target)
    models, _ = _compile_project(config)

    if not models:
        console.print("[yellow]No models found in model paths[/yellow]")
        return

    table = Table(title="Execution order")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Model", style="bold")
    table.add_column("Materialized")
    table.add_column("Depends on")
    for idx, model in enumerate(_ordered(models), start=1):
        table.add_row(
            str(idx),
            model.id,
            model.materialization.type_name,
            ", ".join(model.dependencies) or "[dim]-[/dim]",
        )
    console.print(table)
