"""Project commands: init."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Optional

import typer

from dagsql.cli import app, console

_PROJECT_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Project name")],
    directory: Annotated[Optional[Path], typer.Option("--dir", "-d", help="Target directory (default: ./<name>)")] = None,
    empty: Annotated[bool, typer.Option("--empty", help="Create the layout without sample seeds and models")] = False,
    force: Annotated[bool, typer.Option("--force", help="Write into an existing non-empty directory")] = False,
) -> None:
    """Scaffold a new project."""
    from dagsql.config import PROJECT_FILE
    from dagsql.templates import ENV_TEMPLATE, GITIGNORE, PROJECT_YML_TEMPLATE, SAMPLE_FILES

    if not _PROJECT_NAME.match(name):
        console.print(f"[red]Invalid project name {name!r}: use letters, digits, '_' and '-'[/red]")
        raise typer.Exit(1)

    target = directory or Path.cwd() / name
    if target.exists() and any(target.iterdir()) and not force:
        console.print(f"[red]Directory {target} already exists and is not empty (use --force)[/red]")
        raise typer.Exit(1)

    for d in ("models", "seeds"):
        (target / d).mkdir(parents=True, exist_ok=True)

    (target / PROJECT_FILE).write_text(PROJECT_YML_TEMPLATE.format(name=name))
    (target / ".gitignore").write_text(GITIGNORE)
    env_path = target / ".env"
    if not env_path.exists():
        env_path.write_text(ENV_TEMPLATE)

    created = [PROJECT_FILE, ".gitignore", ".env"]
    if not empty:
        for rel_path, content in SAMPLE_FILES.items():
            path = target / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            created.append(rel_path)

    console.print(f"[green]Project '{name}' created at {target}[/green]")
    for rel_path in created:
        console.print(f"  {rel_path}")
    console.print()
    console.print("Quick start:")
    console.print(f"  cd {target}")
    console.print("  dagsql build      # load seeds, then run models")
    console.print("  dagsql dag        # show execution order")
