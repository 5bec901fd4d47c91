"""Seed data loader.

Loads CSV files from the seed directories into tables so models can
reference them with ``{{ seed('name') }}``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from rich.console import Console

from dagsql.engine.storage import StorageAdapter
from dagsql.engine.utils import qualify, validate_identifier
from dagsql.errors import DagsqlError

logger = logging.getLogger("dagsql.seeds")
console = Console()


@dataclass
class Seed:
    path: Path
    name: str
    schema: str = ""

    @property
    def full_name(self) -> str:
        return qualify(self.schema, self.name)


@dataclass
class SeedResult:
    name: str
    full_name: str
    status: str  # "built" or "error"
    row_count: int = 0
    duration_ms: int = 0
    error: str = ""


def discover_seeds(seed_dirs: Iterable[Path], schema: str = "") -> list[Seed]:
    """Discover all CSV files in the seed directories.

    Missing directories are skipped. Seed names must be valid identifiers.
    """
    seeds = []
    for seed_dir in seed_dirs:
        seed_dir = Path(seed_dir)
        if not seed_dir.exists():
            continue
        for csv_file in sorted(seed_dir.glob("*.csv")):
            name = validate_identifier(csv_file.stem, f"seed name for {csv_file.name}")
            seeds.append(Seed(path=csv_file, name=name, schema=schema))
    return seeds


def seed_table_map(seeds: Iterable[Seed]) -> dict[str, str]:
    """Map seed name -> qualified table name for the render context."""
    return {seed.name: seed.full_name for seed in seeds}


def load_seed(adapter: StorageAdapter, seed: Seed) -> SeedResult:
    """Load a single CSV file into a table, replacing any previous contents.

    Handles:
    - Empty CSVs (creates a placeholder table)
    - Headers with non-SQL-safe characters (auto-quoted by DuckDB)
    """
    start = time.perf_counter()
    full_name = seed.full_name

    if seed.schema:
        adapter.execute_ddl(f"CREATE SCHEMA IF NOT EXISTS {seed.schema}")

    adapter.execute_ddl(f"DROP TABLE IF EXISTS {full_name}")

    # Check if file is empty (only whitespace/newlines)
    content = seed.path.read_text(errors="replace").strip()
    if not content:
        adapter.execute_ddl(f"CREATE TABLE {full_name} (empty_file BOOLEAN)")
        row_count = 0
    else:
        csv_str = str(seed.path).replace("'", "''")
        adapter.create_table_as(
            full_name,
            f"SELECT * FROM read_csv_auto('{csv_str}', header=true, all_varchar=false)",
        )
        result = adapter.execute_query(f"SELECT COUNT(*) FROM {full_name}")
        row_count = result.rows[0][0] if result.rows else 0

    duration_ms = int((time.perf_counter() - start) * 1000)
    logger.info("Loaded seed %s (%d rows)", full_name, row_count)
    return SeedResult(
        name=seed.name,
        full_name=full_name,
        status="built",
        row_count=row_count,
        duration_ms=duration_ms,
    )


def run_seeds(adapter: StorageAdapter, seeds: list[Seed]) -> dict[str, str]:
    """Load every seed.

    Returns dict of full_name -> status ("built" or "error").
    """
    if not seeds:
        console.print("[yellow]No CSV files found in seed paths[/yellow]")
        return {}

    results: dict[str, str] = {}

    for seed in seeds:
        label = f"[bold]{seed.full_name}[/bold]"
        try:
            result = load_seed(adapter, seed)
            suffix = f" ({result.row_count:,} rows, {result.duration_ms}ms)"
            console.print(f"  [green]done[/green]  {label}{suffix}")
            results[seed.full_name] = result.status
        except (DagsqlError, OSError) as e:
            console.print(f"  [red]fail[/red]  {label}: {e}")
            logger.error("Seed %s failed: %s", seed.full_name, e)
            results[seed.full_name] = "error"

    return results
