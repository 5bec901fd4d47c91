"""Template functions: ref, var, config, source, seed, env_var, is_incremental, this.

Each function takes the render scope explicitly as its first argument and
reads only from it. ``bind_functions`` turns the dispatch table into the
callables a template sees.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping, Protocol

from dagsql.engine.utils import qualify
from dagsql.errors import TemplateFunctionError

from .context import ConfigValue, RenderContext


class DependencyTracker(Protocol):
    """Anything that can record "dependent depends on dependency"."""

    def add_dependency(self, dependent: str, dependency: str) -> None: ...


class DependencyCollector:
    """In-memory DependencyTracker. Keeps first-seen order and drops duplicates."""

    def __init__(self) -> None:
        self._dependencies: dict[str, list[str]] = {}

    def add_dependency(self, dependent: str, dependency: str) -> None:
        deps = self._dependencies.setdefault(dependent, [])
        if dependency not in deps:
            deps.append(dependency)

    def get_dependencies(self, model_id: str) -> list[str]:
        return list(self._dependencies.get(model_id, []))


@dataclass
class _FunctionScope:
    context: RenderContext
    tracker: DependencyTracker | None = None


def ref(scope: _FunctionScope, model_name: str) -> str:
    ctx = scope.context
    if scope.tracker is not None and ctx.current_model:
        scope.tracker.add_dependency(ctx.current_model, model_name)
    return qualify(ctx.schema, model_name)


def var(scope: _FunctionScope, name: str) -> ConfigValue:
    try:
        return scope.context.vars[name]
    except KeyError:
        raise TemplateFunctionError(f"variable not found: {name}") from None


def config(scope: _FunctionScope, key: str) -> ConfigValue:
    return lookup_path(scope.context.config, key)


def lookup_path(data: Mapping[str, ConfigValue], key: str) -> ConfigValue:
    """Descend through nested mappings following a dot-separated ``key``."""
    parts = key.split(".")
    current: ConfigValue = data
    for idx, part in enumerate(parts):
        if not isinstance(current, Mapping):
            raise TemplateFunctionError(f"config path invalid at {'.'.join(parts[:idx])}")
        if part not in current:
            raise TemplateFunctionError(f"config key not found: {key}")
        current = current[part]
    return current


def source(scope: _FunctionScope, source_name: str, table_name: str) -> str:
    tables = scope.context.sources.get(source_name)
    if tables is None:
        # Unconfigured sources resolve to the literal name
        return f"{source_name}.{table_name}"
    try:
        return tables[table_name]
    except KeyError:
        raise TemplateFunctionError(
            f"table {table_name} not found in source {source_name}"
        ) from None


def seed(scope: _FunctionScope, name: str) -> str:
    if not name:
        raise TemplateFunctionError("seed name cannot be empty")
    try:
        return scope.context.seeds[name]
    except KeyError:
        raise TemplateFunctionError(f"seed {name!r} not found") from None


def env_var(scope: _FunctionScope, key: str, default: str | None = None) -> str:
    value = os.environ.get(key, "")
    if value:
        return value
    if default is not None:
        return default
    raise TemplateFunctionError(f"environment variable not set: {key}")


def is_incremental(scope: _FunctionScope) -> bool:
    return scope.context.is_incremental


def this(scope: _FunctionScope) -> str:
    ctx = scope.context
    if not ctx.current_model_table:
        raise TemplateFunctionError("this() called but current model table is not set in context")
    return qualify(ctx.schema, ctx.current_model_table)


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "ref": ref,
    "var": var,
    "config": config,
    "source": source,
    "seed": seed,
    "env_var": env_var,
    "is_incremental": is_incremental,
    "this": this,
}


def bind_functions(
    context: RenderContext | None,
    tracker: DependencyTracker | None = None,
) -> dict[str, Callable[..., Any]]:
    """Bind every template function to ``context`` (a blank one if None)."""
    scope = _FunctionScope(context=context or RenderContext(), tracker=tracker)
    return {name: partial(fn, scope) for name, fn in FUNCTIONS.items()}
