"""Model discovery and compilation.

Convention: every ``*.sql`` file under a model directory is one model whose id
is the file stem. models/marts/customers.sql -> id=customers
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

from dagsql.engine.executor.models import Model
from dagsql.engine.graph import extract_refs
from dagsql.engine.materialization import (
    MaterializationConfig,
    MaterializationType,
    parse_materialization_type,
)
from dagsql.engine.sql_analysis import parse_config, parse_hooks, strip_config_comments
from dagsql.engine.template import DependencyCollector, RenderContext, TemplateEngine, render
from dagsql.engine.utils import validate_identifier
from dagsql.errors import CompilationError, MaterializationError, RenderError

logger = logging.getLogger("dagsql.compiler")

ContextFactory = Callable[[Model], RenderContext]

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


def materialization_from_header(sql: str) -> MaterializationConfig:
    """Build a MaterializationConfig from the ``-- config:`` and hook comments."""
    config = parse_config(sql)
    pre_hooks, post_hooks = parse_hooks(sql)
    mat_type = parse_materialization_type(config.get("materialized", MaterializationType.TABLE.value))
    unique_key = [k.strip() for k in config.get("unique_key", "").split(",") if k.strip()]
    return MaterializationConfig(
        type=mat_type,
        unique_key=unique_key,
        full_refresh=config.get("full_refresh", "").lower() in _TRUE_VALUES,
        pre_hooks=pre_hooks,
        post_hooks=post_hooks,
    )


def discover_models(model_dirs: Iterable[Path]) -> list[Model]:
    """Discover all SQL models in the given directories.

    Missing directories are skipped. Raises CompilationError on invalid ids,
    bad config headers, or two files with the same stem.
    """
    models: list[Model] = []
    seen: dict[str, Path] = {}

    for model_dir in model_dirs:
        model_dir = Path(model_dir)
        if not model_dir.exists():
            logger.debug("Model directory %s does not exist, skipping", model_dir)
            continue

        for sql_file in sorted(model_dir.rglob("*.sql")):
            model_id = sql_file.stem
            # Ids end up in DDL, so validate them at discovery time
            try:
                validate_identifier(model_id, f"model name for {sql_file.name}")
            except ValueError as e:
                raise CompilationError(str(e)) from e
            if model_id in seen:
                raise CompilationError(
                    f"duplicate model {model_id!r}: {seen[model_id]} and {sql_file}"
                )
            seen[model_id] = sql_file

            sql = sql_file.read_text()
            try:
                config = materialization_from_header(sql)
            except MaterializationError as e:
                raise CompilationError(f"invalid config in {sql_file}: {e}") from e

            model = Model(id=model_id, path=sql_file, materialization=config)
            model.set_template_content(strip_config_comments(sql))
            models.append(model)

    logger.debug("Discovered %d model(s)", len(models))
    return models


def compile_models(
    models: list[Model],
    context_factory: ContextFactory | None = None,
    full_refresh: bool = False,
) -> list[Model]:
    """Render every model's template and record its ref() dependencies.

    Args:
        models: Models from discover_models (template content set)
        context_factory: Builds the render context for a model. Defaults to a
            blank context pointed at the model.
        full_refresh: Force incremental models to rebuild from scratch

    Raises:
        CompilationError: If a template fails to render or refs an unknown model
    """
    if context_factory is None:
        context_factory = _default_context
    collector = DependencyCollector()
    engine = TemplateEngine(tracker=collector)
    known = {m.id for m in models}

    for model in models:
        if full_refresh and model.is_incremental:
            model.materialization.full_refresh = True

        try:
            template = engine.parse(model.id, model.template_content)
            model.set_compiled_sql(render(template, context_factory(model)))
        except RenderError as e:
            raise CompilationError(f"failed to compile model {model.id}: {e}") from e

        for dep in collector.get_dependencies(model.id):
            if dep not in known:
                raise CompilationError(f"model {model.id} references unknown model {dep!r}")
            model.add_dependency(dep)

        # Refs inside branches not taken at compile time, e.g. under is_incremental()
        for dep in extract_refs(model.template_content):
            if dep in known and dep != model.id:
                model.add_dependency(dep)

    return models


def _default_context(model: Model) -> RenderContext:
    return RenderContext().for_model(model.id)


def filter_models(models: list[Model], names: Iterable[str]) -> list[Model]:
    """Keep the named models plus everything they depend on, in input order."""
    by_id = {m.id: m for m in models}
    wanted: set[str] = set()
    stack = []
    for name in names:
        name = name.strip()
        if not name:
            continue
        if name not in by_id:
            raise CompilationError(f"model not found: {name}")
        stack.append(name)

    while stack:
        model_id = stack.pop()
        if model_id in wanted:
            continue
        wanted.add(model_id)
        stack.extend(d for d in by_id[model_id].dependencies if d in by_id)

    return [m for m in models if m.id in wanted]
