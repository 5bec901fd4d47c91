"""Execution engine: runs models in dependency order through a storage adapter."""

from __future__ import annotations

import logging

from dagsql.engine.graph import build_graph, topological_sort
from dagsql.engine.materialization import get_strategy_from_config
from dagsql.engine.sql_analysis import is_raw_ddl, split_statements
from dagsql.engine.storage import StorageAdapter
from dagsql.engine.template import RenderContext, TemplateEngine, render
from dagsql.engine.utils import qualify
from dagsql.errors import (
    DagsqlError,
    ExecutionError,
    GraphError,
    MaterializationError,
    ModelError,
)

from .models import ExecutionResult, ExecutionStatus, Model, ModelResult

logger = logging.getLogger("dagsql.executor")


class ExecutionEngine:
    """Runs models one at a time in topological order.

    Args:
        adapter: Storage adapter every statement is sent through
        template_engine: Used to re-render models that carry template content,
            so ``is_incremental()`` reflects whether the target already exists
        schema: Schema that model tables are created in ('' for the default)
        context: Base render context (vars, config, sources, seeds) for re-renders
    """

    def __init__(
        self,
        adapter: StorageAdapter,
        template_engine: TemplateEngine | None = None,
        schema: str = "",
        context: RenderContext | None = None,
    ):
        if adapter is None:
            raise ModelError("storage adapter cannot be None")
        self.adapter = adapter
        self.template_engine = template_engine
        self.schema = schema
        self.context = context or RenderContext(schema=schema)

    def target_name(self, model: Model) -> str:
        return qualify(self.schema, model.id)

    def execute_model(self, model: Model) -> ModelResult:
        """Execute a single model.

        Failures are recorded on the returned ModelResult (status FAILED,
        ``error`` set) rather than raised. Statements already executed are
        not rolled back.
        """
        result = ModelResult(model_id=model.id)
        logger.info("Running model %s", model.id)

        if model.template_content and self.template_engine is not None:
            try:
                self._rerender(model)
            except DagsqlError as e:
                return self._failed(result, f"failed to render template: {e}")

        if not model.compiled_sql.strip():
            return self._failed(result, "model has no compiled SQL")

        if is_raw_ddl(model.compiled_sql):
            # Hand-written DDL/DML bypasses materialization
            for stmt in split_statements(model.compiled_sql):
                try:
                    self.adapter.execute_ddl(stmt)
                except DagsqlError as e:
                    return self._failed(result, f"failed to execute SQL: {e}")
                result.sql.append(stmt)
            return self._succeeded(result)

        try:
            strategy = get_strategy_from_config(model.materialization)
        except MaterializationError as e:
            return self._failed(result, f"failed to get strategy: {e}")

        try:
            statements = strategy.materialize(
                self.target_name(model), model.compiled_sql, model.materialization
            )
        except MaterializationError as e:
            return self._failed(result, f"failed to generate SQL: {e}")

        for stmt in statements:
            try:
                self.adapter.execute_ddl(stmt)
            except DagsqlError as e:
                return self._failed(result, f"failed to execute SQL: {e}")
            result.sql.append(stmt)

        return self._succeeded(result)

    def execute_models(self, models: list[Model], fail_fast: bool = False) -> ExecutionResult:
        """Execute ``models`` in dependency order.

        Raises:
            ExecutionError: If the graph cannot be built or sorted (no model
                runs), or, when ``fail_fast`` is set, at the first failed model.
                The result accumulated so far is attached as ``.result``.
        """
        result = ExecutionResult()

        try:
            graph = build_graph((m.id, m.dependencies) for m in models)
            order = topological_sort(graph)
        except GraphError as e:
            result.complete()
            raise ExecutionError(f"failed to build dependency graph: {e}", result) from e

        by_id = {m.id: m for m in models}
        logger.debug("Execution order: %s", ", ".join(n.id for n in order))

        for node in order:
            model_result = self.execute_model(by_id[node.id])
            result.add_model_result(model_result)
            if model_result.status == ExecutionStatus.FAILED and fail_fast:
                result.complete()
                raise ExecutionError(
                    f"execution failed at model {node.id}: {model_result.error}", result
                )

        result.complete()
        logger.info(
            "Executed %d/%d model(s) successfully in %.2fs",
            result.success_count,
            len(result.model_results),
            result.duration,
        )
        return result

    def _rerender(self, model: Model) -> None:
        table_exists = False
        if model.is_incremental:
            try:
                table_exists = self.adapter.table_exists(self.target_name(model))
            except DagsqlError as e:
                logger.warning("Could not check whether %s exists: %s", model.id, e)

        incremental = model.materialization.is_incremental_run and table_exists
        context = self.context.for_model(model.id, is_incremental=incremental)
        template = self.template_engine.parse(model.id, model.template_content)
        model.set_compiled_sql(render(template, context))

    def _failed(self, result: ModelResult, error: str) -> ModelResult:
        logger.error("Model %s failed: %s", result.model_id, error)
        return result.finish(ExecutionStatus.FAILED, error)

    def _succeeded(self, result: ModelResult) -> ModelResult:
        result.finish(ExecutionStatus.SUCCESS)
        logger.info("Model %s done in %.2fs", result.model_id, result.duration)
        return result
