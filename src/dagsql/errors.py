"""Exception classes for dagsql."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dagsql.engine.executor.models import ExecutionResult


class DagsqlError(Exception):
    """Base exception for all dagsql errors."""


class ModelError(DagsqlError, ValueError):
    """Raised when a model or node is constructed with invalid arguments."""


class ConfigError(DagsqlError):
    """Raised when project configuration is invalid or cannot be read."""


class GraphError(DagsqlError):
    """Raised on duplicate nodes or edges that reference unknown nodes."""


class CycleError(GraphError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, message: str, cycle: list[str] | None = None):
        super().__init__(message)
        self.cycle = cycle or []


class RenderError(DagsqlError):
    """Raised when a template cannot be rendered."""


class TemplateSyntaxError(RenderError):
    """Raised when a template body is malformed."""


class TemplateFunctionError(RenderError):
    """Raised by template functions (ref, var, config, ...) on bad lookups."""


class CompilationError(DagsqlError):
    """Raised when model files cannot be discovered or compiled."""


class MaterializationError(DagsqlError):
    """Raised when materialization SQL cannot be generated."""


class StorageError(DagsqlError):
    """Raised when the backing store rejects a statement or connection."""


class ExecutionError(DagsqlError):
    """Raised when a batch run aborts.

    The (partial) ExecutionResult accumulated so far is available as ``result``.
    """

    def __init__(self, message: str, result: ExecutionResult | None = None):
        super().__init__(message)
        self.result = result
