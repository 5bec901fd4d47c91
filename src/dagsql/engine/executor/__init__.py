"""Model execution.

    from dagsql.engine.executor import ExecutionEngine, Model
"""

from __future__ import annotations

from .engine import ExecutionEngine
from .models import ExecutionResult, ExecutionStatus, Model, ModelResult

__all__ = [
    "ExecutionEngine",
    "ExecutionResult",
    "ExecutionStatus",
    "Model",
    "ModelResult",
]
