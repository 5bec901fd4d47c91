"""Data classes for model execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from dagsql.engine.materialization import MaterializationConfig, MaterializationType
from dagsql.engine.template.context import ConfigValue
from dagsql.errors import ModelError


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class Model:
    """A single SQL transformation model."""

    id: str
    path: str | Path
    compiled_sql: str = ""
    materialization: MaterializationConfig = field(default_factory=MaterializationConfig)
    dependencies: list[str] = field(default_factory=list)
    metadata: dict[str, ConfigValue] = field(default_factory=dict)
    # Raw template body, kept so the engine can re-render with is_incremental()
    template_content: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ModelError("model ID cannot be empty")
        if not str(self.path):
            raise ModelError("model path cannot be empty")
        deps = self.dependencies
        self.dependencies = []
        for dep in deps:
            self.add_dependency(dep)

    def set_compiled_sql(self, sql: str) -> None:
        self.compiled_sql = sql

    def set_materialization_config(self, config: MaterializationConfig) -> None:
        self.materialization = config

    def set_template_content(self, content: str) -> None:
        self.template_content = content

    def add_dependency(self, dep_id: str) -> None:
        """Add a dependency. Re-adding an existing one is a no-op."""
        if dep_id not in self.dependencies:
            self.dependencies.append(dep_id)

    def set_metadata(self, key: str, value: ConfigValue) -> None:
        self.metadata[key] = value

    @property
    def is_incremental(self) -> bool:
        return self.materialization.type == MaterializationType.INCREMENTAL


@dataclass
class ModelResult:
    """Outcome of executing a single model."""

    model_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    error: str = ""
    sql: list[str] = field(default_factory=list)  # statements actually executed, in order
    rows_affected: int | None = None

    @property
    def duration(self) -> float:
        """Seconds between start and end (0 while still running)."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def finish(self, status: ExecutionStatus, error: str = "") -> ModelResult:
        self.status = status
        self.error = error
        self.end_time = datetime.now()
        return self


@dataclass
class ExecutionResult:
    """Aggregate outcome of a batch run."""

    status: ExecutionStatus = ExecutionStatus.RUNNING
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    model_results: list[ModelResult] = field(default_factory=list)

    def add_model_result(self, result: ModelResult) -> None:
        self.model_results.append(result)

    def complete(self) -> None:
        """Stamp the end time and derive the overall status."""
        self.end_time = datetime.now()
        if self.failure_count:
            self.status = ExecutionStatus.FAILED
        else:
            self.status = ExecutionStatus.SUCCESS

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.model_results if r.status == ExecutionStatus.SUCCESS)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.model_results if r.status == ExecutionStatus.FAILED)

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def get(self, model_id: str) -> ModelResult | None:
        for result in self.model_results:
            if result.model_id == model_id:
                return result
        return None
