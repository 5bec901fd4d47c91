"""Materialization strategies: turn a compiled SELECT into ordered DDL/DML.

Strategies:
    view: DROP VIEW IF EXISTS + CREATE VIEW
    table: DROP TABLE IF EXISTS + CREATE TABLE AS
    incremental: delete+insert merge through a temp table, keyed on unique_key.
        full_refresh=True rebuilds like a table.

Strategies only generate SQL; executing it is the execution engine's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from dagsql.engine.utils import split_qualified
from dagsql.errors import MaterializationError

TEMP_SUFFIX = "__tmp"


class MaterializationType(str, Enum):
    VIEW = "view"
    TABLE = "table"
    INCREMENTAL = "incremental"


@dataclass
class MaterializationConfig:
    """How a model is persisted."""

    type: MaterializationType | str = MaterializationType.TABLE
    unique_key: list[str] = field(default_factory=list)  # required for incremental
    full_refresh: bool = False
    pre_hooks: list[str] = field(default_factory=list)
    post_hooks: list[str] = field(default_factory=list)

    @property
    def is_incremental_run(self) -> bool:
        """True for incremental models that are not being rebuilt from scratch."""
        return self.type == MaterializationType.INCREMENTAL and not self.full_refresh

    @property
    def type_name(self) -> str:
        return _type_value(self.type) or MaterializationType.TABLE.value


def default_config() -> MaterializationConfig:
    return MaterializationConfig()


def _validate(model_name: str, compiled_sql: str) -> None:
    if not model_name.strip():
        raise MaterializationError("model name cannot be empty")
    if not compiled_sql.strip():
        raise MaterializationError("compiled SQL cannot be empty")


class Strategy:
    """Base class for materialization strategies."""

    name = ""

    def materialize(
        self,
        model_name: str,
        compiled_sql: str,
        config: MaterializationConfig,
    ) -> list[str]:
        """Return the SQL statements that persist ``compiled_sql`` as ``model_name``.

        Raises:
            MaterializationError: On blank inputs or an invalid config
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ViewStrategy(Strategy):
    name = "view"

    def materialize(self, model_name, compiled_sql, config):
        _validate(model_name, compiled_sql)
        return [
            f"DROP VIEW IF EXISTS {model_name}",
            f"CREATE VIEW {model_name} AS {compiled_sql}",
        ]


class TableStrategy(Strategy):
    name = "table"

    def materialize(self, model_name, compiled_sql, config):
        _validate(model_name, compiled_sql)
        return _drop_and_create(model_name, compiled_sql)


class IncrementalStrategy(Strategy):
    """Upsert by replacement: rows whose keys match incoming rows are deleted,
    then every incoming row is inserted. The compiled query must produce the
    complete row for new and changed keys alike.
    """

    name = "incremental"

    def materialize(self, model_name, compiled_sql, config):
        _validate(model_name, compiled_sql)
        if not config.unique_key:
            raise MaterializationError("unique key is required for incremental materialization")
        if config.full_refresh:
            return _drop_and_create(model_name, compiled_sql)
        return self._merge(model_name, compiled_sql, config.unique_key)

    def _merge(self, model_name: str, compiled_sql: str, unique_key: list[str]) -> list[str]:
        # Temp tables can't carry a schema prefix on every backend
        _, table = split_qualified(model_name)
        temp_name = f"{table}{TEMP_SUFFIX}"
        match = " AND ".join(
            f"{model_name}.{key} = {temp_name}.{key}" for key in unique_key
        )
        return [
            f"CREATE OR REPLACE TEMP TABLE {temp_name} AS {compiled_sql}",
            f"CREATE TABLE IF NOT EXISTS {model_name} AS SELECT * FROM {temp_name} WHERE 1=0",
            f"DELETE FROM {model_name} WHERE EXISTS (SELECT 1 FROM {temp_name} WHERE {match})",
            f"INSERT INTO {model_name} SELECT * FROM {temp_name}",
            f"DROP TABLE {temp_name}",
        ]


def _drop_and_create(model_name: str, compiled_sql: str) -> list[str]:
    return [
        f"DROP TABLE IF EXISTS {model_name}",
        f"CREATE TABLE {model_name} AS {compiled_sql}",
    ]


_STRATEGIES: dict[str, type[Strategy]] = {
    MaterializationType.VIEW.value: ViewStrategy,
    MaterializationType.TABLE.value: TableStrategy,
    MaterializationType.INCREMENTAL.value: IncrementalStrategy,
}


def _type_value(mat_type: MaterializationType | str | None) -> str:
    if isinstance(mat_type, MaterializationType):
        return mat_type.value
    return mat_type or ""


def get_strategy(mat_type: MaterializationType | str) -> Strategy:
    """Map a materialization tag to its strategy. Empty or unknown tags fail."""
    try:
        return _STRATEGIES[_type_value(mat_type)]()
    except KeyError:
        raise MaterializationError(f"unknown materialization type: {_type_value(mat_type)!r}") from None


def get_strategy_from_config(config: MaterializationConfig) -> Strategy:
    """Like get_strategy, but an unset type means table."""
    return get_strategy(_type_value(config.type) or MaterializationType.TABLE)


def parse_materialization_type(value: str) -> MaterializationType:
    """Parse a tag such as ``"Incremental"`` from a config header."""
    try:
        return MaterializationType(value.strip().lower())
    except ValueError:
        raise MaterializationError(f"unknown materialization type: {value!r}") from None
