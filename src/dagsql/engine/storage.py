"""Storage adapter interface consumed by the execution engine.

Any backing store that implements StorageAdapter can run models. The engine
never pools connections or scopes transactions itself; adapters own that.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class QueryResult:
    """Rows and column names returned by a query."""

    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    rows_affected: int = 0


@dataclass
class Column:
    name: str
    type: str
    nullable: bool = True
    primary_key: bool = False


@dataclass
class TableSchema:
    table_name: str
    columns: list[Column] = field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


class Transaction(ABC):
    """A unit of work opened by StorageAdapter.begin_transaction()."""

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def exec(self, sql: str, *args: Any) -> None: ...

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


class StorageAdapter(ABC):
    """Capability interface for a SQL backing store."""

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def execute_query(self, sql: str, *args: Any) -> QueryResult: ...

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute a statement that returns no rows (DDL or DML)."""

    @abstractmethod
    def table_exists(self, table: str) -> bool: ...

    @abstractmethod
    def get_table_schema(self, table: str) -> TableSchema: ...

    @abstractmethod
    def create_table_as(self, table: str, select_sql: str) -> None: ...

    @abstractmethod
    def create_view(self, view: str, select_sql: str) -> None: ...

    @abstractmethod
    def begin_transaction(self) -> Transaction: ...

    def __enter__(self) -> StorageAdapter:
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
