"""DuckDB connection management and storage adapter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import duckdb

from dagsql.engine.storage import (
    Column,
    QueryResult,
    StorageAdapter,
    TableSchema,
    Transaction,
)
from dagsql.engine.utils import split_qualified
from dagsql.errors import StorageError

logger = logging.getLogger("dagsql.database")


def connect(db_path: str | Path, read_only: bool = False) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection to the given path (":memory:" for in-memory)."""
    db_path = str(db_path)
    conn = duckdb.connect(db_path, read_only=read_only)
    # Progress bars would interleave with CLI output
    conn.execute("SET enable_progress_bar = false")
    return conn


def ensure_schemas(adapter: StorageAdapter, schemas: list[str]) -> None:
    """Create schemas if they don't exist."""
    for schema in schemas:
        if schema:
            adapter.execute_ddl(f"CREATE SCHEMA IF NOT EXISTS {schema}")


def _table_filter(table: str) -> tuple[str, list[Any]]:
    """information_schema filter for ``table`` in the current database.

    Unqualified names resolve in the current schema only.
    """
    schema, name = split_qualified(table)
    where = "table_name = ? AND table_catalog = current_database()"
    if schema:
        return f"{where} AND table_schema = ?", [name, schema]
    return f"{where} AND table_schema = current_schema()", [name]


class DuckDBTransaction(Transaction):
    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self._conn = conn

    def commit(self) -> None:
        try:
            self._conn.commit()
        except duckdb.Error as e:
            raise StorageError(f"failed to commit transaction: {e}") from e

    def rollback(self) -> None:
        try:
            self._conn.rollback()
        except duckdb.Error as e:
            raise StorageError(f"failed to roll back transaction: {e}") from e

    def exec(self, sql: str, *args: Any) -> None:
        try:
            self._conn.execute(sql, list(args) if args else None)
        except duckdb.Error as e:
            raise StorageError(f"failed to execute statement in transaction: {e}") from e


class DuckDBAdapter(StorageAdapter):
    """StorageAdapter backed by a DuckDB database file (or ":memory:")."""

    def __init__(self, db_path: str | Path = ":memory:", read_only: bool = False):
        self.db_path = str(db_path)
        self.read_only = read_only
        self._conn: duckdb.DuckDBPyConnection | None = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise StorageError("database is not connected")
        return self._conn

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = connect(self.db_path, read_only=self.read_only)
        except duckdb.Error as e:
            raise StorageError(f"failed to open database {self.db_path}: {e}") from e
        logger.debug("Connected to %s", self.db_path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def execute_query(self, sql: str, *args: Any) -> QueryResult:
        try:
            cursor = self.conn.execute(sql, list(args) if args else None)
            rows = cursor.fetchall()
        except duckdb.Error as e:
            raise StorageError(f"failed to execute query: {e}") from e
        columns = [d[0] for d in cursor.description or []]
        return QueryResult(columns=columns, rows=rows, rows_affected=len(rows))

    def execute_ddl(self, sql: str) -> None:
        logger.debug("Executing: %s", sql)
        try:
            self.conn.execute(sql)
        except duckdb.Error as e:
            raise StorageError(f"failed to execute DDL: {e}") from e

    def table_exists(self, table: str) -> bool:
        where, params = _table_filter(table)
        query = (
            "SELECT COUNT(*) FROM information_schema.tables "
            f"WHERE {where} AND table_type = 'BASE TABLE'"
        )
        try:
            row = self.conn.execute(query, params).fetchone()
        except duckdb.Error as e:
            raise StorageError(f"failed to check table existence: {e}") from e
        return bool(row and row[0] > 0)

    def get_table_schema(self, table: str) -> TableSchema:
        if not self.table_exists(table):
            raise StorageError(f"table {table!r} does not exist")
        where, params = _table_filter(table)
        query = (
            "SELECT column_name, data_type, is_nullable FROM information_schema.columns "
            f"WHERE {where} ORDER BY ordinal_position"
        )
        try:
            rows = self.conn.execute(query, params).fetchall()
        except duckdb.Error as e:
            raise StorageError(f"failed to get table schema: {e}") from e
        return TableSchema(
            table_name=table,
            columns=[
                Column(name=col, type=col_type, nullable=nullable == "YES")
                for col, col_type, nullable in rows
            ],
        )

    def create_table_as(self, table: str, select_sql: str) -> None:
        self.execute_ddl(f"CREATE TABLE {table} AS {select_sql}")

    def create_view(self, view: str, select_sql: str) -> None:
        self.execute_ddl(f"CREATE VIEW {view} AS {select_sql}")

    def begin_transaction(self) -> Transaction:
        try:
            self.conn.begin()
        except duckdb.Error as e:
            raise StorageError(f"failed to begin transaction: {e}") from e
        return DuckDBTransaction(self.conn)
