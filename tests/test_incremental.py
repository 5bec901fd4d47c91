"""Tests for incremental models against a real DuckDB database."""

from __future__ import annotations

import textwrap

import pytest

from dagsql.engine.database import DuckDBAdapter, ensure_schemas
from dagsql.engine.executor import ExecutionEngine, ExecutionStatus, Model
from dagsql.engine.materialization import MaterializationConfig, MaterializationType
from dagsql.engine.template import TemplateEngine

ORDERS_TEMPLATE = textwrap.dedent("""\
    SELECT id, amount, updated_at FROM raw_orders
    {% if is_incremental() %}
    WHERE updated_at > (SELECT MAX(updated_at) FROM {{ this() }})
    {% endif %}
""")


@pytest.fixture
def adapter(tmp_path):
    a = DuckDBAdapter(tmp_path / "test.duckdb")
    a.connect()
    a.execute_ddl("CREATE TABLE raw_orders (id INTEGER, amount INTEGER, updated_at INTEGER)")
    a.execute_ddl("INSERT INTO raw_orders VALUES (1, 100, 1), (2, 200, 1)")
    yield a
    a.close()


def _orders_model(unique_key=("id",), full_refresh=False) -> Model:
    model = Model(id="orders", path="models/orders.sql")
    model.set_materialization_config(MaterializationConfig(
        type=MaterializationType.INCREMENTAL,
        unique_key=list(unique_key),
        full_refresh=full_refresh,
    ))
    model.set_template_content(ORDERS_TEMPLATE)
    return model


def _rows(adapter, table="orders"):
    return adapter.execute_query(f"SELECT id, amount FROM {table} ORDER BY id").rows


class TestIncrementalMerge:
    def test_first_run_creates_table(self, adapter):
        engine = ExecutionEngine(adapter, TemplateEngine())
        result = engine.execute_model(_orders_model())
        assert result.status == ExecutionStatus.SUCCESS, result.error
        assert len(result.sql) == 5
        assert _rows(adapter) == [(1, 100), (2, 200)]
        assert not adapter.table_exists("orders__tmp")

    def test_upsert_replaces_matching_rows(self, adapter):
        engine = ExecutionEngine(adapter, TemplateEngine())
        engine.execute_model(_orders_model())

        adapter.execute_ddl("UPDATE raw_orders SET amount = 150, updated_at = 2 WHERE id = 1")
        adapter.execute_ddl("INSERT INTO raw_orders VALUES (3, 300, 2)")

        model = _orders_model()
        result = engine.execute_model(model)
        assert result.status == ExecutionStatus.SUCCESS, result.error
        assert "WHERE updated_at >" in model.compiled_sql
        assert _rows(adapter) == [(1, 150), (2, 200), (3, 300)]

    def test_rerun_without_changes_keeps_rows(self, adapter):
        engine = ExecutionEngine(adapter, TemplateEngine())
        engine.execute_model(_orders_model())
        engine.execute_model(_orders_model())
        assert _rows(adapter) == [(1, 100), (2, 200)]

    def test_full_refresh_rebuilds(self, adapter):
        engine = ExecutionEngine(adapter, TemplateEngine())
        engine.execute_model(_orders_model())

        adapter.execute_ddl("DELETE FROM raw_orders WHERE id = 2")
        result = engine.execute_model(_orders_model(full_refresh=True))
        assert result.status == ExecutionStatus.SUCCESS, result.error
        assert result.sql[0] == "DROP TABLE IF EXISTS orders"
        assert _rows(adapter) == [(1, 100)]

    def test_schema_qualified_target(self, adapter):
        ensure_schemas(adapter, ["mart"])
        engine = ExecutionEngine(adapter, TemplateEngine(), schema="mart")
        engine.execute_model(_orders_model())

        adapter.execute_ddl("UPDATE raw_orders SET amount = 250, updated_at = 2 WHERE id = 2")
        result = engine.execute_model(_orders_model())
        assert result.status == ExecutionStatus.SUCCESS, result.error
        assert _rows(adapter, "mart.orders") == [(1, 100), (2, 250)]

    def test_failed_merge_does_not_block_next_run(self, adapter):
        def model(sql):
            m = Model(id="inc", path="models/inc.sql", compiled_sql=sql)
            m.set_materialization_config(MaterializationConfig(
                type=MaterializationType.INCREMENTAL, unique_key=["id"],
            ))
            return m

        engine = ExecutionEngine(adapter)
        assert engine.execute_model(model("SELECT id, amount FROM raw_orders")).status == ExecutionStatus.SUCCESS

        # Extra column: the insert fails after the temp table was created
        failed = engine.execute_model(model("SELECT id, amount, updated_at FROM raw_orders"))
        assert failed.status == ExecutionStatus.FAILED

        result = engine.execute_model(model("SELECT id, amount * 2 AS amount FROM raw_orders"))
        assert result.status == ExecutionStatus.SUCCESS, result.error
        assert _rows(adapter, "inc") == [(1, 200), (2, 400)]

    def test_composite_key(self, adapter):
        adapter.execute_ddl("CREATE TABLE raw_events (tenant INTEGER, id INTEGER, v VARCHAR)")
        adapter.execute_ddl("INSERT INTO raw_events VALUES (1, 1, 'a'), (2, 1, 'b')")
        model = Model(id="events", path="models/events.sql", compiled_sql="SELECT * FROM raw_events")
        model.set_materialization_config(MaterializationConfig(
            type=MaterializationType.INCREMENTAL, unique_key=["tenant", "id"],
        ))
        engine = ExecutionEngine(adapter)
        engine.execute_model(model)

        adapter.execute_ddl("DELETE FROM raw_events")
        adapter.execute_ddl("INSERT INTO raw_events VALUES (2, 1, 'B')")
        result = engine.execute_model(model)
        assert result.status == ExecutionStatus.SUCCESS, result.error
        rows = adapter.execute_query("SELECT tenant, id, v FROM events ORDER BY tenant").rows
        assert rows == [(1, 1, "a"), (2, 1, "B")]


class TestEndToEnd:
    def test_chain_with_views_and_tables(self, adapter):
        staged = Model(id="stg_orders", path="models/stg_orders.sql",
                       compiled_sql="SELECT id, amount FROM raw_orders")
        staged.set_materialization_config(MaterializationConfig(type=MaterializationType.VIEW))
        totals = Model(id="totals", path="models/totals.sql",
                       compiled_sql="SELECT SUM(amount) AS total FROM stg_orders",
                       dependencies=["stg_orders"])
        setup = Model(id="audit", path="models/audit.sql",
                      compiled_sql="CREATE TABLE IF NOT EXISTS audit AS SELECT * FROM totals",
                      dependencies=["totals"])

        result = ExecutionEngine(adapter).execute_models([setup, totals, staged])
        assert result.status == ExecutionStatus.SUCCESS
        assert [r.model_id for r in result.model_results] == ["stg_orders", "totals", "audit"]
        assert adapter.execute_query("SELECT total FROM audit").rows == [(300,)]
