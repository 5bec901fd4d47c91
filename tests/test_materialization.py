"""Tests for materialization strategies."""

from __future__ import annotations

import pytest

from dagsql.engine.materialization import (
    IncrementalStrategy,
    MaterializationConfig,
    MaterializationType,
    TableStrategy,
    ViewStrategy,
    default_config,
    get_strategy,
    get_strategy_from_config,
    parse_materialization_type,
)
from dagsql.errors import MaterializationError

SELECT = "SELECT id, amount FROM raw_orders"


class TestView:
    def test_two_statements(self):
        stmts = ViewStrategy().materialize("orders", SELECT, default_config())
        assert stmts == [
            "DROP VIEW IF EXISTS orders",
            f"CREATE VIEW orders AS {SELECT}",
        ]

    @pytest.mark.parametrize("name,sql", [("", SELECT), ("   ", SELECT), ("orders", ""), ("orders", " \n\t")])
    def test_blank_inputs(self, name, sql):
        with pytest.raises(MaterializationError):
            ViewStrategy().materialize(name, sql, default_config())


class TestTable:
    def test_two_statements(self):
        stmts = TableStrategy().materialize("mart.orders", SELECT, default_config())
        assert stmts == [
            "DROP TABLE IF EXISTS mart.orders",
            f"CREATE TABLE mart.orders AS {SELECT}",
        ]

    def test_blank_sql(self):
        with pytest.raises(MaterializationError, match="compiled SQL cannot be empty"):
            TableStrategy().materialize("orders", "  ", default_config())


class TestIncremental:
    def _config(self, **kwargs) -> MaterializationConfig:
        kwargs.setdefault("unique_key", ["id"])
        return MaterializationConfig(type=MaterializationType.INCREMENTAL, **kwargs)

    def test_five_statement_merge(self):
        stmts = IncrementalStrategy().materialize("orders", SELECT, self._config())
        assert stmts == [
            f"CREATE OR REPLACE TEMP TABLE orders__tmp AS {SELECT}",
            "CREATE TABLE IF NOT EXISTS orders AS SELECT * FROM orders__tmp WHERE 1=0",
            "DELETE FROM orders WHERE EXISTS (SELECT 1 FROM orders__tmp WHERE orders.id = orders__tmp.id)",
            "INSERT INTO orders SELECT * FROM orders__tmp",
            "DROP TABLE orders__tmp",
        ]

    def test_composite_key_is_and_combined(self):
        stmts = IncrementalStrategy().materialize(
            "events", SELECT, self._config(unique_key=["tenant_id", "event_id"])
        )
        assert (
            "WHERE events.tenant_id = events__tmp.tenant_id "
            "AND events.event_id = events__tmp.event_id)"
        ) in stmts[2]

    def test_qualified_target_uses_unqualified_temp_name(self):
        stmts = IncrementalStrategy().materialize("mart.orders", SELECT, self._config())
        assert stmts[0] == f"CREATE OR REPLACE TEMP TABLE orders__tmp AS {SELECT}"
        assert stmts[1].startswith("CREATE TABLE IF NOT EXISTS mart.orders AS")
        assert "mart.orders.id = orders__tmp.id" in stmts[2]

    def test_full_refresh_matches_table(self):
        stmts = IncrementalStrategy().materialize("orders", SELECT, self._config(full_refresh=True))
        assert stmts == TableStrategy().materialize("orders", SELECT, default_config())

    def test_requires_unique_key(self):
        with pytest.raises(MaterializationError, match="unique key is required"):
            IncrementalStrategy().materialize("orders", SELECT, self._config(unique_key=[]))

    def test_missing_key_fails_even_with_full_refresh(self):
        with pytest.raises(MaterializationError):
            IncrementalStrategy().materialize(
                "orders", SELECT, self._config(unique_key=[], full_refresh=True)
            )

    def test_blank_name(self):
        with pytest.raises(MaterializationError, match="model name cannot be empty"):
            IncrementalStrategy().materialize("  ", SELECT, self._config())

    def test_blank_sql(self):
        with pytest.raises(MaterializationError, match="compiled SQL cannot be empty"):
            IncrementalStrategy().materialize("orders", "\n", self._config())


class TestConfig:
    def test_defaults_to_table(self):
        config = default_config()
        assert config.type == MaterializationType.TABLE
        assert config.unique_key == []
        assert config.full_refresh is False
        assert config.pre_hooks == [] and config.post_hooks == []

    @pytest.mark.parametrize("mat_type,full_refresh,expected", [
        (MaterializationType.INCREMENTAL, False, True),
        (MaterializationType.INCREMENTAL, True, False),
        (MaterializationType.TABLE, False, False),
        (MaterializationType.VIEW, False, False),
    ])
    def test_is_incremental_run(self, mat_type, full_refresh, expected):
        config = MaterializationConfig(type=mat_type, unique_key=["id"], full_refresh=full_refresh)
        assert config.is_incremental_run is expected


class TestStrategySelection:
    @pytest.mark.parametrize("tag,cls", [
        ("view", ViewStrategy),
        ("table", TableStrategy),
        ("incremental", IncrementalStrategy),
        (MaterializationType.INCREMENTAL, IncrementalStrategy),
    ])
    def test_known_tags(self, tag, cls):
        assert isinstance(get_strategy(tag), cls)

    @pytest.mark.parametrize("tag", ["", "snapshot", "TABLE"])
    def test_unknown_tags(self, tag):
        with pytest.raises(MaterializationError, match="unknown materialization type"):
            get_strategy(tag)

    def test_from_config_defaults_empty_to_table(self):
        assert isinstance(get_strategy_from_config(MaterializationConfig(type="")), TableStrategy)

    def test_from_config_unknown(self):
        with pytest.raises(MaterializationError):
            get_strategy_from_config(MaterializationConfig(type="ephemeral"))

    def test_parse_type(self):
        assert parse_materialization_type(" Incremental ") == MaterializationType.INCREMENTAL
        with pytest.raises(MaterializationError):
            parse_materialization_type("ephemeral")
