"""Tests for project configuration."""

import pytest

from dagsql.config import find_project_dir, load_env, load_project
from dagsql.errors import ConfigError


def test_load_missing_config(tmp_path):
    """Loading from a dir without project.yml returns defaults."""
    config = load_project(tmp_path)
    assert config.name == tmp_path.name
    assert config.database.path == "warehouse.duckdb"
    assert config.model_paths == ["models"]
    assert config.seed_paths == ["seeds"]
    assert config.schema_name == ""
    assert config.vars == {}


def test_load_config(tmp_path):
    (tmp_path / "project.yml").write_text(
        """
name: analytics
version: "2.1"
schema: mart

database:
  path: my.duckdb

model-paths: [models, more_models]
seed-paths: [data]
seed-schema: ref

vars:
  start_date: "2024-01-01"
  limit: 10

config:
  warehouse:
    region: eu

sources:
  raw:
    orders: landing.orders

ignored_key: true
"""
    )

    config = load_project(tmp_path)
    assert config.name == "analytics"
    assert config.version == "2.1"
    assert config.schema_name == "mart"
    assert config.database.path == "my.duckdb"
    assert config.database_path == str(tmp_path / "my.duckdb")
    assert config.model_dirs == [tmp_path / "models", tmp_path / "more_models"]
    assert config.seed_dirs == [tmp_path / "data"]
    assert config.effective_seed_schema == "ref"
    assert config.vars == {"start_date": "2024-01-01", "limit": 10}
    assert config.config_values == {"warehouse": {"region": "eu"}}
    assert config.sources == {"raw": {"orders": "landing.orders"}}


def test_seed_schema_defaults_to_project_schema(tmp_path):
    (tmp_path / "project.yml").write_text("schema: mart\n")
    assert load_project(tmp_path).effective_seed_schema == "mart"


def test_render_context(tmp_path):
    (tmp_path / "project.yml").write_text(
        "schema: mart\nvars: {a: 1}\nconfig: {b: {c: 2}}\nsources: {raw: {t: landing.t}}\n"
    )
    ctx = load_project(tmp_path).render_context({"countries": "ref.countries"})
    assert ctx.schema == "mart"
    assert ctx.vars == {"a": 1}
    assert ctx.config == {"b": {"c": 2}}
    assert ctx.sources == {"raw": {"t": "landing.t"}}
    assert ctx.seeds == {"countries": "ref.countries"}
    assert ctx.current_model == ""


def test_memory_database_path(tmp_path):
    (tmp_path / "project.yml").write_text("database:\n  path: ':memory:'\n")
    assert load_project(tmp_path).database_path == ":memory:"


def test_env_var_expansion(tmp_path, monkeypatch):
    monkeypatch.setenv("DAGSQL_TEST_DB", "from_env.duckdb")
    monkeypatch.delenv("DAGSQL_TEST_SCHEMA", raising=False)
    (tmp_path / "project.yml").write_text(
        "schema: ${DAGSQL_TEST_SCHEMA:staging}\n"
        "database:\n  path: ${DAGSQL_TEST_DB}\n"
        "vars:\n  untouched: ${DAGSQL_TEST_UNSET_VAR}\n"
    )
    config = load_project(tmp_path)
    assert config.database.path == "from_env.duckdb"
    assert config.schema_name == "staging"
    assert config.vars["untouched"] == "${DAGSQL_TEST_UNSET_VAR}"


def test_dotenv_loaded_before_expansion(tmp_path, monkeypatch):
    monkeypatch.delenv("DAGSQL_TEST_SECRET", raising=False)
    (tmp_path / ".env").write_text('# secrets\nDAGSQL_TEST_SECRET="s3cret"\n')
    (tmp_path / "project.yml").write_text("vars:\n  token: ${DAGSQL_TEST_SECRET}\n")
    config = load_project(tmp_path)
    assert config.vars["token"] == "s3cret"
    monkeypatch.delenv("DAGSQL_TEST_SECRET", raising=False)


def test_load_env(tmp_path, monkeypatch):
    monkeypatch.delenv("DAGSQL_A", raising=False)
    monkeypatch.delenv("DAGSQL_B", raising=False)
    (tmp_path / ".env").write_text("DAGSQL_A=1\n\nnot a pair\nDAGSQL_B='two'\n")
    assert load_env(tmp_path) == {"DAGSQL_A": "1", "DAGSQL_B": "two"}
    monkeypatch.delenv("DAGSQL_A", raising=False)
    monkeypatch.delenv("DAGSQL_B", raising=False)


def test_invalid_yaml(tmp_path):
    (tmp_path / "project.yml").write_text("name: [unclosed\n")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_project(tmp_path)


def test_non_mapping(tmp_path):
    (tmp_path / "project.yml").write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="must contain a mapping"):
        load_project(tmp_path)


def test_invalid_values(tmp_path):
    (tmp_path / "project.yml").write_text("model-paths: {not: a list}\n")
    with pytest.raises(ConfigError, match="invalid configuration"):
        load_project(tmp_path)


def test_invalid_schema(tmp_path):
    (tmp_path / "project.yml").write_text("schema: 'bad schema'\n")
    with pytest.raises(ConfigError, match="Invalid schema"):
        load_project(tmp_path)


def test_find_project_dir(tmp_path):
    (tmp_path / "project.yml").write_text("name: x\n")
    nested = tmp_path / "models" / "marts"
    nested.mkdir(parents=True)
    assert find_project_dir(nested) == tmp_path.resolve()


TARGETS_YML = """
schema: mart
database:
  path: dev.duckdb
vars:
  limit: 10
  region: eu
targets:
  dev:
    vars:
      limit: 5
  prod:
    schema: analytics
    database:
      path: prod.duckdb
    vars:
      limit: 1000
"""


def test_dev_target_is_default(tmp_path):
    (tmp_path / "project.yml").write_text(TARGETS_YML)
    config = load_project(tmp_path)
    assert config.active_target == "dev"
    assert config.database.path == "dev.duckdb"
    assert config.schema_name == "mart"
    assert config.vars == {"limit": 5, "region": "eu"}


def test_target_overrides(tmp_path):
    (tmp_path / "project.yml").write_text(TARGETS_YML)
    config = load_project(tmp_path, target="prod")
    assert config.active_target == "prod"
    assert config.database_path == str(tmp_path / "prod.duckdb")
    assert config.schema_name == "analytics"
    assert config.vars == {"limit": 1000, "region": "eu"}


def test_no_targets_means_no_active_target(tmp_path):
    (tmp_path / "project.yml").write_text("name: x\n")
    assert load_project(tmp_path).active_target is None


def test_unknown_target(tmp_path):
    (tmp_path / "project.yml").write_text(TARGETS_YML)
    with pytest.raises(ConfigError, match="unknown target 'staging'.*dev, prod"):
        load_project(tmp_path, target="staging")


def test_target_schema_validated(tmp_path):
    (tmp_path / "project.yml").write_text("targets:\n  dev:\n    schema: 'bad schema'\n")
    with pytest.raises(ConfigError, match="Invalid schema"):
        load_project(tmp_path)
