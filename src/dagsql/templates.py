"""Scaffold templates for `dagsql init`."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# project.yml
# ---------------------------------------------------------------------------

PROJECT_YML_TEMPLATE = """\
name: {name}
version: "1.0"

database:
  path: warehouse.duckdb

model-paths: [models]
seed-paths: [seeds]

vars:
  start_date: "2024-01-01"

targets:
  dev:
    database:
      path: warehouse.duckdb
  prod:
    database:
      path: ${{DAGSQL_PROD_DB:{name}_prod.duckdb}}
"""

GITIGNORE = "*.duckdb\n*.duckdb.wal\n__pycache__/\n.env\ncompiled/\n"

ENV_TEMPLATE = """\
# Loaded into the environment before project.yml is read.
# Reference values as ${VAR} or ${VAR:default}.
# DAGSQL_PROD_DB=/data/prod.duckdb
"""

# ---------------------------------------------------------------------------
# Sample project: orders seed -> staging view -> incremental mart -> report
# ---------------------------------------------------------------------------

SAMPLE_SEED_CSV = """\
id,customer,amount,ordered_at
1,alice,120.00,2024-01-03
2,bob,35.50,2024-01-04
3,alice,80.25,2024-01-09
4,carol,210.00,2024-01-12
"""

SAMPLE_STAGING_SQL = """\
-- config: materialized=view
SELECT
    id,
    lower(customer) AS customer,
    amount,
    CAST(ordered_at AS DATE) AS ordered_at
FROM {{ seed('raw_orders') }}
WHERE ordered_at >= '{{ var('start_date') }}'
"""

SAMPLE_INCREMENTAL_SQL = """\
-- config: materialized=incremental, unique_key=id
SELECT id, customer, amount, ordered_at
FROM {{ ref('stg_orders') }}
{% if is_incremental() %}
WHERE ordered_at >= (SELECT MAX(ordered_at) FROM {{ this() }})
{% endif %}
"""

SAMPLE_REPORT_SQL = """\
SELECT
    customer,
    COUNT(*) AS orders,
    SUM(amount) AS revenue
FROM {{ ref('orders') }}
GROUP BY customer
"""

SAMPLE_FILES = {
    "seeds/raw_orders.csv": SAMPLE_SEED_CSV,
    "models/staging/stg_orders.sql": SAMPLE_STAGING_SQL,
    "models/marts/orders.sql": SAMPLE_INCREMENTAL_SQL,
    "models/marts/customer_revenue.sql": SAMPLE_REPORT_SQL,
}
