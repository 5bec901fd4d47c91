"""SQL header parsing and statement classification.

Model files carry their settings in leading line comments:

    -- config: materialized=incremental, unique_key=tenant_id, user_id
    -- pre_hook: SET threads = 4
    -- post_hook: ANALYZE

Statement classification uses the sqlglot tokenizer so that comments and
string literals never confuse keyword detection.
"""

from __future__ import annotations

import logging
import re

import sqlglot
from sqlglot.errors import TokenError
from sqlglot.tokens import TokenType

logger = logging.getLogger("dagsql.sql_analysis")

# Regex is appropriate here: these are line comments, not SQL
CONFIG_PATTERN = re.compile(r"^--\s*config:\s*(.+)$", re.MULTILINE)
PRE_HOOK_PATTERN = re.compile(r"^--\s*pre_hook:\s*(.+)$", re.MULTILINE)
POST_HOOK_PATTERN = re.compile(r"^--\s*post_hook:\s*(.+)$", re.MULTILINE)

_META_PREFIXES = ("-- config:", "-- pre_hook:", "-- post_hook:")

# Leading keywords that mark hand-written DDL/DML
RAW_DDL_KEYWORDS = frozenset({"CREATE", "INSERT", "UPDATE", "DELETE", "DROP", "ALTER"})

_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)


def parse_config(sql: str) -> dict[str, str]:
    """Parse ``-- config: key=value, key=value`` from SQL header.

    A segment without ``=`` continues the previous value, so
    ``unique_key=a, b`` yields ``{"unique_key": "a, b"}``.
    """
    match = CONFIG_PATTERN.search(sql)
    if not match:
        return {}
    config: dict[str, str] = {}
    last_key = None
    for pair in match.group(1).split(","):
        pair = pair.strip()
        if not pair:
            continue
        if "=" in pair:
            key, value = pair.split("=", 1)
            last_key = key.strip()
            config[last_key] = value.strip()
        elif last_key is not None:
            config[last_key] = f"{config[last_key]}, {pair}" if config[last_key] else pair
    return config


def parse_hooks(sql: str) -> tuple[list[str], list[str]]:
    """Parse ``-- pre_hook:`` and ``-- post_hook:`` lines, in file order."""
    pre = [m.group(1).strip() for m in PRE_HOOK_PATTERN.finditer(sql)]
    post = [m.group(1).strip() for m in POST_HOOK_PATTERN.finditer(sql)]
    return pre, post


def strip_config_comments(sql: str) -> str:
    """Remove config/hook comment lines, return the query."""
    lines = sql.split("\n")
    query_lines = []
    for line in lines:
        stripped = line.strip()
        if stripped.startswith(_META_PREFIXES):
            continue
        query_lines.append(line)
    return "\n".join(query_lines).strip()


def leading_keyword(sql: str) -> str:
    """Return the first keyword of ``sql`` in upper case, skipping comments.

    Returns '' for empty input.
    """
    try:
        tokens = sqlglot.tokenize(sql, read="duckdb")
    except TokenError:
        logger.debug("Tokenizer failed, falling back to regex comment stripping")
        return _fallback_leading_keyword(sql)
    for token in tokens:
        if token.token_type == TokenType.SEMICOLON:
            continue
        return token.text.upper()
    return ""


def _fallback_leading_keyword(sql: str) -> str:
    text = _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", sql)).strip()
    match = re.match(r"[A-Za-z_]+", text)
    return match.group(0).upper() if match else ""


def is_raw_ddl(sql: str) -> bool:
    """True if ``sql`` starts with CREATE, INSERT, UPDATE, DELETE, DROP or ALTER."""
    return leading_keyword(sql) in RAW_DDL_KEYWORDS


def split_statements(sql: str) -> list[str]:
    """Split on semicolons, dropping blank pieces.

    Semicolons inside string literals are not special-cased.
    """
    return [stmt.strip() for stmt in sql.split(";") if stmt.strip()]
