"""Shared utility functions for the dagsql engine layer."""

from __future__ import annotations

import re

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(value: str, label: str = "identifier") -> str:
    """Validate that a value is a safe SQL identifier.

    Only allows alphanumeric characters and underscores, starting with a letter
    or underscore. Raises ValueError if the identifier is unsafe.

    Model ids, seed names and schemas are all checked here at discovery time
    because they end up interpolated into DDL.
    """
    if not _IDENTIFIER_RE.match(value):
        raise ValueError(f"Invalid {label}: {value!r} (must match [A-Za-z_][A-Za-z0-9_]*)")
    return value


def qualify(schema: str, name: str) -> str:
    """Prefix ``name`` with ``schema`` when a schema is set."""
    if schema:
        return f"{schema}.{name}"
    return name


def split_qualified(name: str) -> tuple[str, str]:
    """Split ``schema.table`` into its parts. The schema is '' when absent."""
    schema, _, table = name.rpartition(".")
    return schema, table
