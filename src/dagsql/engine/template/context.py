"""Render context: the state template functions read from."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence, Union

# Values allowed in vars/config/metadata mappings. Nested mappings make dot-path
# lookups in config() possible.
ConfigValue = Union[
    str,
    int,
    float,
    bool,
    None,
    Mapping[str, "ConfigValue"],
    Sequence["ConfigValue"],
]


@dataclass
class RenderContext:
    """Data passed to template functions for a single render.

    Build a fresh context per render call. ``current_model_table`` is the
    unqualified table name of the model being rendered; ``this()`` adds the
    schema prefix.
    """

    current_model: str = ""
    schema: str = ""
    is_incremental: bool = False
    current_model_table: str = ""
    vars: dict[str, ConfigValue] = field(default_factory=dict)
    config: dict[str, ConfigValue] = field(default_factory=dict)
    # sources[source_name][table_name] = qualified name
    sources: dict[str, dict[str, str]] = field(default_factory=dict)
    # seeds[seed_name] = qualified name
    seeds: dict[str, str] = field(default_factory=dict)

    def for_model(self, model_id: str, is_incremental: bool = False) -> RenderContext:
        """Copy of this context pointed at ``model_id``."""
        return RenderContext(
            current_model=model_id,
            schema=self.schema,
            is_incremental=is_incremental,
            current_model_table=model_id,
            vars=self.vars,
            config=self.config,
            sources=self.sources,
            seeds=self.seeds,
        )
