"""SQL template rendering.

Templates are Jinja with a fixed function surface:
    ref, source, seed, var, config, env_var, is_incremental, this

    from dagsql.engine.template import RenderContext, TemplateEngine, render
"""

from __future__ import annotations

from .context import ConfigValue, RenderContext
from .functions import (
    FUNCTIONS,
    DependencyCollector,
    DependencyTracker,
    bind_functions,
    lookup_path,
)
from .renderer import Template, TemplateEngine, render

__all__ = [
    "ConfigValue",
    "DependencyCollector",
    "DependencyTracker",
    "FUNCTIONS",
    "RenderContext",
    "Template",
    "TemplateEngine",
    "bind_functions",
    "lookup_path",
    "render",
]
