"""Jinja-backed template engine for SQL models."""

from __future__ import annotations

from typing import Any, Mapping

import jinja2
from jinja2 import Environment, StrictUndefined

from dagsql.errors import RenderError, TemplateSyntaxError

from .context import RenderContext
from .functions import DependencyTracker, bind_functions


class Template:
    """A parsed template, reusable across renders with different contexts."""

    def __init__(self, name: str, compiled: jinja2.Template, engine: TemplateEngine):
        self.name = name
        self._compiled = compiled
        self.engine = engine

    def __repr__(self) -> str:
        return f"Template({self.name!r})"


class TemplateEngine:
    """Parses SQL templates and exposes the dagsql function surface to them."""

    def __init__(
        self,
        tracker: DependencyTracker | None = None,
        delimiters: tuple[str, str] = ("{{", "}}"),
        block_delimiters: tuple[str, str] = ("{%", "%}"),
    ):
        """Initialize the engine.

        Args:
            tracker: Receives an edge for every ref() made while rendering a
                context that has ``current_model`` set.
            delimiters: Open/close markers for expressions. Change these to
                render content that contains ``{{ }}`` literally.
            block_delimiters: Open/close markers for statements (if/for).
        """
        self.tracker = tracker
        self.delimiters = delimiters
        self.block_delimiters = block_delimiters

        self.env = Environment(
            variable_start_string=delimiters[0],
            variable_end_string=delimiters[1],
            block_start_string=block_delimiters[0],
            block_end_string=block_delimiters[1],
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

        # Placeholder bindings; render() passes functions bound to the real context
        self.env.globals.update(bind_functions(RenderContext()))

    def parse(self, name: str, content: str) -> Template:
        """Compile ``content`` into a reusable Template.

        Raises:
            TemplateSyntaxError: If the template body is malformed
        """
        try:
            compiled = self.env.from_string(content)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateSyntaxError(f"template {name!r} has invalid syntax (line {e.lineno}): {e.message}") from e
        return Template(name, compiled, self)


def render(
    template: Template,
    context: RenderContext | None = None,
    data: Mapping[str, Any] | None = None,
) -> str:
    """Render a parsed template.

    Args:
        template: Template returned by TemplateEngine.parse
        context: Context the template functions read from (blank if None)
        data: Extra values exposed to the template as variables. Referencing
            anything undefined is an error, never an empty substitution.

    Raises:
        RenderError: If a function lookup fails, an undefined name is used, or
            any expression in the template raises
    """
    if template is None:
        raise RenderError("no template to render")

    variables: dict[str, Any] = dict(data or {})
    variables.update(bind_functions(context, template.engine.tracker))

    try:
        return template._compiled.render(variables)
    except Exception as e:
        raise RenderError(f"template {template.name!r} execution failed: {e}") from e
