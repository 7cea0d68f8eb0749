"""View rendering through Jinja2.

Templates are looked up as ``<name>.html`` in ``Settings.views``. When a
layout is configured, full renders are wrapped in it and the inner page is
available to the layout as ``content``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from signpost.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

    from signpost.context import RequestContext

type Locals = Mapping[str, Any] | Callable[[], Mapping[str, Any]] | None


class ViewRenderer(Protocol):
    def render(self, name: str, context: Mapping[str, Any]) -> str: ...

    def partial(self, name: str, context: Mapping[str, Any]) -> str: ...

    def render_source(self, source: str, context: Mapping[str, Any]) -> str: ...


class JinjaRenderer:
    __slots__ = ("env", "layout", "suffix", "views")

    def __init__(self, views: Path | str | None, layout: str | None = None, suffix: str = ".html") -> None:
        self.views = views
        self.layout = layout
        self.suffix = suffix
        self.env = Environment(
            loader=FileSystemLoader(str(views)) if views is not None else None,
            autoescape=select_autoescape(["html", "htm", "xml"], default_for_string=True),
        )

    def partial(self, name: str, context: Mapping[str, Any]) -> str:
        """Render template *name* on its own and return the text."""
        if self.views is None:
            raise ConfigurationError(f"Cannot render {name!r}: no views directory configured")
        return self.env.get_template(name + self.suffix).render(context)

    def render(self, name: str, context: Mapping[str, Any]) -> str:
        return self._wrap(self.partial(name, context), context)

    def render_source(self, source: str, context: Mapping[str, Any]) -> str:
        """Render an anonymous template body."""
        return self._wrap(self.env.from_string(source).render(context), context)

    def _wrap(self, content: str, context: Mapping[str, Any]) -> str:
        if self.layout is None:
            return content
        return self.partial(self.layout, {**context, "content": Markup(content)})


def resolve_locals(values: Locals) -> dict[str, Any]:
    if values is None:
        return {}
    if callable(values):
        values = values()
    return dict(values)


def inline(name: str | None = None, values: Locals = None, *, source: str | None = None) -> Callable[..., None]:
    """Build a handler that renders a template with fixed or computed locals.

    *values* may be a mapping or a zero-argument callable evaluated on
    every request. Pass *source* instead of *name* for an anonymous
    template body.
    """
    if (name is None) == (source is None):
        raise ConfigurationError("inline() needs exactly one of a template name or source")

    def handler(ctx: RequestContext, *_params: Any) -> None:
        if source is not None:
            ctx.write(ctx.app.renderer.render_source(source, resolve_locals(values)))
        else:
            ctx.render(name, values)

    handler.__qualname__ = f"inline({name or '<source>'})"
    return handler
