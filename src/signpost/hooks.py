"""Global before/after hooks run around every dispatch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from signpost._invoke import CallableMeta
from signpost.errors import ConfigurationError
from signpost.validation import validate_callable

if TYPE_CHECKING:
    from collections.abc import Callable

    from signpost.context import RequestContext

logger = logging.getLogger("signpost.hooks")


class HookPipeline:
    """Two append-only lists of ``(method, path)`` callbacks.

    Before-hooks see the resolved method ahead of route lookup and cannot
    change it. An :class:`HTTPError` raised in one (``ctx.halt``) ends the
    request with that status as it would from a handler: route lookup is
    skipped, output from earlier hooks is kept. After-hooks
    run once the response body is complete, whatever the outcome; a failing
    after-hook is logged and the remaining ones still run.
    """

    __slots__ = ("_after", "_before", "frozen")

    def __init__(self) -> None:
        self._before: list[CallableMeta] = []
        self._after: list[CallableMeta] = []
        self.frozen = False

    def add_before(self, callback: Callable[..., Any]) -> None:
        self._append(self._before, callback, "before")

    def add_after(self, callback: Callable[..., Any]) -> None:
        self._append(self._after, callback, "after")

    def _append(self, hooks: list[CallableMeta], callback: Callable[..., Any], kind: str) -> None:
        if self.frozen:
            raise ConfigurationError(f"Cannot add {kind}-hook: the app is already serving")
        validate_callable(callback, what=f"{kind.capitalize()}-hook")
        hooks.append(CallableMeta(callback))

    @property
    def before(self) -> tuple[Callable[..., Any], ...]:
        return tuple(meta.func for meta in self._before)

    @property
    def after(self) -> tuple[Callable[..., Any], ...]:
        return tuple(meta.func for meta in self._after)

    async def run_before(self, ctx: RequestContext) -> None:
        """Run the before-hooks; output of each completed hook is kept on error."""
        for meta in self._before:
            await meta((ctx.method, ctx.path), ctx=ctx, request=ctx.request)
            ctx.mark_output()

    async def run_after(self, ctx: RequestContext) -> None:
        for meta in self._after:
            try:
                await meta((ctx.method, ctx.path), ctx=ctx, request=ctx.request)
            except Exception:
                logger.exception("After-hook %s failed for %s %s", meta.name, ctx.method, ctx.path)
