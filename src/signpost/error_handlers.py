"""Status-code keyed error handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from signpost._invoke import CallableMeta
from signpost.errors import ConfigurationError, HTTPError, status_phrase
from signpost.validation import validate_callable

if TYPE_CHECKING:
    from collections.abc import Callable

    from signpost.context import RequestContext

logger = logging.getLogger("signpost.errors")


def default_body(status: int) -> str:
    return f"{status} {status_phrase(status)}"


class ErrorHandlerRegistry:
    """Maps an HTTP status to the handler that renders its response.

    Handlers receive the :class:`HTTPError` as their first plain parameter
    (and ``ctx`` when declared). They may return a body or write into the
    context; unregistered codes get ``"<status> <phrase>"``.
    """

    __slots__ = ("_handlers", "frozen")

    def __init__(self) -> None:
        self._handlers: dict[int, CallableMeta] = {}
        self.frozen = False

    def register(self, status: int, handler: Callable[..., Any]) -> None:
        if self.frozen:
            raise ConfigurationError(f"Cannot register error handler for {status}: the app is already serving")
        if isinstance(status, bool) or not isinstance(status, int) or not 100 <= status <= 599:
            raise ConfigurationError(f"Error handler status must be an HTTP status code, got {status!r}")
        validate_callable(handler, what=f"Error handler for {status}")
        self._handlers[status] = CallableMeta(handler)

    def get(self, status: int) -> Callable[..., Any] | None:
        meta = self._handlers.get(status)
        return meta.func if meta is not None else None

    def __contains__(self, status: object) -> bool:
        return status in self._handlers

    async def respond(self, ctx: RequestContext, error: HTTPError) -> None:
        """Put *error* into *ctx*: status, headers and body."""
        ctx.reset_output()
        ctx.status = error.status
        ctx.headers.extend(error.headers)

        meta = self._handlers.get(error.status)
        if meta is None:
            ctx.write(error.body if error.body is not None else default_body(error.status))
            return

        try:
            result = await meta.call_in_executor((error,), ctx=ctx, request=ctx.request)
            ctx.apply_result(result)
        except Exception:
            logger.exception("Error handler for %s failed on %s %s", error.status, ctx.method, ctx.path)
            ctx.reset_output()
            ctx.status = 500
            ctx.write(default_body(500))
