"""Signpost ASGI application and request dispatcher."""

from __future__ import annotations

import logging
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from signpost._invoke import CallableMeta
from signpost.config import Settings
from signpost.context import DispatchState, RequestContext
from signpost.error_handlers import ErrorHandlerRegistry
from signpost.errors import BindingOrderError, HTTPError, NotFound
from signpost.hooks import HookPipeline
from signpost.params import BinderRegistry, FilterRegistry
from signpost.request import Request
from signpost.response import PlainTextResponse, Response
from signpost.routing import PrefixScope, Router, compile_pattern, join_prefixes
from signpost.sessions import CookieSigner, MemorySessionBackend
from signpost.validation import validate_callable, validate_handler_signature
from signpost.views import JinjaRenderer

if TYPE_CHECKING:
    from collections.abc import Callable

    from signpost._types import Receive, Scope, Send
    from signpost.sessions import SessionBackend
    from signpost.views import ViewRenderer

logger = logging.getLogger("signpost.dispatch")


@dataclass(frozen=True, slots=True)
class Completed:
    """The handler ran to completion."""


@dataclass(frozen=True, slots=True)
class Raised:
    """The request ends in an error status."""

    error: HTTPError


type Outcome = Completed | Raised


class App:
    """ASGI 3.0 application dispatching requests to registered routes.

    Parameters
    ----------
    settings:
        A :class:`Settings` instance. Keyword *overrides* are applied on
        top of it (or of the defaults) and validated the same way.
    strict:
        When ``True``, handlers are checked at registration time to accept
        one parameter per path placeholder.
    session_backend:
        Where session data lives. Defaults to process memory.
    renderer:
        View renderer. Defaults to Jinja2 over ``settings.views``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        strict: bool = False,
        session_backend: SessionBackend | None = None,
        renderer: ViewRenderer | None = None,
        **overrides: Any,
    ) -> None:
        if overrides:
            base = settings.model_dump() if settings is not None else {}
            settings = Settings(**{**base, **overrides})
        self.settings = settings or Settings()
        self.strict = strict
        self.router = Router()
        self.binders = BinderRegistry()
        self.filters = FilterRegistry()
        self.hooks = HookPipeline()
        self.errors = ErrorHandlerRegistry()
        self.session_backend = session_backend or MemorySessionBackend()
        self.signer = CookieSigner(self.settings.secret_key)
        self.renderer = renderer or JinjaRenderer(self.settings.views, self.settings.layout)
        self._handler_meta: dict[int, CallableMeta] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Route registration
    # ------------------------------------------------------------------

    def on(self, method: str, path: str, handler: Callable[..., Any] | None = None) -> Any:
        """Register *handler* for *method* and *path*; decorator when omitted."""

        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            validate_callable(handler, what=f"Handler for {method} {path}")
            if self.strict:
                full_path = join_prefixes(self.router.current_prefix, path)
                identifiers = compile_pattern(full_path).identifiers
                validate_handler_signature(handler, identifiers, method.upper(), full_path)
            route = self.router.add_route(method, path, handler)
            self._handler_meta.setdefault(id(handler), CallableMeta(handler))
            logger.debug("Registered %s %s -> %s", route.method, route.path, self._handler_meta[id(handler)].name)
            return handler

        if handler is not None:
            return decorator(handler)
        return decorator

    def get(self, path: str) -> Callable[..., Any]:
        return self.on("GET", path)

    def post(self, path: str) -> Callable[..., Any]:
        return self.on("POST", path)

    def put(self, path: str) -> Callable[..., Any]:
        return self.on("PUT", path)

    def delete(self, path: str) -> Callable[..., Any]:
        return self.on("DELETE", path)

    def patch(self, path: str) -> Callable[..., Any]:
        return self.on("PATCH", path)

    def options(self, path: str) -> Callable[..., Any]:
        return self.on("OPTIONS", path)

    def head(self, path: str) -> Callable[..., Any]:
        return self.on("HEAD", path)

    def prefix(self, segment: str, body: Callable[[], Any] | None = None) -> Any:
        """Scope route registrations under *segment*.

        Use as ``with app.prefix("books"): ...``, as a ``@app.prefix("books")``
        decorator, or pass a *body* callable that registers the nested routes.
        Scopes nest to any depth.
        """
        scope = PrefixScope(self.router, segment)
        if body is None:
            return scope
        return scope(body)

    # ------------------------------------------------------------------
    # Binders, filters, hooks, error handlers
    # ------------------------------------------------------------------

    def bind(self, identifier: str, transform: Callable[..., Any] | None = None) -> Any:
        """Transform the raw value captured for ``:identifier``.

        The transform gets the raw string, plus ``ctx`` if it declares one
        (``ctx.lookup()`` reads parameters bound earlier in the pattern).
        """
        if transform is not None:
            self.binders.register(identifier, transform)
            return transform

        def decorator(transform: Callable[..., Any]) -> Callable[..., Any]:
            self.binders.register(identifier, transform)
            return transform

        return decorator

    def filter(self, identifier: str, callback: Callable[..., Any] | None = None) -> Any:
        """Run *callback* whenever a matched route binds ``:identifier``."""
        if callback is not None:
            self.filters.register(identifier, callback)
            return callback

        def decorator(callback: Callable[..., Any]) -> Callable[..., Any]:
            self.filters.register(identifier, callback)
            return callback

        return decorator

    def before(self, callback: Callable[..., Any]) -> Callable[..., Any]:
        self.hooks.add_before(callback)
        return callback

    def after(self, callback: Callable[..., Any]) -> Callable[..., Any]:
        self.hooks.add_after(callback)
        return callback

    def error(self, status: int, handler: Callable[..., Any] | None = None) -> Any:
        if handler is not None:
            self.errors.register(status, handler)
            return handler

        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            self.errors.register(status, handler)
            return handler

        return decorator

    def freeze(self) -> None:
        """Close every table to further registration."""
        if self._frozen:
            return
        self._frozen = True
        for table in (self.router, self.binders, self.filters, self.hooks, self.errors):
            table.frozen = True
        logger.debug("Configuration frozen with %d routes", len(self.router.routes))

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, request: Request) -> Response:
        """Run one full request lifecycle and return the response."""
        self.freeze()
        ctx = RequestContext(self, request)
        try:
            malformed = await self._resolve(ctx)
            try:
                outcome = await self._run(ctx, malformed)
                if isinstance(outcome, Raised):
                    ctx.state = DispatchState.ERROR_RAISED
                    await self.errors.respond(ctx, outcome.error)
            finally:
                await self.hooks.run_after(ctx)
                ctx.state = DispatchState.HOOKS_AFTER_RUN
            response = ctx.finish()
            ctx.state = DispatchState.DONE
            return response
        finally:
            request.cleanup()

    async def _resolve(self, ctx: RequestContext) -> HTTPError | None:
        """Read the body and settle the effective method.

        A malformed body keeps the raw method and is answered with a 400
        once the before-hooks have run.
        """
        malformed = None
        try:
            await ctx.request.load()
        except ValueError as exc:
            logger.debug("Malformed body on %s %s: %s", ctx.method, ctx.path, exc)
            malformed = HTTPError(400)
        else:
            ctx.method = self._resolve_method(ctx.request)
        ctx.state = DispatchState.METHOD_RESOLVED
        return malformed

    def _resolve_method(self, request: Request) -> str:
        method = request.method
        if method == "POST":
            override = request.form_value(self.settings.method_override_field)
            if override:
                return override.strip().upper()
        return method

    async def _run(self, ctx: RequestContext, malformed: HTTPError | None = None) -> Outcome:
        try:
            await self.hooks.run_before(ctx)
            ctx.state = DispatchState.HOOKS_BEFORE_RUN
            if malformed is not None:
                return Raised(malformed)

            match = self.router.match(ctx.method, ctx.path)
            if match is None:
                ctx.state = DispatchState.NOT_FOUND
                logger.debug(
                    "No route for %s %s (path allows: %s)",
                    ctx.method,
                    ctx.path,
                    ", ".join(sorted(self.router.allowed_methods(ctx.path))) or "nothing",
                )
                return Raised(NotFound())

            route, captures = match
            ctx.route = route
            ctx.captures = captures
            ctx.state = DispatchState.ROUTE_MATCHED

            for identifier, raw in captures.items():
                ctx.bound[identifier] = await self.binders.resolve(identifier, raw, ctx)
                await self.filters.run(identifier, ctx)
            ctx.state = DispatchState.PARAMS_BOUND

            meta = self._handler_meta[id(route.handler)]
            result = await meta.call_in_executor(ctx.bound.values(), ctx=ctx, request=ctx.request)
            ctx.apply_result(result)
            ctx.state = DispatchState.HANDLER_RUN
            return Completed()
        except HTTPError as exc:
            return Raised(exc)
        except BindingOrderError as exc:
            logger.error("Binding order error on %s %s: %s", ctx.method, ctx.path, exc)
            return Raised(self._fault(str(exc)))
        except Exception:
            logger.exception("Unhandled error on %s %s", ctx.method, ctx.path)
            return Raised(self._fault(traceback.format_exc()))

    def _fault(self, detail: str) -> HTTPError:
        if self.settings.debug:
            return HTTPError(500, f"500 Internal Server Error\n\n{detail}")
        return HTTPError(500)

    # ------------------------------------------------------------------
    # ASGI interface
    # ------------------------------------------------------------------

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        request = Request(scope, receive)
        try:
            response = await self.dispatch(request)
            response.start_message()
        except Exception:
            # building the response or encoding its headers failed
            logger.exception("Dispatch failed for %s %s", request.method, request.path)
            response = PlainTextResponse(b"500 Internal Server Error", status_code=500)
        await response.send(send)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Freeze configuration on startup; shutdown is a no-op."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                self.freeze()
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # ------------------------------------------------------------------
    # Granian convenience
    # ------------------------------------------------------------------

    def run(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        *,
        reload: bool = False,
        workers: int = 1,
        **granian_kwargs: Any,
    ) -> None:
        """Start the app with Granian.

        Parameters
        ----------
        reload:
            Auto-reload on code changes.
        workers:
            Number of worker processes.
        """
        from signpost._server import serve

        target = _resolve_target(self)
        serve(
            target,
            host=host,
            port=port,
            reload=reload,
            workers=workers,
            log_level=self.settings.log_level,
            granian_kwargs=granian_kwargs,
        )


def _resolve_target(app: App) -> str:
    """``"module:var"`` naming *app* in the running script, for Granian workers."""
    main = sys.modules["__main__"]
    name = next((key for key, value in vars(main).items() if value is app), None)
    if name is None:
        raise RuntimeError("App.run() needs the app bound to a module-level name; use `signpost module:var`")
    module_spec = getattr(main, "__spec__", None)
    module = module_spec.name if module_spec else Path(main.__file__).stem
    return f"{module}:{name}"
