"""Per-dispatch request context.

A fresh :class:`RequestContext` is created for every request and handed
explicitly to handlers, binders, filters and hooks that declare a ``ctx``
parameter. It is never shared between requests.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from signpost.cookies import SetCookie
from signpost.errors import BindingOrderError, HTTPError
from signpost.response import FileResponse, JSONResponse, RedirectResponse, Response, is_jsonp_callback
from signpost.sessions import FlashBag, Session
from signpost.views import resolve_locals

if TYPE_CHECKING:
    from signpost.app import App
    from signpost.request import Request, UploadInfo
    from signpost.routing import Route
    from signpost.sessions import SessionStore
    from signpost.views import Locals

_MISSING = object()


class DispatchState(Enum):
    START = "start"
    METHOD_RESOLVED = "method_resolved"
    HOOKS_BEFORE_RUN = "hooks_before_run"
    ROUTE_MATCHED = "route_matched"
    NOT_FOUND = "not_found"
    PARAMS_BOUND = "params_bound"
    HANDLER_RUN = "handler_run"
    ERROR_RAISED = "error_raised"
    HOOKS_AFTER_RUN = "hooks_after_run"
    DONE = "done"


class RequestContext:
    __slots__ = (
        "_mark",
        "app",
        "body",
        "bound",
        "captures",
        "cookies",
        "flash_bag",
        "headers",
        "method",
        "path",
        "request",
        "response",
        "route",
        "session",
        "state",
        "status",
    )

    def __init__(self, app: App, request: Request) -> None:
        self.app = app
        self.request = request
        self.method = request.method
        self.path = request.path
        self.route: Route | None = None
        self.captures: dict[str, str] = {}
        self.bound: dict[str, Any] = {}
        self.status = 200
        self.body: list[bytes] = []
        self.headers: list[tuple[str, str]] = []
        self.cookies: list[SetCookie] = []
        self.response: Response | None = None
        self.state = DispatchState.START
        self._mark = 0

        settings = app.settings
        self.session: SessionStore = Session(app.session_backend, app.signer, settings.session_cookie, request)
        self.flash_bag: SessionStore = FlashBag(app.signer, settings.flash_cookie, request)

    def __repr__(self) -> str:
        return f"RequestContext({self.method!r}, {self.path!r}, state={self.state.name})"

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def write(self, data: str | bytes) -> None:
        """Append to the response body."""
        self.body.append(data.encode("utf-8") if isinstance(data, str) else data)

    def header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def mark_output(self) -> None:
        """Remember the current body length; see :meth:`reset_output`."""
        self._mark = len(self.body)

    def reset_output(self) -> None:
        """Drop output produced after the last mark, and any set response."""
        del self.body[self._mark :]
        self.response = None

    def apply_result(self, result: Any) -> None:
        """Fold a handler's return value into the context."""
        if result is None:
            return
        if isinstance(result, Response):
            self.response = result
        elif isinstance(result, str | bytes):
            self.write(result)
        elif isinstance(result, dict | list | BaseModel):
            self.response = JSONResponse(result, status_code=self.status)
        else:
            self.write(str(result))

    def finish(self) -> Response:
        """Build the outgoing response from everything gathered so far."""
        response = self.response
        if response is None:
            response = Response(b"".join(self.body), status_code=self.status)
        response.headers.extend(self.headers)
        for cookie in self.cookies:
            response.set_cookie(cookie)
        for store in (self.session, self.flash_bag):
            cookie = store.commit()
            if cookie is not None:
                response.set_cookie(cookie)
        return response

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def lookup(self, identifier: str) -> Any:
        """Currently bound value of path parameter *identifier*.

        Raises :class:`BindingOrderError` when it has not been bound yet.
        """
        try:
            return self.bound[identifier]
        except KeyError:
            raise BindingOrderError(identifier, tuple(self.bound)) from None

    def params(self, name: str, default: Any = None) -> Any:
        """A bound path parameter, else a query parameter, else a form field."""
        if name in self.bound:
            return self.bound[name]
        value = self.request.query(name)
        if value is None:
            value = self.request.form_value(name)
        return default if value is None else value

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------

    def halt(self, status: int, body: str | bytes | None = None) -> None:
        """Abort the handler and respond with *status*."""
        raise HTTPError(status, body)

    def redirect(self, location: str, status: int = 302) -> RedirectResponse:
        self.response = RedirectResponse(location, status_code=status)
        return self.response

    def json(self, data: Any, callback: str | None = None) -> JSONResponse:
        """Respond with JSON, or JSONP when query parameter *callback* is set.

        A callback that is not a plain function name is answered with a 400.
        """
        function = self.request.query(callback) if callback else None
        if function and not is_jsonp_callback(function):
            raise HTTPError(400, "400 Bad Request\n\nInvalid JSONP callback")
        self.response = JSONResponse(data, status_code=self.status, callback=function)
        return self.response

    def send_file(
        self,
        path: str | os.PathLike[str],
        download_name: str | None = None,
        cache_seconds: int = 0,
    ) -> FileResponse:
        if not os.path.isfile(path):
            raise HTTPError(404)
        self.response = FileResponse(path, download_name, cache_seconds)
        return self.response

    # ------------------------------------------------------------------
    # Cookies, session, flash, uploads
    # ------------------------------------------------------------------

    def cookie(self, name: str, default: str | None = None) -> str | None:
        return self.request.cookies.get(name, default)

    def set_cookie(
        self,
        name: str,
        value: str,
        max_age: int | None = None,
        path: str = "/",
        domain: str | None = None,
        secure: bool = False,
        httponly: bool = True,
    ) -> None:
        self.cookies.append(SetCookie(name, value, max_age, path, domain, secure, httponly))

    def flash(self, key: str, value: Any = _MISSING) -> Any:
        """Read the value flashed by the previous request, or flash one for the next."""
        if value is _MISSING:
            return self.flash_bag.get(key)
        self.flash_bag.set(key, value)
        return value

    def upload_info(self, field: str) -> UploadInfo | None:
        return self.request.uploads.get(field)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def render(self, name: str, values: Locals = None) -> None:
        self.write(self.app.renderer.render(name, resolve_locals(values)))

    def partial(self, name: str, values: Locals = None) -> str:
        return self.app.renderer.partial(name, resolve_locals(values))

    def url(self, path: str = "") -> str:
        return self.app.settings.site_url(path)
