"""Signpost exception hierarchy.

Shared across the router, registries and dispatcher so every module
raises and catches the same types.
"""

from __future__ import annotations

from http import HTTPStatus


class SignpostError(Exception):
    """Base for all signpost-specific errors."""


class ConfigurationError(SignpostError):
    """Raised when routes, binders, filters or settings are invalid.

    Always raised during application setup, never while serving.
    """


class BindingOrderError(SignpostError):
    """A binder asked for a parameter that has not been bound yet.

    Binders run left to right in pattern order, so a binder may only read
    identifiers declared before its own.
    """

    def __init__(self, identifier: str, bound: tuple[str, ...]) -> None:
        self.identifier = identifier
        self.bound = bound
        available = ", ".join(bound) or "none"
        super().__init__(
            f"Parameter {identifier!r} is not bound yet (bound so far: {available})"
        )


class HTTPError(SignpostError):
    """An error that maps directly to an HTTP status code.

    Raise it from a handler, binder or filter to abort the rest of the
    request; the dispatcher routes it to the matching ``@app.error()``
    handler and still runs the after-hooks.
    """

    def __init__(
        self,
        status: int,
        body: str | bytes | None = None,
        headers: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self.status = status
        self.body = body
        self.headers = headers
        super().__init__(status)

    def __str__(self) -> str:
        return f"{self.status} {status_phrase(self.status)}"


class NotFound(HTTPError):  # noqa: N818
    """404, no route matched the request."""

    def __init__(self, body: str | bytes | None = None) -> None:
        super().__init__(404, body)


def status_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown Status"
