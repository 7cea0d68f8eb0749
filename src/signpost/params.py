"""Per-identifier binders and filters for named path parameters.

A *binder* turns the raw string captured for a placeholder into the value
handed to the handler. A *filter* is a side-effecting callback that fires
once a placeholder of that name has been bound on the matched route.

Both tables are keyed by the placeholder identifier, written during setup
and only read while serving.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from signpost._invoke import CallableMeta
from signpost.errors import ConfigurationError
from signpost.validation import validate_callable, validate_identifier

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from signpost.context import RequestContext

logger = logging.getLogger("signpost.params")


class _IdentifierTable:
    """Identifier -> callable mapping that refuses writes once frozen."""

    __slots__ = ("_entries", "frozen")

    kind = "entry"

    def __init__(self) -> None:
        self._entries: dict[str, CallableMeta] = {}
        self.frozen = False

    def register(self, identifier: str, func: Callable[..., Any]) -> None:
        if self.frozen:
            raise ConfigurationError(f"Cannot register {self.kind} {identifier!r}: the app is already serving")
        validate_identifier(identifier, what=self.kind.capitalize())
        validate_callable(func, what=f"{self.kind.capitalize()} {identifier!r}")
        if identifier in self._entries:
            logger.debug("Replacing %s for %r", self.kind, identifier)
        self._entries[identifier] = CallableMeta(func)

    def get(self, identifier: str) -> Callable[..., Any] | None:
        meta = self._entries.get(identifier)
        return meta.func if meta is not None else None

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class BinderRegistry(_IdentifierTable):
    """Value transforms applied to raw captures.

    Unregistered identifiers resolve to the raw string unchanged.
    """

    __slots__ = ()

    kind = "binder"

    async def resolve(self, identifier: str, raw: str, ctx: RequestContext) -> Any:
        meta = self._entries.get(identifier)
        if meta is None:
            return raw
        return await meta((raw,), ctx=ctx, request=ctx.request)


class FilterRegistry(_IdentifierTable):
    """Callbacks run after a placeholder with that identifier is bound."""

    __slots__ = ()

    kind = "filter"

    async def run(self, identifier: str, ctx: RequestContext) -> bool:
        """Fire the filter for *identifier*; return whether one was registered."""
        meta = self._entries.get(identifier)
        if meta is None:
            return False
        await meta(ctx=ctx, request=ctx.request)
        return True
