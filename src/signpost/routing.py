"""URL routing with named path parameters and nested prefixes."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from signpost.errors import ConfigurationError
from signpost.validation import validate_identifier

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

MARKER = ":"
SEPARATOR = "/"


@dataclass(frozen=True, slots=True)
class LiteralSegment:
    text: str


@dataclass(frozen=True, slots=True)
class NamedSegment:
    name: str


type Segment = LiteralSegment | NamedSegment


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A route pattern split into literal and named segments."""

    source: str
    segments: tuple[Segment, ...]

    @property
    def identifiers(self) -> tuple[str, ...]:
        return tuple(seg.name for seg in self.segments if isinstance(seg, NamedSegment))

    def match(self, path: str) -> dict[str, str] | None:
        """Return raw captures if *path* matches, else ``None``.

        Captures keep declaration order and are never transformed here.
        """
        parts = split_path(path)
        if len(parts) != len(self.segments):
            return None
        captures: dict[str, str] = {}
        for seg, part in zip(self.segments, parts, strict=True):
            if isinstance(seg, NamedSegment):
                captures[seg.name] = part
            elif seg.text != part:
                return None
        return captures


def split_path(path: str) -> list[str]:
    trimmed = path.strip(SEPARATOR)
    if not trimmed:
        return []
    return trimmed.split(SEPARATOR)


def join_prefixes(*parts: str) -> str:
    """Concatenate prefix segments and a pattern into one pattern string."""
    pieces = [p.strip(SEPARATOR) for p in parts]
    return SEPARATOR + SEPARATOR.join(p for p in pieces if p)


def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile ``/authors/:author/books/:title`` into a :class:`CompiledPattern`.

    Raises :class:`ConfigurationError` for non-string patterns, empty
    segments, empty or invalid identifiers, and identifiers repeated within
    one pattern.
    """
    if not isinstance(pattern, str):
        raise ConfigurationError(f"Route pattern must be a string, got {pattern!r}")
    return _compile(pattern)


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> CompiledPattern:
    segments: list[Segment] = []
    seen: set[str] = set()
    for part in split_path(pattern):
        if not part:
            raise ConfigurationError(f"Route pattern {pattern!r} contains an empty segment")
        if not part.startswith(MARKER):
            segments.append(LiteralSegment(part))
            continue
        name = part[len(MARKER) :]
        if not name:
            raise ConfigurationError(f"Route pattern {pattern!r} has a placeholder without a name")
        validate_identifier(name, what=f"Route pattern {pattern!r} placeholder")
        if name in seen:
            raise ConfigurationError(f"Route pattern {pattern!r} declares {name!r} more than once")
        seen.add(name)
        segments.append(NamedSegment(name))

    return CompiledPattern(source=pattern, segments=tuple(segments))


class Route:
    """A single route mapping a method + compiled pattern to a handler."""

    __slots__ = ("handler", "method", "path", "pattern")

    def __init__(
        self,
        method: str,
        path: str,
        handler: Callable[..., Any],
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.handler = handler
        self.pattern = compile_pattern(path)

    @property
    def identifiers(self) -> tuple[str, ...]:
        return self.pattern.identifiers

    def match(self, path: str) -> dict[str, str] | None:
        """Return raw path captures if *path* matches, else ``None``."""
        return self.pattern.match(path)

    def __repr__(self) -> str:
        return f"Route({self.method!r}, {self.path!r})"


class Router:
    """Ordered collection of routes with first-match-wins lookup.

    Precedence is registration order: register a specific pattern before a
    generic one to shadow it.
    """

    __slots__ = ("_prefixes", "frozen", "routes")

    def __init__(self) -> None:
        self.routes: list[Route] = []
        self._prefixes: list[str] = []
        self.frozen = False

    @property
    def current_prefix(self) -> str:
        return join_prefixes(*self._prefixes)

    def add_route(
        self,
        method: str,
        path: str,
        handler: Callable[..., Any],
    ) -> Route:
        if self.frozen:
            raise ConfigurationError(f"Cannot add route {method} {path}: the router is already serving")
        if not isinstance(method, str) or not method:
            raise ConfigurationError(f"Route method must be a non-empty string, got {method!r}")
        route = Route(method, join_prefixes(*self._prefixes, path), handler)
        self.routes.append(route)
        return route

    @contextlib.contextmanager
    def prefix(self, segment: str) -> Iterator[str]:
        """Prepend *segment* to every route registered inside the block."""
        if self.frozen:
            raise ConfigurationError(f"Cannot open prefix {segment!r}: the router is already serving")
        compile_pattern(segment)
        self._prefixes.append(segment)
        try:
            yield self.current_prefix
        finally:
            self._prefixes.pop()

    def match(
        self,
        method: str,
        path: str,
    ) -> tuple[Route, dict[str, str]] | None:
        """Return ``(route, captures)`` for the first match, or ``None``."""
        method = method.upper()
        for route in self.routes:
            if route.method != method:
                continue
            captures = route.match(path)
            if captures is not None:
                return route, captures
        return None

    def allowed_methods(self, path: str) -> frozenset[str]:
        """Methods of every route whose pattern matches *path*."""
        return frozenset(route.method for route in self.routes if route.match(path) is not None)


class PrefixScope:
    """A prefix frame usable as a ``with`` block or as a decorator.

    Applied to a function, the function runs at once inside the frame (it
    is expected to register the nested routes) and is returned unchanged.
    """

    __slots__ = ("_frames", "_router", "segment")

    def __init__(self, router: Router, segment: str) -> None:
        self._router = router
        self.segment = segment
        self._frames: list[contextlib.AbstractContextManager[str]] = []

    def __enter__(self) -> str:
        frame = self._router.prefix(self.segment)
        current = frame.__enter__()
        self._frames.append(frame)
        return current

    def __exit__(self, *exc_info: Any) -> None:
        self._frames.pop().__exit__(*exc_info)

    def __call__(self, body: Callable[[], Any]) -> Callable[[], Any]:
        with self:
            body()
        return body
