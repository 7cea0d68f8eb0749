"""Registration-time checks for identifiers and handler signatures."""

from __future__ import annotations

import inspect
import keyword
from typing import TYPE_CHECKING, Any

from signpost.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

# Parameter names filled by the dispatcher rather than by path captures.
INJECTED = frozenset({"ctx", "request"})


def validate_identifier(identifier: Any, *, what: str) -> str:
    """Return *identifier* if it can name a path parameter.

    Raises :class:`ConfigurationError` for empty strings, non-strings,
    anything that is not a valid Python identifier, and the injected names
    ``ctx`` and ``request``.
    """
    if not isinstance(identifier, str) or not identifier:
        raise ConfigurationError(f"{what} identifier must be a non-empty string, got {identifier!r}")
    if not identifier.isidentifier() or keyword.iskeyword(identifier):
        raise ConfigurationError(f"{what} identifier {identifier!r} is not a valid Python identifier")
    if identifier in INJECTED:
        raise ConfigurationError(
            f"{what} identifier {identifier!r} is reserved: handlers receive the {identifier} object under that name"
        )
    return identifier


def validate_callable(func: Any, *, what: str) -> None:
    if not callable(func):
        raise ConfigurationError(f"{what} must be callable, got {func!r}")


def validate_handler_signature(func: Any, identifiers: Sequence[str], method: str, path: str) -> None:
    """Check that *func* can receive every captured path parameter.

    Path values are passed in declaration order to the parameters that are
    not injected (``ctx``, ``request``), so the handler needs at least as
    many of those as the pattern has placeholders, or a ``*args``.
    """
    name = getattr(func, "__name__", repr(func))
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        # builtins without introspectable signatures are taken on trust
        return

    slots = 0
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return
        if param.name in INJECTED or param.kind is inspect.Parameter.VAR_KEYWORD:
            continue
        slots += 1

    if slots < len(identifiers):
        raise ConfigurationError(
            f"\n\nHandler '{name}' [{method} {path}] cannot receive its path parameters.\n"
            f"  Declared: {', '.join(identifiers)}\n"
            f"  Problem:  the handler accepts {slots} of {len(identifiers)} values.\n"
            f"  Fix:      add one parameter per placeholder, in pattern order.\n"
        )
