"""Invoke helpers: call sync or async user callables uniformly.

Handlers, binders, filters and hooks can be ``def`` or ``async def`` and
may ask for the request context by declaring a ``ctx`` (or ``request``)
parameter. The call plan is worked out once at registration time.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import TYPE_CHECKING, Any

from signpost.validation import INJECTED

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

_MISSING = object()

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


class CallableMeta:
    """Pre-computed call plan, built once at registration time."""

    __slots__ = ("func", "is_coroutine", "plan")

    def __init__(self, func: Callable[..., Any]) -> None:
        self.func = func
        self.is_coroutine = inspect.iscoroutinefunction(func)
        try:
            params = inspect.signature(func).parameters.values()
        except (TypeError, ValueError):
            self.plan: tuple[tuple[inspect._ParameterKind, str], ...] | None = None
        else:
            self.plan = tuple((p.kind, p.name) for p in params)

    @property
    def name(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))

    def arguments(
        self,
        values: Iterable[Any],
        injected: dict[str, Any],
    ) -> tuple[list[Any], dict[str, Any]]:
        """Map *values* onto the plain parameters, *injected* onto ``ctx``/``request``."""
        if self.plan is None:
            return list(values), {}

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        remaining = iter(values)
        exhausted = False
        for kind, name in self.plan:
            if kind is inspect.Parameter.VAR_POSITIONAL:
                args.extend(remaining)
                exhausted = True
                continue
            if name in INJECTED and kind is not inspect.Parameter.VAR_KEYWORD:
                if kind in _POSITIONAL and not exhausted:
                    args.append(injected.get(name))
                else:
                    kwargs[name] = injected.get(name)
                continue
            if kind not in _POSITIONAL or exhausted:
                continue
            value = next(remaining, _MISSING)
            if value is _MISSING:
                exhausted = True
                continue
            args.append(value)
        return args, kwargs

    async def __call__(self, values: Iterable[Any] = (), **injected: Any) -> Any:
        args, kwargs = self.arguments(values, injected)
        return await invoke(self.func, *args, **kwargs)

    async def call_in_executor(self, values: Iterable[Any] = (), **injected: Any) -> Any:
        """Like ``__call__`` but runs sync callables off the event loop."""
        args, kwargs = self.arguments(values, injected)
        if self.is_coroutine:
            return await self.func(*args, **kwargs)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, functools.partial(self.func, *args, **kwargs))
        if inspect.isawaitable(result):
            result = await result
        return result


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
