"""Tests for call plans, binder/filter registries and the hook pipeline."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from signpost import BindingOrderError, ConfigurationError
from signpost._invoke import CallableMeta
from signpost.error_handlers import ErrorHandlerRegistry, default_body
from signpost.hooks import HookPipeline
from signpost.params import BinderRegistry, FilterRegistry


def _ctx(**bound):
    """Stand-in context exposing only what binders and filters touch."""

    def lookup(identifier):
        if identifier not in bound:
            raise BindingOrderError(identifier, tuple(bound))
        return bound[identifier]

    return SimpleNamespace(request=None, bound=bound, lookup=lookup, method="GET", path="/x", mark_output=lambda: None)


# =====================================================================
# Call plans
# =====================================================================


class TestCallableMeta:
    def test_values_fill_plain_parameters_in_order(self) -> None:
        meta = CallableMeta(lambda a, b: None)
        assert meta.arguments(["x", "y"], {}) == (["x", "y"], {})

    def test_ctx_is_injected_where_declared(self) -> None:
        meta = CallableMeta(lambda a, ctx, b: None)
        assert meta.arguments(["x", "y"], {"ctx": "C"}) == (["x", "C", "y"], {})

    def test_surplus_values_are_dropped(self) -> None:
        meta = CallableMeta(lambda: None)
        assert meta.arguments(["x"], {"ctx": "C"}) == ([], {})

    def test_missing_values_fall_back_to_defaults(self) -> None:
        def func(a, b="default", ctx=None): ...

        assert CallableMeta(func).arguments(["x"], {"ctx": "C"}) == (["x"], {"ctx": "C"})

    def test_keyword_only_ctx(self) -> None:
        def func(a, *, ctx): ...

        assert CallableMeta(func).arguments(["x"], {"ctx": "C"}) == (["x"], {"ctx": "C"})

    def test_varargs_take_the_rest(self) -> None:
        def func(ctx, *rest): ...

        assert CallableMeta(func).arguments(["x", "y"], {"ctx": "C"}) == (["C", "x", "y"], {})

    def test_builtin_method(self) -> None:
        assert CallableMeta(str.upper).arguments(["x"], {"ctx": "C"}) == (["x"], {})

    @pytest.mark.asyncio
    async def test_call_awaits_coroutines(self) -> None:
        async def func(value):
            return value * 2

        assert await CallableMeta(func)(["ab"]) == "abab"

    @pytest.mark.asyncio
    async def test_call_in_executor_runs_sync_functions(self) -> None:
        meta = CallableMeta(lambda value, ctx: f"{value}:{ctx}")
        assert await meta.call_in_executor(["v"], ctx="C") == "v:C"


# =====================================================================
# Binders
# =====================================================================


class TestBinderRegistry:
    @pytest.mark.asyncio
    async def test_unregistered_identifier_is_identity(self) -> None:
        binders = BinderRegistry()
        assert await binders.resolve("author", "noodlehaus", _ctx()) == "noodlehaus"

    @pytest.mark.asyncio
    async def test_registered_transform_is_applied(self) -> None:
        binders = BinderRegistry()
        binders.register("author", str.upper)
        assert await binders.resolve("author", "noodlehaus", _ctx()) == "NOODLEHAUS"

    @pytest.mark.asyncio
    async def test_transform_can_read_earlier_values(self) -> None:
        binders = BinderRegistry()
        binders.register("title", lambda raw, ctx: f"{raw.upper()} by {ctx.lookup('author')}")
        ctx = _ctx(author="NOODLEHAUS")
        assert await binders.resolve("title", "dispatch", ctx) == "DISPATCH by NOODLEHAUS"

    @pytest.mark.asyncio
    async def test_reading_unbound_value_raises(self) -> None:
        binders = BinderRegistry()
        binders.register("author", lambda raw, ctx: ctx.lookup("title"))
        with pytest.raises(BindingOrderError, match="'title' is not bound yet"):
            await binders.resolve("author", "x", _ctx())

    def test_reregistration_overwrites(self) -> None:
        binders = BinderRegistry()
        binders.register("id", int)
        binders.register("id", float)
        assert binders.get("id") is float
        assert len(binders) == 1
        assert "id" in binders

    def test_frozen_registry_rejects_writes(self) -> None:
        binders = BinderRegistry()
        binders.frozen = True
        with pytest.raises(ConfigurationError, match="already serving"):
            binders.register("id", int)

    def test_non_callable_transform(self) -> None:
        with pytest.raises(ConfigurationError, match="must be callable"):
            BinderRegistry().register("id", "int")


# =====================================================================
# Filters
# =====================================================================


class TestFilterRegistry:
    @pytest.mark.asyncio
    async def test_run_reports_whether_a_filter_fired(self) -> None:
        calls = []
        filters = FilterRegistry()
        filters.register("id", lambda: calls.append("id"))
        assert await filters.run("id", _ctx(id="1")) is True
        assert await filters.run("name", _ctx()) is False
        assert calls == ["id"]

    @pytest.mark.asyncio
    async def test_async_filter_with_context(self) -> None:
        seen = []

        async def record(ctx):
            seen.append(ctx.lookup("id"))

        filters = FilterRegistry()
        filters.register("id", record)
        await filters.run("id", _ctx(id="7"))
        assert seen == ["7"]


# =====================================================================
# Hooks & error handlers
# =====================================================================


class TestHookPipeline:
    @pytest.mark.asyncio
    async def test_hooks_run_in_registration_order(self) -> None:
        order = []
        hooks = HookPipeline()
        hooks.add_before(lambda method, path: order.append(("b1", method, path)))
        hooks.add_before(lambda: order.append(("b2",)))
        hooks.add_after(lambda method, path: order.append(("a1", method, path)))
        await hooks.run_before(_ctx())
        await hooks.run_after(_ctx())
        assert order == [("b1", "GET", "/x"), ("b2",), ("a1", "GET", "/x")]
        assert len(hooks.before) == 2
        assert len(hooks.after) == 1

    @pytest.mark.asyncio
    async def test_before_hook_errors_propagate(self) -> None:
        hooks = HookPipeline()

        def broken():
            raise RuntimeError("nope")

        hooks.add_before(broken)
        with pytest.raises(RuntimeError):
            await hooks.run_before(_ctx())

    def test_frozen_pipeline(self) -> None:
        hooks = HookPipeline()
        hooks.frozen = True
        with pytest.raises(ConfigurationError):
            hooks.add_after(lambda: None)


class TestErrorHandlerRegistry:
    def test_register_and_get(self) -> None:
        errors = ErrorHandlerRegistry()
        handler = lambda: None  # noqa: E731
        errors.register(404, handler)
        assert errors.get(404) is handler
        assert 404 in errors
        assert errors.get(500) is None

    @pytest.mark.parametrize("status", [99, 600, True, "404"])
    def test_rejects_non_status_codes(self, status) -> None:
        with pytest.raises(ConfigurationError):
            ErrorHandlerRegistry().register(status, lambda: None)

    def test_default_body_contains_status_text(self) -> None:
        assert default_body(404) == "404 Not Found"
        assert default_body(599) == "599 Unknown Status"
