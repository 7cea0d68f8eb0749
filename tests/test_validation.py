"""Tests for registration-time identifier and handler checks."""

from __future__ import annotations

import pytest

from signpost.errors import ConfigurationError
from signpost.validation import validate_callable, validate_handler_signature, validate_identifier

# -- Identifiers ---------------------------------------------------------


@pytest.mark.parametrize("identifier", ["id", "author", "_private", "title2"])
def test_valid_identifiers(identifier: str) -> None:
    assert validate_identifier(identifier, what="Binder") == identifier


def test_empty_identifier_raises() -> None:
    with pytest.raises(ConfigurationError, match="non-empty string"):
        validate_identifier("", what="Binder")


def test_non_string_identifier_raises() -> None:
    with pytest.raises(ConfigurationError, match="non-empty string"):
        validate_identifier(42, what="Filter")


def test_keyword_identifier_raises() -> None:
    with pytest.raises(ConfigurationError, match="not a valid Python identifier"):
        validate_identifier("for", what="Filter")


@pytest.mark.parametrize("identifier", ["ctx", "request"])
def test_injected_names_are_reserved(identifier: str) -> None:
    with pytest.raises(ConfigurationError, match="reserved"):
        validate_identifier(identifier, what="Binder")


def test_non_callable_raises() -> None:
    with pytest.raises(ConfigurationError, match="must be callable"):
        validate_callable("nope", what="Handler")


# -- Handler signatures --------------------------------------------------


def test_handler_with_one_parameter_per_placeholder_ok() -> None:
    def handler(author, title): ...

    validate_handler_signature(handler, ("author", "title"), "GET", "/a/:author/b/:title")


def test_injected_parameters_do_not_count() -> None:
    def handler(ctx, request, author): ...

    with pytest.raises(ConfigurationError, match="accepts 1 of 2 values"):
        validate_handler_signature(handler, ("author", "title"), "GET", "/a/:author/b/:title")


def test_varargs_accepts_anything() -> None:
    def handler(ctx, *parts): ...

    validate_handler_signature(handler, ("a", "b", "c"), "GET", "/:a/:b/:c")


def test_names_need_not_match_placeholders() -> None:
    def handler(hash): ...

    validate_handler_signature(handler, ("hashable",), "GET", "/md5/:hashable")


def test_handler_without_parameters_for_literal_route_ok() -> None:
    def handler(): ...

    validate_handler_signature(handler, (), "GET", "/index")
