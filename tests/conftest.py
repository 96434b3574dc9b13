"""Shared test fixtures and helpers."""

from __future__ import annotations

import textwrap

import pytest

from pleat.ast import Root, Tag
from pleat.compiler import CompileOptions
from pleat.compiler import compile_source as _compile_source
from pleat.lexer import tokenize
from pleat.parser import parse
from pleat.template import Template
from pleat.tokens import Token, TokenType


def dedent(source: str) -> str:
    """Strip the common indentation of a triple-quoted template."""
    return textwrap.dedent(source).strip("\n") + "\n"


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str) -> list[Token]:
        tokens = tokenize(dedent(source))
        # Strip trailing EOF for convenience
        return [t for t in tokens if t.type != TokenType.EOF]

    return _lex


@pytest.fixture
def parse_source():
    """Return a helper that parses source and returns a Root."""

    def _parse(source: str, filename: str = "test.pleat") -> Root:
        return parse(dedent(source), filename)

    return _parse


@pytest.fixture
def compile_source():
    """Return a helper that compiles source to generated Python."""

    def _compile(source: str, **options) -> str:
        return _compile_source(dedent(source), "test.pleat", CompileOptions(**options))

    return _compile


@pytest.fixture
def render():
    """Return a helper that compiles and renders source with keyword data."""

    def _render(source: str, **data) -> str:
        return Template(dedent(source), "test.pleat").render(**data)

    return _render


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def first_tag(root: Root) -> Tag:
    """Return the first top-level Tag of a parsed template."""
    for child in root.block.children:
        if isinstance(child, Tag):
            return child
    raise AssertionError("no tag in template")
