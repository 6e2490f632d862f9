"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from rmsprep import preprocess
from rmsprep.ast import Root
from rmsprep.lexer import tokenize
from rmsprep.pipeline import Options
from rmsprep.structure import parse
from rmsprep.tokens import TRIVIA, Token, TokenType


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str) -> list[Token]:
        tokens = tokenize(source)
        # Strip trailing EOF for convenience
        return [t for t in tokens if t.type != TokenType.EOF]

    return _lex


@pytest.fixture
def parse_source():
    """Return a helper that structures source and returns a Root."""

    def _parse(source: str, filename: str = "test.rms") -> Root:
        return parse(source, filename)

    return _parse


@pytest.fixture
def run():
    """Return a helper that runs the full pipeline, with Options overrides as kwargs."""

    def _run(source: str, **overrides) -> str:
        return preprocess(source, "test.rms", Options(**overrides))

    return _run


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_values(tokens: list[Token], expected: list[str]) -> None:
    """Assert that the token values match the expected list."""
    actual = [t.value for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def significant_values(tokens: tuple[Token, ...] | list[Token]) -> list[str]:
    """Values of the non-trivia tokens."""
    return [t.value for t in tokens if t.type not in TRIVIA and t.type != TokenType.EOF]
