"""Token types, data structures, and character classification helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    # Directives
    DIRECTIVE = auto()  # #name — value is the name without '#'

    # Content
    IDENTIFIER = auto()  # letter or _, then letters, digits, _
    NUMBER = auto()  # digits with optional .digits fraction
    STRING = auto()  # "..." literal text
    PUNCT = auto()  # single punctuation character
    TEXT = auto()  # anything else (non-ASCII runs, stray characters)

    # Trivia
    COMMENT = auto()  # /* ... */ (nestable) or // to end of line
    WS = auto()  # horizontal whitespace (spaces/tabs)
    NEWLINE = auto()  # \n or \r\n

    EOF = auto()


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token with its value and original source text."""

    type: TokenType
    value: str
    raw: str
    span: Span


TRIVIA = frozenset({TokenType.COMMENT, TokenType.WS, TokenType.NEWLINE})

# Single characters the lexer always emits as PUNCT
PUNCTUATION = frozenset("(){}[],;:+-*/<>=!&|%^~.?@$'`\\")


def is_ident_start(ch: str) -> bool:
    """Return True if ch may start an identifier."""
    return ch == "_" or (ch.isascii() and ch.isalpha())


def is_ident_char(ch: str) -> bool:
    """Return True if ch may continue an identifier."""
    return ch == "_" or (ch.isascii() and ch.isalnum())


def is_digit(ch: str) -> bool:
    return len(ch) == 1 and ch in "0123456789"


def synthetic(tt: TokenType, value: str, span: Span, raw: str | None = None) -> Token:
    """Build a token that does not come from the source text."""
    return Token(tt, value, value if raw is None else raw, span)
