"""Minimizer — drop comments and collapse whitespace without merging tokens."""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

from rmsprep.errors import LexError
from rmsprep.lexer import tokenize
from rmsprep.tokens import TRIVIA, Token, TokenType

# Tokens the engine reads as whole words; two of them always need a space
WORDLIKE = frozenset(
    {
        TokenType.IDENTIFIER,
        TokenType.NUMBER,
        TokenType.DIRECTIVE,
        TokenType.STRING,
        TokenType.TEXT,
    }
)

BRACES = frozenset("{}")
SIGNS = frozenset("+-")


def minify(tokens: Iterable[Token], keep_newlines: bool = True) -> str:
    """Render tokens as compact script text.

    Between two kept tokens the separator is a line break when the gap held
    one (and keep_newlines is set), a single space when the tokens would
    otherwise run together, and nothing otherwise.
    """
    parts: list[str] = []
    before: Token | None = None  # kept token preceding prev when glued to it
    prev: Token | None = None
    gap = False
    gap_newline = False

    for tok in tokens:
        if tok.type == TokenType.EOF:
            continue
        if tok.type in TRIVIA:
            gap = True
            if tok.type == TokenType.NEWLINE or "\n" in tok.raw:
                gap_newline = True
            continue

        sep = ""
        if prev is not None:
            if gap_newline and keep_newlines:
                sep = "\n"
            elif needs_space(prev, tok, gap):
                sep = " "
            elif before is not None and _merges(_pieces(before, prev, tok)):
                # "1" "." "5" only merge as a triple
                sep = " "
            parts.append(sep)
        parts.append(tok.raw)

        before = prev if prev is not None and sep == "" else None
        prev = tok
        gap = gap_newline = False

    return "".join(parts)


def needs_space(left: Token, right: Token, gap: bool = False) -> bool:
    """True when left and right must stay separated on one line."""
    if left.value in BRACES and left.type == TokenType.PUNCT:
        return True
    if right.value in BRACES and right.type == TokenType.PUNCT:
        return True
    if left.type in WORDLIKE and right.type in WORDLIKE:
        return True
    # "land_percent -5" keeps the sign attached to its number, not the command
    if gap and left.type in WORDLIKE and right.type == TokenType.PUNCT and right.value in SIGNS:
        return True
    # a closed call such as rnd(1,5) is a single engine word
    if gap and left.type == TokenType.PUNCT and left.value == ")" and right.type in WORDLIKE:
        return True
    # "#const A (B + 1)" must not fuse the name into "A(B"
    if gap and left.type in WORDLIKE and right.type == TokenType.PUNCT and right.value == "(":
        return True
    return _merges(_pieces(left, right))


def _pieces(*tokens: Token) -> tuple[tuple[TokenType, str], ...]:
    return tuple((t.type, t.raw) for t in tokens)


@lru_cache(maxsize=1024)
def _merges(pieces: tuple[tuple[TokenType, str], ...]) -> bool:
    """True when the concatenated raw texts lex to something other than pieces."""
    try:
        relexed = tokenize("".join(raw for _, raw in pieces))
    except LexError:
        return True
    got = tuple((t.type, t.raw) for t in relexed if t.type != TokenType.EOF)
    return got != pieces
