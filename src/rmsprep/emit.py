"""Emitter — serialize a processed block tree to engine-ready script text."""

from __future__ import annotations

from rmsprep.ast import Header, LiteralRun, Root
from rmsprep.errors import LexError
from rmsprep.lexer import tokenize
from rmsprep.minify import minify
from rmsprep.tokens import Token, TokenType


def emit(root: Root, keep_newlines: bool = True) -> str:
    """Render header comment lines followed by the minimized body.

    The result carries no trailing newline.
    """
    lines: list[str] = []
    body: list[Token] = []

    for child in root.children:
        if isinstance(child, Header):
            lines.extend(header_lines(child))
        elif isinstance(child, LiteralRun):
            body.extend(child.tokens)

    text = minify(body, keep_newlines)
    if text:
        lines.append(text)
    return "\n".join(lines)


def header_lines(header: Header) -> list[str]:
    """One comment line per non-blank line of header content."""
    result = []
    for line in header.text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if _is_single_comment(stripped):
            result.append(stripped)
        else:
            # the engine does not nest comments
            safe = stripped.replace("*/", "* /").replace("/*", "/ *")
            result.append(f"/* {safe} */")
    return result


def _is_single_comment(line: str) -> bool:
    if not line.startswith("/*"):
        return False
    try:
        tokens = tokenize(line)
    except LexError:
        return False
    return len(tokens) == 2 and tokens[0].type == TokenType.COMMENT
