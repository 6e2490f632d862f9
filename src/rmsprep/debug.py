"""--debug block tree dump to stderr."""

from __future__ import annotations

import sys
from typing import TextIO

from rmsprep.ast import Header, LiteralRun, MacroCall, Marker, Node, Repeat, Root
from rmsprep.tokens import Token


def dump_tree(root: Root, *, file: TextIO = sys.stderr) -> None:
    """Print a human-readable block tree to *file*."""
    file.write("Root\n")
    for child in root.children:
        _dump_node(child, 1, file)


def _indent(depth: int) -> str:
    return "  " * depth


def _tokens_inline(tokens: tuple[Token, ...]) -> str:
    return "".join(tok.raw for tok in tokens)


def _dump_node(node: Node, depth: int, f: TextIO) -> None:
    if isinstance(node, LiteralRun):
        f.write(f"{_indent(depth)}LiteralRun({_tokens_inline(node.tokens)!r})\n")
    elif isinstance(node, Marker):
        f.write(f"{_indent(depth)}Marker #{node.name}\n")
    elif isinstance(node, Repeat):
        count = ", ".join(_tokens_inline(arg) for arg in node.args)
        f.write(f"{_indent(depth)}Repeat({count})\n")
        for child in node.children:
            _dump_node(child, depth + 1, f)
    elif isinstance(node, Header):
        f.write(f"{_indent(depth)}Header({node.text!r})\n")
    elif isinstance(node, MacroCall):
        args = ", ".join(_tokens_inline(arg) for arg in node.args)
        f.write(f"{_indent(depth)}MacroCall #{node.name}({args})\n")
        if node.body is not None:
            f.write(f"{_indent(depth + 1)}Body({_tokens_inline(node.body)!r})\n")
