"""Block tree node types for structured random map scripts."""

from __future__ import annotations

from dataclasses import dataclass

from rmsprep.tokens import Span, Token


@dataclass(frozen=True, slots=True)
class LiteralRun:
    """Maximal run of plain tokens between structural nodes."""

    tokens: tuple[Token, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Marker:
    """Standalone directive with no arguments or body, e.g. #BREAK or #PLACE8."""

    name: str
    span: Span


@dataclass(frozen=True, slots=True)
class MacroCall:
    """A pattern macro invocation: #NAME(arg, ...) { body }."""

    name: str
    args: tuple[tuple[Token, ...], ...]
    body: tuple[Token, ...] | None
    span: Span


@dataclass(frozen=True, slots=True)
class Repeat:
    """#REPEAT(count) ... #END_REPEAT block; the count is evaluated on expansion."""

    args: tuple[tuple[Token, ...], ...]
    children: tuple[Node, ...]
    open_span: Span
    span: Span


@dataclass(frozen=True, slots=True)
class Header:
    """#HEADER_START ... #HEADER_END content, emitted as leading comments."""

    children: tuple[LiteralRun, ...]
    span: Span

    @property
    def text(self) -> str:
        return "".join(tok.raw for run in self.children for tok in run.tokens)


@dataclass(frozen=True, slots=True)
class Root:
    """Root document node."""

    children: tuple[Node, ...]
    span: Span


Node = LiteralRun | Marker | MacroCall | Repeat | Header
