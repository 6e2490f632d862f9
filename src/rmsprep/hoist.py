"""RND hoisting — lift every rnd(...) into a generated #const at the document root.

Declarations land before every other line, so a document constant used in
the call's arguments is replaced by its folded value first. A call that
depends on a constant without a single static value stays where it is.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rmsprep.ast import LiteralRun, Node, Root
from rmsprep.errors import Diagnostic, Severity
from rmsprep.numeric import format_number
from rmsprep.symbols import RND, ConstantEvaluator, SymbolTable, is_punct, match_paren
from rmsprep.tokens import TRIVIA, Span, Token, TokenType, synthetic


@dataclass
class Hoister:
    """Replace rnd calls with fresh constant names, in document order."""

    table: SymbolTable
    prefix: str = "C"
    filename: str = "input.rms"
    diagnostics: list[Diagnostic] = field(default_factory=list)
    _used: set[str] = field(default_factory=set, init=False)
    _counter: int = field(default=0, init=False)
    _decls: list[Token] = field(default_factory=list, init=False)
    _evaluator: ConstantEvaluator = field(init=False)

    def __post_init__(self) -> None:
        self._evaluator = ConstantEvaluator(self.table, "")

    def hoist(self, root: Root) -> Root:
        self._used = self.table.names() | _identifiers(root.children)
        children = [self._hoist_node(child) for child in root.children]
        if not self._decls:
            return root
        start = root.span.start
        decl_run = LiteralRun(tuple(self._decls), Span(start, start))
        return Root((decl_run, *children), root.span)

    def _hoist_node(self, node: Node) -> Node:
        if isinstance(node, LiteralRun):
            return LiteralRun(self._hoist_tokens(node.tokens), node.span)
        return node

    def _hoist_tokens(self, tokens: tuple[Token, ...]) -> tuple[Token, ...]:
        out: list[Token] = []
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            close = self._call_end(tokens, i)
            if close is None or _is_const_value(out):
                out.append(tok)
                i += 1
                continue
            call = tokens[i : close + 1]
            blocker = self._unfoldable_ref(call)
            if blocker is not None:
                self._warn(
                    f"rnd call uses {blocker.value}, which has no single static value; "
                    "left in place",
                    blocker.span,
                )
                out.extend(call)
                i = close + 1
                continue
            name = self._fresh_name(tok.span)
            self._declare(name, self._fold_args(call), tok.span)
            span = Span(tok.span.start, tokens[close].span.end)
            out.append(synthetic(TokenType.IDENTIFIER, name, span))
            i = close + 1
        return tuple(out)

    def _call_end(self, tokens: tuple[Token, ...], i: int) -> int | None:
        """Index of the ')' ending an rnd call starting at i, or None."""
        tok = tokens[i]
        if tok.type != TokenType.IDENTIFIER or tok.value != RND:
            return None
        if i + 1 >= len(tokens) or not is_punct(tokens[i + 1], "("):
            return None
        return match_paren(list(tokens), i + 1)

    # -- arguments -----------------------------------------------------

    def _is_constant(self, tok: Token) -> bool:
        return tok.type == TokenType.IDENTIFIER and tok.value in self.table.constants

    def _unfoldable_ref(self, call: tuple[Token, ...]) -> Token | None:
        for tok in call[1:]:
            if self._is_constant(tok) and self._evaluator.fold((tok,)) is None:
                return tok
        return None

    def _fold_args(self, call: tuple[Token, ...]) -> tuple[Token, ...]:
        """The call with document constants replaced by their values."""
        out = [call[0]]
        for tok in call[1:]:
            value = self._evaluator.fold((tok,)) if self._is_constant(tok) else None
            if value is not None:
                tok = synthetic(TokenType.NUMBER, format_number(value), tok.span)
            out.append(tok)
        return tuple(out)

    # -- names and declarations ----------------------------------------

    def _fresh_name(self, span: Span) -> str:
        while True:
            self._counter += 1
            name = f"{self.prefix}{self._counter}"
            if name not in self._used:
                self._used.add(name)
                return name
            self._warn(
                f"generated constant name {name} is already used; skipping to the next", span
            )

    def _warn(self, message: str, span: Span) -> None:
        self.diagnostics.append(
            Diagnostic(Severity.WARNING, "HoistWarning", message, span, self.filename)
        )

    def _declare(self, name: str, call: tuple[Token, ...], span: Span) -> None:
        def word(tt: TokenType, value: str, raw: str | None = None) -> Token:
            return synthetic(tt, value, span, raw)

        space = word(TokenType.WS, " ")
        self._decls.extend(
            [
                word(TokenType.DIRECTIVE, "const", "#const"),
                space,
                word(TokenType.IDENTIFIER, name),
                space,
                *(t for t in call if t.type not in TRIVIA),
                word(TokenType.NEWLINE, "\n"),
            ]
        )


def _is_const_value(preceding: list[Token]) -> bool:
    """True when the preceding significant tokens are ``#const NAME``."""
    sig: list[Token] = []
    for tok in reversed(preceding):
        if tok.type not in TRIVIA:
            sig.insert(0, tok)
            if len(sig) == 2:
                break
    return (
        len(sig) == 2
        and sig[0].type == TokenType.DIRECTIVE
        and sig[0].value.lower() == "const"
        and sig[1].type == TokenType.IDENTIFIER
    )


def _identifiers(children: tuple[Node, ...]) -> set[str]:
    names: set[str] = set()
    for child in children:
        if isinstance(child, LiteralRun):
            names.update(t.value for t in child.tokens if t.type == TokenType.IDENTIFIER)
    return names


def hoist(
    root: Root,
    table: SymbolTable,
    prefix: str = "C",
    filename: str = "input.rms",
    diagnostics: list[Diagnostic] | None = None,
) -> Root:
    """Hoist rnd calls in an expanded tree; warnings go to diagnostics."""
    hoister = Hoister(table, prefix, filename)
    result = hoister.hoist(root)
    if diagnostics is not None:
        diagnostics.extend(hoister.diagnostics)
    return result
