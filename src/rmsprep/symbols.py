"""Symbol resolution — named actor areas and #const folding.

Named actor areas get sequential numeric IDs in first-seen order, starting
at the table's base index. ``#const`` declarations are collected up front so
that forward references and cycles can be detected, then every operand that
folds to a number is rewritten to a single numeric literal.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from rmsprep.ast import Header, LiteralRun, MacroCall, Marker, Node, Repeat, Root
from rmsprep.errors import CyclicConstantError, UnresolvedSymbolError
from rmsprep.numeric import Number, format_number, parse_number, round_half_away
from rmsprep.tokens import TRIVIA, Span, Token, TokenType, synthetic

# Engine base index for generated actor area IDs, clear of the IDs used by
# the official map scripts
AREA_BASE = 20000

# command -> number of coordinate operands written before the area name
AREA_DECLARATIONS: dict[str, int] = {"actor_area": 0, "create_actor_area": 2}
AREA_REFERENCES = frozenset({"avoid_actor_area", "actor_area_to_place_in"})

RND = "rnd"


@dataclass(frozen=True, slots=True)
class ConstDef:
    """One ``#const NAME operand`` declaration."""

    name: str
    operand: tuple[Token, ...]
    span: Span


class _NotFoldable(Exception):
    """Operand has no static numeric value."""


@dataclass
class SymbolTable:
    """Per-document names: actor area IDs and #const definitions."""

    area_base: int = AREA_BASE
    extern: frozenset[str] = frozenset()
    areas: dict[str, int] = field(default_factory=dict)
    constants: dict[str, list[ConstDef]] = field(default_factory=dict)
    values: dict[str, Number | None] = field(default_factory=dict, repr=False)

    def declare_area(self, name: str) -> int:
        """Return the ID for name, assigning the next free one on first sight."""
        if name not in self.areas:
            self.areas[name] = self.area_base + len(self.areas)
        return self.areas[name]

    def lookup_area(self, name: str) -> int | None:
        return self.areas.get(name)

    def is_constant(self, name: str) -> bool:
        return name in self.constants or name in self.extern

    def names(self) -> set[str]:
        return set(self.areas) | set(self.constants) | set(self.extern)


# ---------------------------------------------------------------------------
# Operand reading and evaluation
# ---------------------------------------------------------------------------


def is_punct(tok: Token, value: str) -> bool:
    return tok.type == TokenType.PUNCT and tok.value == value


def significant(tokens: tuple[Token, ...] | list[Token]) -> list[int]:
    """Indices of the non-trivia tokens."""
    return [i for i, tok in enumerate(tokens) if tok.type not in TRIVIA]


def match_paren(tokens: list[Token], start: int) -> int | None:
    """Index of the ')' closing the '(' at start, or None if unbalanced."""
    depth = 0
    for i in range(start, len(tokens)):
        if is_punct(tokens[i], "("):
            depth += 1
        elif is_punct(tokens[i], ")"):
            depth -= 1
            if depth == 0:
                return i
    return None


def read_operand(sig: list[Token], i: int) -> int | None:
    """Return the index one past the operand starting at sig[i], or None."""
    if i >= len(sig):
        return None
    tok = sig[i]
    if is_punct(tok, "-") and i + 1 < len(sig) and sig[i + 1].type == TokenType.NUMBER:
        return i + 2
    if tok.type == TokenType.NUMBER:
        return i + 1
    if tok.type == TokenType.IDENTIFIER:
        if i + 1 < len(sig) and is_punct(sig[i + 1], "("):
            close = match_paren(sig, i + 1)
            return None if close is None else close + 1
        return i + 1
    if is_punct(tok, "("):
        close = match_paren(sig, i)
        return None if close is None else close + 1
    return None


def referenced_names(operand: tuple[Token, ...] | list[Token]) -> list[Token]:
    """Identifier tokens used as values (function names like rnd excluded)."""
    refs = []
    for i, tok in enumerate(operand):
        if tok.type != TokenType.IDENTIFIER:
            continue
        if i + 1 < len(operand) and is_punct(operand[i + 1], "("):
            continue
        refs.append(tok)
    return refs


class _Expr:
    """Arithmetic over numbers and known constant values."""

    def __init__(self, tokens: list[Token], values: dict[str, Number | None]) -> None:
        self._tokens = tokens
        self._values = values
        self._pos = 0

    def evaluate(self) -> Number:
        value = self._expr()
        if self._pos != len(self._tokens):
            raise _NotFoldable
        return value

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _take(self, value: str) -> bool:
        tok = self._peek()
        if tok is not None and is_punct(tok, value):
            self._pos += 1
            return True
        return False

    def _expr(self) -> Number:
        value = self._term()
        while True:
            if self._take("+"):
                value = value + self._term()
            elif self._take("-"):
                value = value - self._term()
            else:
                return value

    def _term(self) -> Number:
        value = self._unary()
        while True:
            if self._take("*"):
                value = value * self._unary()
            elif self._take("/"):
                divisor = self._unary()
                if divisor == 0:
                    raise _NotFoldable
                if isinstance(value, int) and isinstance(divisor, int):
                    value = round_half_away(value / divisor)
                else:
                    value = value / divisor
            else:
                return value

    def _unary(self) -> Number:
        if self._take("-"):
            return -self._unary()
        return self._primary()

    def _primary(self) -> Number:
        tok = self._peek()
        if tok is None:
            raise _NotFoldable
        if tok.type == TokenType.NUMBER:
            self._pos += 1
            return parse_number(tok.value)
        if tok.type == TokenType.IDENTIFIER:
            # Calls (rnd) have no static value
            self._pos += 1
            value = self._values.get(tok.value)
            if value is None or self._take("("):
                raise _NotFoldable
            return value
        if self._take("("):
            value = self._expr()
            if not self._take(")"):
                raise _NotFoldable
            return value
        raise _NotFoldable


class ConstantEvaluator:
    """Evaluate operands against a SymbolTable, detecting unresolved names and cycles."""

    def __init__(self, table: SymbolTable, source: str) -> None:
        self._table = table
        self._source = source
        self._stack: list[ConstDef] = []

    def fold(self, operand: tuple[Token, ...] | list[Token]) -> Number | None:
        """Return the static value of operand, or None when it has none."""
        values: dict[str, Number | None] = {}
        for ref in referenced_names(operand):
            values[ref.value] = self._value_of(ref)
        try:
            return _Expr([t for t in operand if t.type not in TRIVIA], values).evaluate()
        except _NotFoldable:
            return None

    def fold_definition(self, definition: ConstDef) -> Number | None:
        """Fold one declaration's operand with the declaration on the cycle stack."""
        self._stack.append(definition)
        try:
            return self.fold(definition.operand)
        finally:
            self._stack.pop()

    def check(self, operand: tuple[Token, ...] | list[Token]) -> None:
        """Raise if operand references an undeclared name."""
        for ref in referenced_names(operand):
            self._require(ref)

    def _require(self, ref: Token) -> None:
        if not self._table.is_constant(ref.value) and ref.value not in self._table.areas:
            raise UnresolvedSymbolError(
                ref.value, f"unresolved constant: {ref.value}", ref.span, self._source
            )

    def _value_of(self, ref: Token) -> Number | None:
        self._require(ref)
        name = ref.value
        table = self._table
        if name in table.values:
            return table.values[name]
        if name not in table.constants:
            # extern or area: known to exist, value not visible here
            return table.areas.get(name)

        for i, frame in enumerate(self._stack):
            if frame.name == name:
                chain = [f.name for f in self._stack[i:]] + [name]
                notes = tuple((f"{f.name} defined here", f.span) for f in self._stack[i:])
                raise CyclicConstantError(chain, frame.span, self._source, notes)

        results = [self.fold_definition(d) for d in table.constants[name]]
        value = results[0] if len(results) == 1 else None
        table.values[name] = value
        return value


# ---------------------------------------------------------------------------
# Tree walk
# ---------------------------------------------------------------------------


class Resolver:
    """Resolve named areas and fold constants throughout a block tree."""

    def __init__(self, table: SymbolTable, source: str) -> None:
        self._table = table
        self._source = source
        self._evaluator = ConstantEvaluator(table, source)

    def resolve(self, root: Root) -> Root:
        for tokens in _token_groups(root.children):
            self._collect(tokens)
        return Root(self._resolve_children(root.children), root.span)

    # -- pass 1 --------------------------------------------------------

    def _collect(self, tokens: tuple[Token, ...]) -> None:
        sig = [tokens[i] for i in significant(tokens)]
        for i, tok in enumerate(sig):
            if tok.type != TokenType.DIRECTIVE or tok.value.lower() != "const":
                continue
            if i + 1 >= len(sig) or sig[i + 1].type != TokenType.IDENTIFIER:
                continue
            name_tok = sig[i + 1]
            end = read_operand(sig, i + 2)
            operand = tuple(sig[i + 2 : end]) if end is not None else ()
            self._table.constants.setdefault(name_tok.value, []).append(
                ConstDef(name_tok.value, operand, name_tok.span)
            )

    # -- pass 2 --------------------------------------------------------

    def _resolve_children(self, children: tuple[Node, ...]) -> tuple[Node, ...]:
        result: list[Node] = []
        for child in children:
            if isinstance(child, LiteralRun):
                result.append(LiteralRun(self._rewrite(child.tokens), child.span))
            elif isinstance(child, Repeat):
                for arg in child.args:
                    self._evaluator.check(arg)
                body = self._resolve_children(child.children)
                result.append(Repeat(child.args, body, child.open_span, child.span))
            elif isinstance(child, MacroCall):
                for arg in child.args:
                    self._evaluator.check(arg)
                body = self._rewrite(child.body) if child.body is not None else None
                result.append(MacroCall(child.name, child.args, body, child.span))
            else:
                result.append(child)
        return tuple(result)

    def _rewrite(self, tokens: tuple[Token, ...]) -> tuple[Token, ...]:
        """Return tokens with area names replaced by IDs and constants folded."""
        positions = significant(tokens)
        sig = [tokens[i] for i in positions]
        # (first raw index, last raw index, replacement), applied back to front
        edits: list[tuple[int, int, Token]] = []

        for i, tok in enumerate(sig):
            if tok.type == TokenType.DIRECTIVE and tok.value.lower() == "const":
                edit = self._fold_declaration(sig, positions, i)
                if edit is not None:
                    edits.append(edit)
                continue
            if tok.type != TokenType.IDENTIFIER:
                continue

            if tok.value in AREA_DECLARATIONS:
                j = _area_name_index(sig, i + 1, AREA_DECLARATIONS[tok.value])
                if j is not None and j < len(sig) and sig[j].type == TokenType.IDENTIFIER:
                    name = sig[j]
                    if not self._table.is_constant(name.value):
                        area_id = self._table.declare_area(name.value)
                        replacement = _number_token(area_id, name.span)
                        edits.append((positions[j], positions[j], replacement))
            elif tok.value in AREA_REFERENCES:
                j = i + 1
                if j < len(sig) and sig[j].type == TokenType.IDENTIFIER:
                    edit = self._resolve_reference(sig[j], positions[j])
                    if edit is not None:
                        edits.append(edit)

        if not edits:
            return tuple(tokens)
        out = list(tokens)
        for first, last, replacement in sorted(edits, key=lambda e: e[0], reverse=True):
            out[first : last + 1] = [replacement]
        return tuple(out)

    def _fold_declaration(
        self, sig: list[Token], positions: list[int], i: int
    ) -> tuple[int, int, Token] | None:
        if i + 1 >= len(sig) or sig[i + 1].type != TokenType.IDENTIFIER:
            return None
        end = read_operand(sig, i + 2)
        if end is None:
            return None
        operand = sig[i + 2 : end]
        self._evaluator.check(operand)
        name = sig[i + 1]
        value = self._evaluator.fold_definition(ConstDef(name.value, tuple(operand), name.span))
        if value is None or (len(operand) <= 2 and operand[-1].type == TokenType.NUMBER):
            # already a literal: N or -N
            return None
        span = Span(operand[0].span.start, operand[-1].span.end)
        return positions[i + 2], positions[end - 1], _number_token(value, span)

    def _resolve_reference(self, name: Token, index: int) -> tuple[int, int, Token] | None:
        area_id = self._table.lookup_area(name.value)
        if area_id is not None:
            return index, index, _number_token(area_id, name.span)
        if self._table.is_constant(name.value):
            return None
        raise UnresolvedSymbolError(
            name.value,
            f"unresolved actor area: {name.value} (declare it with actor_area or "
            "create_actor_area before use)",
            name.span,
            self._source,
        )


def _number_token(value: Number, span: Span) -> Token:
    return synthetic(TokenType.NUMBER, format_number(value), span)


def _area_name_index(sig: list[Token], start: int, skip: int) -> int | None:
    """Index of the area name after stepping over skip operands such as rnd(10,20)."""
    j = start
    for _ in range(skip):
        nxt = read_operand(sig, j)
        if nxt is None:
            return None
        j = nxt
    return j


def _token_groups(children: tuple[Node, ...]) -> Iterator[tuple[Token, ...]]:
    """Yield every token sequence in document order, headers excluded."""
    for child in children:
        if isinstance(child, LiteralRun):
            yield child.tokens
        elif isinstance(child, Repeat):
            yield from _token_groups(child.children)
        elif isinstance(child, MacroCall) and child.body is not None:
            yield child.body
        elif isinstance(child, (Header, Marker)):
            continue


def resolve(root: Root, table: SymbolTable, source: str = "") -> Root:
    """Resolve names in root, filling table; returns the rewritten tree."""
    return Resolver(table, source).resolve(root)
