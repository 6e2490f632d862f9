"""Macro expansion — #REPEAT blocks and pattern macros."""

from __future__ import annotations

from dataclasses import dataclass, field

from rmsprep.ast import Header, LiteralRun, MacroCall, Marker, Node, Repeat, Root
from rmsprep.errors import Diagnostic, MacroArgumentError, Severity
from rmsprep.numeric import Number, as_int, format_number
from rmsprep.patterns import PATTERNS, PatternDef, Point
from rmsprep.structure import PLAYER_MARKERS
from rmsprep.symbols import ConstantEvaluator, SymbolTable
from rmsprep.tokens import TRIVIA, Span, Token, TokenType, synthetic


@dataclass
class ExpandContext:
    """State carried through expansion."""

    table: SymbolTable
    source: str = ""
    filename: str = "input.rms"
    diagnostics: list[Diagnostic] = field(default_factory=list)
    evaluator: ConstantEvaluator = field(init=False)

    def __post_init__(self) -> None:
        self.evaluator = ConstantEvaluator(self.table, self.source)

    def warn(self, message: str, span: Span) -> None:
        self.diagnostics.append(
            Diagnostic(Severity.WARNING, "MacroWarning", message, span, self.filename)
        )


def expand(root: Root, ctx: ExpandContext) -> Root:
    """Expand repeats, pattern macros and per-player objects.

    Only #BREAK markers and headers remain besides literal runs.
    """
    children = _expand_children(root.children, ctx)
    return Root(tuple(place_per_player(children, ctx)), root.span)


def _expand_children(children: tuple[Node, ...], ctx: ExpandContext) -> list[Node]:
    result: list[Node] = []
    for child in children:
        if isinstance(child, Repeat):
            result.extend(_expand_repeat(child, ctx))
        elif isinstance(child, MacroCall):
            result.extend(_expand_pattern(child, ctx))
        else:
            result.append(child)
    return result


# ---------------------------------------------------------------------------
# Repeat
# ---------------------------------------------------------------------------


def _expand_repeat(node: Repeat, ctx: ExpandContext) -> list[Node]:
    # Innermost first: the body is fully expanded before it is copied
    body = _expand_children(node.children, ctx)
    count = _repeat_count(node, ctx)
    result: list[Node] = []
    for _ in range(count):
        result.extend(_copy(child) for child in body)
    return result


def _repeat_count(node: Repeat, ctx: ExpandContext) -> int:
    if len(node.args) != 1 or not node.args[0]:
        raise MacroArgumentError(
            "#REPEAT takes exactly one count argument", node.open_span, ctx.source
        )
    arg = node.args[0]
    value = ctx.evaluator.fold(arg)
    count = as_int(value) if value is not None else None
    if count is None:
        text = "".join(tok.raw for tok in arg)
        raise MacroArgumentError(
            f"invalid repeat count '{text}': expected an integer literal or a constant "
            "with a single integer value",
            _args_span(arg),
            ctx.source,
        )
    if count < 0:
        ctx.warn(f"negative repeat count {count} expands to nothing", node.open_span)
        return 0
    return count


def _copy(node: Node) -> Node:
    """Fresh container for one repeated copy; tokens themselves are immutable."""
    if isinstance(node, LiteralRun):
        return LiteralRun(tuple(node.tokens), node.span)
    if isinstance(node, Marker):
        return Marker(node.name, node.span)
    if isinstance(node, Header):
        return Header(tuple(_copy(run) for run in node.children), node.span)
    return node


# ---------------------------------------------------------------------------
# Pattern macros
# ---------------------------------------------------------------------------


def _expand_pattern(node: MacroCall, ctx: ExpandContext) -> list[Node]:
    defn = PATTERNS.get(node.name)
    if defn is None:
        known = ", ".join(f"#{name}" for name in sorted(PATTERNS))
        raise MacroArgumentError(
            f"unknown macro: #{node.name} (known macros: {known})", node.span, ctx.source
        )
    values = _bind_args(node, defn, ctx)
    points = defn.layout(*values)
    tokens: list[Token] = []
    for point in points:
        tokens.extend(_land_tokens(point, node.body or (), node.span))
    if not tokens:
        return []
    return [LiteralRun(tuple(tokens), node.span)]


def _bind_args(node: MacroCall, defn: PatternDef, ctx: ExpandContext) -> list[Number]:
    if not defn.required <= len(node.args) <= len(defn.params):
        raise MacroArgumentError(
            f"#{node.name} expects {defn.signature()}, got {len(node.args)} argument(s)",
            node.span,
            ctx.source,
        )

    values: list[Number] = []
    for param, arg in zip(defn.params, node.args):
        value = ctx.evaluator.fold(arg) if arg else None
        if value is None:
            text = "".join(tok.raw for tok in arg) or "<empty>"
            raise MacroArgumentError(
                f"#{node.name} argument '{param.name}' must be numeric, got '{text}'",
                _args_span(arg) if arg else node.span,
                ctx.source,
            )
        if param.count:
            count = as_int(value)
            if count is None or count < 1:
                raise MacroArgumentError(
                    f"#{node.name} argument '{param.name}' must be a positive integer, "
                    f"got {format_number(value)}",
                    _args_span(arg),
                    ctx.source,
                )
            value = count
        values.append(value)
    return values


def _land_tokens(point: Point, body: tuple[Token, ...], span: Span) -> list[Token]:
    """create_land { land_position X Y <body> } followed by a line break."""
    x, y = point

    def word(tt: TokenType, value: str) -> Token:
        return synthetic(tt, value, span)

    space = word(TokenType.WS, " ")
    tokens = [
        word(TokenType.IDENTIFIER, "create_land"),
        space,
        word(TokenType.PUNCT, "{"),
        space,
        word(TokenType.IDENTIFIER, "land_position"),
        space,
        word(TokenType.NUMBER, str(x)),
        space,
        word(TokenType.NUMBER, str(y)),
    ]
    inner = _strip_trivia(body)
    if inner:
        tokens.append(space)
        tokens.extend(inner)
    tokens.extend([space, word(TokenType.PUNCT, "}"), word(TokenType.NEWLINE, "\n")])
    return tokens


def _strip_trivia(tokens: tuple[Token, ...]) -> tuple[Token, ...]:
    start, end = 0, len(tokens)
    while start < end and tokens[start].type in TRIVIA:
        start += 1
    while end > start and tokens[end - 1].type in TRIVIA:
        end -= 1
    return tokens[start:end]


def _args_span(tokens: tuple[Token, ...]) -> Span:
    return Span(tokens[0].span.start, tokens[-1].span.end)


# ---------------------------------------------------------------------------
# Per-player objects
# ---------------------------------------------------------------------------


@dataclass
class _ObjectPlacer:
    """Copy each create_object holding a player marker once per player land.

    Every copy ends with ``place_on_specific_land_id k`` for k in 1..players,
    so objects keep per-player placement on lands that carry a land_id.
    """

    ctx: ExpandContext
    out: list[Node] = field(default_factory=list)
    run: list[Token] = field(default_factory=list)
    obj: list[Token] | None = None
    depth: int = 0
    marker: Marker | None = None

    def feed(self, node: Node) -> None:
        if isinstance(node, LiteralRun):
            for tok in node.tokens:
                self._token(tok)
        elif isinstance(node, Marker) and node.name in PLAYER_MARKERS:
            if self.obj is None or self.depth != 1:
                raise MacroArgumentError(
                    f"#{node.name} must appear directly inside a create_object body",
                    node.span,
                    self.ctx.source,
                )
            self.marker = node
        else:
            self._abandon_object()
            self._flush()
            self.out.append(node)

    def finish(self) -> list[Node]:
        self._abandon_object()
        self._flush()
        return self.out

    def _token(self, tok: Token) -> None:
        if self.obj is None:
            if tok.type == TokenType.IDENTIFIER and tok.value == "create_object":
                self.obj = [tok]
                self.depth = 0
                self.marker = None
            else:
                self.run.append(tok)
            return
        if tok.type == TokenType.PUNCT and tok.value == "{":
            self.depth += 1
        elif tok.type == TokenType.PUNCT and tok.value == "}":
            self.depth -= 1
            if self.depth == 0:
                self._close_object(self.obj, tok)
                return
        self.obj.append(tok)

    def _close_object(self, obj: list[Token], closing: Token) -> None:
        if self.marker is None:
            self.run.extend(obj)
            self.run.append(closing)
        else:
            players = PLAYER_MARKERS[self.marker.name]
            span = self.marker.span

            def word(tt: TokenType, value: str) -> Token:
                return synthetic(tt, value, span)

            newline = word(TokenType.NEWLINE, "\n")
            for land_id in range(1, players + 1):
                if land_id > 1:
                    self.run.append(newline)
                self.run.extend(obj)
                self.run.extend(
                    [
                        word(TokenType.WS, " "),
                        word(TokenType.IDENTIFIER, "place_on_specific_land_id"),
                        word(TokenType.WS, " "),
                        word(TokenType.NUMBER, str(land_id)),
                        newline,
                        closing,
                    ]
                )
        self.obj = None
        self.marker = None

    def _abandon_object(self) -> None:
        """A create_object cut off by a header or #BREAK is kept as written."""
        if self.obj is None:
            return
        if self.marker is not None:
            raise MacroArgumentError(
                f"create_object holding #{self.marker.name} is never closed",
                self.obj[0].span,
                self.ctx.source,
                ((f"#{self.marker.name} used here", self.marker.span),),
            )
        self.run.extend(self.obj)
        self.obj = None

    def _flush(self) -> None:
        if self.run:
            span = Span(self.run[0].span.start, self.run[-1].span.end)
            self.out.append(LiteralRun(tuple(self.run), span))
            self.run = []


def place_per_player(nodes: list[Node], ctx: ExpandContext) -> list[Node]:
    """Expand player placement markers; other nodes pass through unchanged."""
    if not any(isinstance(n, Marker) and n.name in PLAYER_MARKERS for n in nodes):
        return nodes
    placer = _ObjectPlacer(ctx)
    for node in nodes:
        placer.feed(node)
    return placer.finish()
