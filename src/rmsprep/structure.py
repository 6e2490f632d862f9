"""Block structurer — converts a token stream into a block tree.

Nesting is tracked with an explicit stack of open frames: an opening
directive pushes a frame, a closing directive pops the innermost one and
attaches the finished block to its parent.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rmsprep.ast import Header, LiteralRun, MacroCall, Marker, Node, Repeat, Root
from rmsprep.errors import StructureError
from rmsprep.lexer import HEADER_END, HEADER_START, tokenize
from rmsprep.tokens import TRIVIA, Span, Token, TokenType

# Engine directives that pass through untouched (compared lowercase)
NATIVE_DIRECTIVES = frozenset(
    {"const", "define", "undefine", "include", "include_drs", "includexs"}
)

REPEAT = "REPEAT"
END_REPEAT = "END_REPEAT"
BREAK = "BREAK"

# per-player placement marker -> number of player lands the object is copied to
PLAYER_MARKERS: dict[str, int] = {"SET_PLACE_FOR_EVERY_PLAYER": 2, "PLACE8": 8}

# closing directive -> opening directive it pairs with
_CLOSERS: dict[str, str] = {END_REPEAT: REPEAT, HEADER_END: HEADER_START}

_ROOT = "root"


@dataclass
class _Frame:
    """An open block whose closing directive has not been seen yet."""

    kind: str
    open_span: Span
    args: tuple[tuple[Token, ...], ...] = ()
    children: list[Node] = field(default_factory=list)
    pending: list[Token] = field(default_factory=list)

    def flush(self) -> None:
        if self.pending:
            span = Span(self.pending[0].span.start, self.pending[-1].span.end)
            self.children.append(LiteralRun(tuple(self.pending), span))
            self.pending = []

    def attach(self, node: Node) -> None:
        self.flush()
        self.children.append(node)


def is_native(tok: Token) -> bool:
    return tok.type == TokenType.DIRECTIVE and tok.value.lower() in NATIVE_DIRECTIVES


class Structurer:
    """Build a Root block from tokens, validating directive pairing."""

    def __init__(self, tokens: list[Token], source: str, filename: str) -> None:
        self._tokens = tokens
        self._source = source
        self._filename = filename
        self._pos = 0
        start = tokens[0].span.start
        self._stack: list[_Frame] = [_Frame(_ROOT, Span(start, start))]

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]  # EOF

    def _at_eof(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.type != TokenType.EOF:
            self._pos += 1
        return tok

    def _prev_span(self) -> Span:
        return self._tokens[self._pos - 1].span

    def _error(
        self, message: str, span: Span, notes: tuple[tuple[str, Span], ...] = ()
    ) -> StructureError:
        return StructureError(message, span, self._source, notes)

    @property
    def _top(self) -> _Frame:
        return self._stack[-1]

    # ------------------------------------------------------------------
    # Document level
    # ------------------------------------------------------------------

    def structure(self) -> Root:
        while not self._at_eof():
            tok = self._peek()
            if self._top.kind == HEADER_START:
                self._header_token(tok)
            elif tok.type == TokenType.DIRECTIVE and not is_native(tok):
                self._directive(tok)
            else:
                self._top.pending.append(self._advance())

        if len(self._stack) > 1:
            open_frames = self._stack[1:]
            listing = ", ".join(
                f"#{f.kind} opened at {f.open_span.start.line}:{f.open_span.start.column}"
                for f in open_frames
            )
            notes = tuple((f"#{f.kind} opened here", f.open_span) for f in open_frames)
            raise self._error(f"unterminated block: {listing}", open_frames[-1].open_span, notes)

        root = self._stack[0]
        root.flush()
        span = Span(self._tokens[0].span.start, self._peek().span.end)
        return Root(tuple(root.children), span)

    def _header_token(self, tok: Token) -> None:
        if tok.type == TokenType.DIRECTIVE and tok.value.upper() == HEADER_END:
            self._close(self._advance())
        else:
            self._top.pending.append(self._advance())

    # ------------------------------------------------------------------
    # Directives
    # ------------------------------------------------------------------

    def _directive(self, tok: Token) -> None:
        name = tok.value.upper()

        if name in _CLOSERS:
            self._close(self._advance())
            return

        if name == REPEAT:
            self._advance()
            args = self._parse_args(tok)
            if args is None:
                raise self._error("expected '(' with a count after #REPEAT", tok.span)
            open_span = Span(tok.span.start, self._prev_span().end)
            self._top.flush()
            self._stack.append(_Frame(REPEAT, open_span, args))
            return

        if name == HEADER_START:
            if self._top.kind != _ROOT:
                raise self._error(
                    "#HEADER_START must appear at the top level",
                    tok.span,
                    ((f"#{self._top.kind} opened here", self._top.open_span),),
                )
            self._advance()
            self._top.flush()
            self._stack.append(_Frame(HEADER_START, tok.span))
            return

        if name == BREAK or name in PLAYER_MARKERS:
            self._advance()
            self._top.attach(Marker(name, tok.span))
            return

        self._top.attach(self._parse_macro_call())

    def _close(self, tok: Token) -> None:
        name = tok.value.upper()
        opener = _CLOSERS[name]
        frame = self._top

        if frame.kind == _ROOT:
            raise self._error(f"unmatched #{tok.value}: no open block", tok.span)

        if frame.kind != opener:
            loc = f"{frame.open_span.start.line}:{frame.open_span.start.column}"
            raise self._error(
                f"unmatched #{tok.value}: innermost open block is #{frame.kind} at {loc}",
                tok.span,
                ((f"#{frame.kind} opened here", frame.open_span),),
            )

        self._stack.pop()
        frame.flush()
        span = Span(frame.open_span.start, tok.span.end)
        if frame.kind == REPEAT:
            node: Node = Repeat(frame.args, tuple(frame.children), frame.open_span, span)
        else:
            runs = tuple(c for c in frame.children if isinstance(c, LiteralRun))
            node = Header(runs, span)
        self._top.attach(node)

    # ------------------------------------------------------------------
    # Pattern macro calls
    # ------------------------------------------------------------------

    def _parse_macro_call(self) -> MacroCall:
        tok = self._advance()
        args = self._parse_args(tok) or ()

        body: tuple[Token, ...] | None = None
        offset = 0
        while self._peek(offset).type in TRIVIA:
            offset += 1
        nxt = self._peek(offset)
        if nxt.type == TokenType.PUNCT and nxt.value == "{":
            self._pos += offset
            body = self._parse_body(tok)

        span = Span(tok.span.start, self._prev_span().end)
        return MacroCall(tok.value.upper(), args, body, span)

    def _parse_args(self, directive: Token) -> tuple[tuple[Token, ...], ...] | None:
        """Parse an optional ``( ... )`` list into comma-separated significant tokens."""
        offset = 0
        while self._peek(offset).type == TokenType.WS:
            offset += 1
        opener = self._peek(offset)
        if not (opener.type == TokenType.PUNCT and opener.value == "("):
            return None
        self._pos += offset
        self._advance()  # consume '('

        args: list[tuple[Token, ...]] = []
        current: list[Token] = []
        depth = 0
        while True:
            if self._at_eof():
                raise self._error(
                    f"unterminated argument list for #{directive.value}", directive.span
                )
            tok = self._advance()
            if tok.type == TokenType.PUNCT and tok.value == "(":
                depth += 1
            elif tok.type == TokenType.PUNCT and tok.value == ")":
                if depth == 0:
                    break
                depth -= 1
            elif tok.type == TokenType.PUNCT and tok.value == "," and depth == 0:
                args.append(tuple(current))
                current = []
                continue
            if tok.type not in TRIVIA:
                current.append(tok)

        if current or args:
            args.append(tuple(current))
        return tuple(args)

    def _parse_body(self, directive: Token) -> tuple[Token, ...]:
        """Collect the tokens between a '{' and its matching '}'."""
        self._advance()  # consume '{'
        body: list[Token] = []
        depth = 0
        while True:
            if self._at_eof():
                raise self._error(f"unterminated body for #{directive.value}", directive.span)
            tok = self._advance()
            if tok.type == TokenType.PUNCT and tok.value == "{":
                depth += 1
            elif tok.type == TokenType.PUNCT and tok.value == "}":
                if depth == 0:
                    return tuple(body)
                depth -= 1
            elif tok.type == TokenType.DIRECTIVE and not is_native(tok):
                raise self._error(
                    f"#{tok.value} is not allowed inside the body of #{directive.value}",
                    tok.span,
                    ((f"#{directive.value} called here", directive.span),),
                )
            body.append(tok)


def structure(tokens: list[Token], source: str, filename: str = "input.rms") -> Root:
    """Structure an already-lexed token stream."""
    return Structurer(tokens, source, filename).structure()


def parse(source: str, filename: str = "input.rms") -> Root:
    """Convenience function: tokenize and structure source text."""
    tokens = tokenize(source, filename)
    return structure(tokens, source, filename)
