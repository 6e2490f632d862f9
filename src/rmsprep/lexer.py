"""RMS lexer — converts source text into a flat token stream."""

from __future__ import annotations

import re

from rmsprep.errors import LexError
from rmsprep.tokens import (
    Position,
    Span,
    Token,
    TokenType,
    is_digit,
    is_ident_char,
    is_ident_start,
)

HEADER_START = "HEADER_START"
HEADER_END = "HEADER_END"

_HEADER_END_RE = re.compile(r"#HEADER_END(?![A-Za-z0-9_])", re.IGNORECASE)


class Lexer:
    """Tokenize random map script source into a stream of Token objects.

    The token stream covers the input without gaps: joining every token's
    ``raw`` text reproduces the source exactly.
    """

    def __init__(self, source: str, filename: str = "input.rms") -> None:
        self._source = source
        self._filename = filename
        self._pos = 0
        self._line = 1
        self._col = 1
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the full source and return the token list."""
        while self._pos < len(self._source):
            self._lex_one()
        self._emit(TokenType.EOF, "", "")
        return self._tokens

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _current_pos(self) -> Position:
        return Position(self._line, self._col, self._pos)

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _advance(self) -> str:
        ch = self._source[self._pos]
        self._pos += 1
        if ch == "\n":
            self._line += 1
            self._col = 1
        else:
            self._col += 1
        return ch

    def _emit(self, tt: TokenType, value: str, raw: str, start: Position | None = None) -> Token:
        end = self._current_pos()
        if start is None:
            start = end
        tok = Token(tt, value, raw, Span(start, end))
        self._tokens.append(tok)
        return tok

    def _emit_from(self, tt: TokenType, start: Position, value: str | None = None) -> Token:
        raw = self._source[start.offset : self._pos]
        return self._emit(tt, raw if value is None else value, raw, start)

    def _error(self, message: str, start: Position | None = None) -> LexError:
        if start is None:
            start = self._current_pos()
        end = Position(start.line, start.column + 1, start.offset + 1)
        return LexError(message, Span(start, end), self._source)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _lex_one(self) -> None:
        ch = self._peek()

        if ch == "\0":
            raise self._error("NUL character in source")

        if ch == "/" and self._peek(1) == "*":
            self._lex_block_comment()
            return

        if ch == "/" and self._peek(1) == "/":
            self._lex_line_comment()
            return

        if ch == "\n":
            start = self._current_pos()
            self._advance()
            self._emit(TokenType.NEWLINE, "\n", "\n", start)
            return

        if ch == "\r" and self._peek(1) == "\n":
            start = self._current_pos()
            self._advance()
            self._advance()
            self._emit(TokenType.NEWLINE, "\n", "\r\n", start)
            return

        if ch in " \t\f\v" or ch == "\r":
            self._lex_ws()
            return

        if ch == "#" and is_ident_char(self._peek(1)):
            self._lex_directive()
            return

        if ch == '"':
            self._lex_string()
            return

        if is_ident_start(ch):
            self._lex_identifier()
            return

        if is_digit(ch):
            self._lex_number()
            return

        if ch.isascii() and not ch.isalnum():
            start = self._current_pos()
            self._advance()
            self._emit(TokenType.PUNCT, ch, ch, start)
            return

        # Anything else is TEXT
        self._lex_text()

    # ------------------------------------------------------------------
    # Simple tokens
    # ------------------------------------------------------------------

    def _lex_ws(self) -> None:
        start = self._current_pos()
        while self._pos < len(self._source):
            ch = self._peek()
            if ch in " \t\f\v" or (ch == "\r" and self._peek(1) != "\n"):
                self._advance()
            else:
                break
        self._emit_from(TokenType.WS, start)

    def _lex_identifier(self) -> None:
        start = self._current_pos()
        while self._pos < len(self._source) and is_ident_char(self._peek()):
            self._advance()
        self._emit_from(TokenType.IDENTIFIER, start)

    def _lex_number(self) -> None:
        start = self._current_pos()
        while is_digit(self._peek()):
            self._advance()
        if self._peek() == "." and is_digit(self._peek(1)):
            self._advance()
            while is_digit(self._peek()):
                self._advance()
        self._emit_from(TokenType.NUMBER, start)

    def _lex_directive(self) -> None:
        start = self._current_pos()
        self._advance()  # consume '#'
        while self._pos < len(self._source) and is_ident_char(self._peek()):
            self._advance()
        raw = self._source[start.offset : self._pos]
        self._emit(TokenType.DIRECTIVE, raw[1:], raw, start)
        if raw[1:].upper() == HEADER_START:
            self._lex_header_text()

    def _lex_header_text(self) -> None:
        """Header content is prose: one TEXT token per line up to #HEADER_END."""
        end = _find_header_end(self._source, self._pos)
        while self._pos < end:
            ch = self._peek()
            if ch == "\0":
                raise self._error("NUL character in source")
            if ch == "\n" or (ch == "\r" and self._peek(1) == "\n"):
                start = self._current_pos()
                raw = self._advance()
                if raw == "\r":
                    raw += self._advance()
                self._emit(TokenType.NEWLINE, "\n", raw, start)
                continue
            start = self._current_pos()
            while self._pos < end:
                ch = self._peek()
                if ch in "\0\n" or (ch == "\r" and self._peek(1) == "\n"):
                    break
                self._advance()
            self._emit_from(TokenType.TEXT, start)

    def _lex_text(self) -> None:
        start = self._current_pos()
        self._advance()
        while self._pos < len(self._source):
            ch = self._peek()
            if ch.isascii() or ch.isspace():
                break
            self._advance()
        self._emit_from(TokenType.TEXT, start)

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def _lex_string(self) -> None:
        start = self._current_pos()
        self._advance()  # consume opening quote
        chars: list[str] = []
        while True:
            ch = self._peek()
            if ch == "" or ch == "\n" or (ch == "\r" and self._peek(1) == "\n"):
                raise self._error("unterminated string literal", start)
            if ch == "\\" and self._peek(1) == '"':
                self._advance()
                chars.append(self._advance())
                continue
            self._advance()
            if ch == '"':
                break
            chars.append(ch)
        self._emit_from(TokenType.STRING, start, "".join(chars))

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def _lex_line_comment(self) -> None:
        start = self._current_pos()
        while self._pos < len(self._source):
            ch = self._peek()
            if ch == "\n" or (ch == "\r" and self._peek(1) == "\n"):
                break
            self._advance()
        self._emit_from(TokenType.COMMENT, start)

    def _lex_block_comment(self) -> None:
        """Scan a /* ... */ comment, counting nested openers."""
        start = self._current_pos()
        self._advance()
        self._advance()
        depth = 1
        while depth > 0:
            if self._pos >= len(self._source):
                raise self._error("unterminated block comment", start)
            if self._peek() == "/" and self._peek(1) == "*":
                self._advance()
                self._advance()
                depth += 1
            elif self._peek() == "*" and self._peek(1) == "/":
                self._advance()
                self._advance()
                depth -= 1
            else:
                self._advance()
        self._emit_from(TokenType.COMMENT, start)


def _find_header_end(source: str, pos: int) -> int:
    """Offset of the next ``#HEADER_END`` directive at or after pos, else len(source)."""
    match = _HEADER_END_RE.search(source, pos)
    return match.start() if match else len(source)


def tokenize(source: str, filename: str = "input.rms") -> list[Token]:
    """Convenience function: tokenize source text and return token list."""
    return Lexer(source, filename).tokenize()
