"""Error types and diagnostics with formatted source context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from rmsprep.tokens import Span


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


def render_snippet(
    severity: str,
    message: str,
    span: Span,
    source: str,
    filename: str,
    notes: tuple[tuple[str, Span], ...] = (),
) -> str:
    """Render a message with the offending source line and carets under the span."""
    lines = source.splitlines(keepends=True)
    line_idx = span.start.line - 1
    col = span.start.column

    # Build the source line (strip trailing newline for display)
    if 0 <= line_idx < len(lines):
        source_line = lines[line_idx].rstrip("\n").rstrip("\r")
    else:
        source_line = ""

    # Underline the full span when on one line, otherwise to end of line
    if span.end.line == span.start.line:
        underline_len = max(1, span.end.column - col)
    else:
        underline_len = max(1, len(source_line) - col + 1)

    pad = " " * (col - 1)
    carets = "^" * underline_len

    line_num = str(span.start.line)
    gutter_width = len(line_num) + 1

    blank_gutter = " " * gutter_width + "|"
    line_gutter = f"{line_num:>{gutter_width - 1}} |"

    result = (
        f"{severity}: {message}\n"
        f"{' ' * gutter_width}--> {filename}:{span.start.line}:{col}\n"
        f"{blank_gutter}\n"
        f"{line_gutter} {source_line}\n"
        f"{blank_gutter} {pad}{carets}"
    )
    for text, note_span in notes:
        result += f"\n{' ' * gutter_width}= note: {text} at {filename}:{_loc(note_span)}"
    return result


def _loc(span: Span) -> str:
    return f"{span.start.line}:{span.start.column}"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A reportable problem in one document."""

    severity: Severity
    kind: str
    message: str
    span: Span
    filename: str = "input.rms"
    notes: tuple[tuple[str, Span], ...] = field(default=())

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def format(self, source: str) -> str:
        return render_snippet(
            self.severity.value, self.message, self.span, source, self.filename, self.notes
        )


class PreprocessError(Exception):
    """Raised by the first pipeline stage that observes a violation."""

    def __init__(
        self,
        message: str,
        span: Span,
        source: str = "",
        notes: tuple[tuple[str, Span], ...] = (),
    ) -> None:
        self.message = message
        self.span = span
        self.source = source
        self.notes = notes
        super().__init__(self.format())

    def format(self, filename: str = "input.rms") -> str:
        return render_snippet("error", self.message, self.span, self.source, filename, self.notes)

    def to_diagnostic(self, filename: str = "input.rms") -> Diagnostic:
        return Diagnostic(
            Severity.ERROR, type(self).__name__, self.message, self.span, filename, self.notes
        )


class LexError(PreprocessError):
    """Malformed token or unterminated comment/string."""


class StructureError(PreprocessError):
    """Unmatched or unterminated block directive."""


class UnresolvedSymbolError(PreprocessError):
    """Reference to a name that was never declared."""

    def __init__(
        self,
        name: str,
        message: str,
        span: Span,
        source: str = "",
        notes: tuple[tuple[str, Span], ...] = (),
    ) -> None:
        self.name = name
        super().__init__(message, span, source, notes)


class CyclicConstantError(PreprocessError):
    """A #const definition that depends on itself."""

    def __init__(
        self,
        chain: list[str],
        span: Span,
        source: str = "",
        notes: tuple[tuple[str, Span], ...] = (),
    ) -> None:
        self.chain = list(chain)
        message = "cyclic constant definition: " + " -> ".join(self.chain)
        super().__init__(message, span, source, notes)


class MacroArgumentError(PreprocessError):
    """Invalid repeat count, or unknown or malformed pattern macro invocation."""


# Diagnostic kinds reported with exit code 1 by the CLI; everything else is 2
SYNTAX_KINDS = frozenset({LexError.__name__, StructureError.__name__})
