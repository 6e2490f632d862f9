"""Test error messages, position accuracy, context snippets, and diagnostics."""

import pytest

from rmsprep.errors import (
    SYNTAX_KINDS,
    CyclicConstantError,
    LexError,
    MacroArgumentError,
    Severity,
    StructureError,
    UnresolvedSymbolError,
)
from rmsprep.lexer import tokenize
from rmsprep.pipeline import process
from rmsprep.structure import parse


class TestErrorFormatting:
    def test_format_contains_line(self):
        with pytest.raises(LexError) as exc_info:
            tokenize('land_percent "oops')
        formatted = exc_info.value.format()
        assert 'land_percent "oops' in formatted

    def test_format_contains_carets(self):
        with pytest.raises(StructureError) as exc_info:
            parse("#END_REPEAT")
        formatted = exc_info.value.format()
        assert "^^^^^^^^^^^" in formatted

    def test_format_contains_error_prefix(self):
        with pytest.raises(StructureError) as exc_info:
            parse("#END_REPEAT")
        assert exc_info.value.format().startswith("error:")

    def test_format_with_custom_filename(self):
        with pytest.raises(StructureError) as exc_info:
            parse("a\n\n#END_REPEAT")
        formatted = exc_info.value.format("islands.rms")
        assert "--> islands.rms:3:1" in formatted

    def test_format_includes_notes(self):
        with pytest.raises(StructureError) as exc_info:
            parse("#REPEAT(2)\nx\n#HEADER_END")
        formatted = exc_info.value.format("m.rms")
        assert "= note: #REPEAT opened here at m.rms:1:1" in formatted


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [LexError, StructureError, UnresolvedSymbolError, CyclicConstantError, MacroArgumentError],
    )
    def test_all_are_preprocess_errors(self, cls):
        from rmsprep.errors import PreprocessError

        assert issubclass(cls, PreprocessError)

    def test_syntax_kinds(self):
        assert SYNTAX_KINDS == {"LexError", "StructureError"}


class TestDiagnostics:
    def test_error_becomes_diagnostic(self):
        result = process("x\n#END_REPEAT\n", "bad.rms")
        assert result.text is None
        assert not result.ok
        (diag,) = result.diagnostics
        assert diag.severity is Severity.ERROR
        assert diag.kind == "StructureError"
        assert diag.filename == "bad.rms"
        assert diag.span.start.line == 2

    def test_diagnostic_format(self):
        source = "avoid_actor_area NOWHERE"
        result = process(source, "m.rms")
        formatted = result.diagnostics[0].format(source)
        assert formatted.startswith("error: unresolved actor area: NOWHERE")
        assert "m.rms:1:18" in formatted

    def test_warnings_kept_with_error(self):
        result = process("#REPEAT(-1) x #END_REPEAT\n#CIRCLE_LANDS(0, 5)")
        kinds = [d.severity for d in result.diagnostics]
        assert kinds == [Severity.WARNING, Severity.ERROR]
        assert len(result.warnings) == 1
        assert len(result.errors) == 1

    def test_warning_format(self):
        source = "#REPEAT(-1) x #END_REPEAT"
        result = process(source)
        assert result.ok
        assert result.diagnostics[0].format(source).startswith("warning:")
