"""Tests for the LSP server — diagnostic generation."""

from __future__ import annotations

import pytest
from lsprotocol.types import (
    DiagnosticSeverity,
    PublishDiagnosticsParams,
    TextDocumentItem,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer
from pygls.workspace import Workspace

from rmsprep.lsp import _validate


@pytest.fixture
def lsp_env():
    """Create a LanguageServer with an initialized workspace and captured diagnostics."""
    ls = LanguageServer("test", "v0", text_document_sync_kind=TextDocumentSyncKind.Full)
    ws = Workspace(None)
    ls.protocol._workspace = ws

    published: list[PublishDiagnosticsParams] = []
    ls.text_document_publish_diagnostics = lambda params: published.append(params)

    def put(source: str, uri: str = "file:///test.rms") -> None:
        ws.put_text_document(
            TextDocumentItem(uri=uri, language_id="rms", version=0, text=source)
        )

    return ls, published, put


# ---------------------------------------------------------------------------
# Errors → Error severity
# ---------------------------------------------------------------------------


class TestErrors:
    def test_lex_error(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('land_percent "5')
        _validate(ls, "file:///test.rms")

        assert len(published) == 1
        diags = published[0].diagnostics
        assert len(diags) == 1
        d = diags[0]
        assert d.severity == DiagnosticSeverity.Error
        assert "unterminated string" in d.message
        assert d.source == "rmsprep"
        assert d.code == "LexError"
        # opening quote is at column 14 (1-based) → character 13 (0-based)
        assert d.range.start.line == 0
        assert d.range.start.character == 13

    def test_structure_error_with_related_location(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("#REPEAT(2)\nx\n#HEADER_END")
        _validate(ls, "file:///test.rms")

        d = published[0].diagnostics[0]
        assert d.severity == DiagnosticSeverity.Error
        assert d.range.start.line == 2
        assert d.related_information is not None
        assert d.related_information[0].location.range.start.line == 0

    def test_unresolved_area(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("x\navoid_actor_area GHOST")
        _validate(ls, "file:///test.rms")

        d = published[0].diagnostics[0]
        assert "GHOST" in d.message
        assert d.range.start.line == 1
        assert d.range.start.character == 17
        assert d.range.end.character == 22


# ---------------------------------------------------------------------------
# Warnings → Warning severity
# ---------------------------------------------------------------------------


class TestWarnings:
    def test_negative_repeat(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("#REPEAT(-3)\nx\n#END_REPEAT")
        _validate(ls, "file:///test.rms")

        diags = published[0].diagnostics
        assert len(diags) == 1
        assert diags[0].severity == DiagnosticSeverity.Warning
        assert diags[0].source == "rmsprep"


# ---------------------------------------------------------------------------
# Clean document → empty diagnostics
# ---------------------------------------------------------------------------


class TestCleanDocument:
    def test_valid_document(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("<LAND_GENERATION>\n#CIRCLE_LANDS(4, 30) { terrain_type GRASS }\n")
        _validate(ls, "file:///test.rms")

        assert len(published) == 1
        assert published[0].diagnostics == []


# ---------------------------------------------------------------------------
# Project config beside the document
# ---------------------------------------------------------------------------


class TestConfig:
    def test_extern_from_config(self, lsp_env, tmp_path) -> None:
        ls, published, put = lsp_env
        (tmp_path / "rmsprep.toml").write_text('[symbols]\nextern = ["DLC_LAND"]\n')
        uri = (tmp_path / "map.rms").as_uri()
        put("#const A (DLC_LAND + 1)", uri)
        _validate(ls, uri)

        assert published[0].diagnostics == []

    def test_no_config_reports_unresolved(self, lsp_env, tmp_path) -> None:
        ls, published, put = lsp_env
        uri = (tmp_path / "map.rms").as_uri()
        put("#const A (DLC_LAND + 1)", uri)
        _validate(ls, uri)

        assert published[0].diagnostics[0].code == "UnresolvedSymbolError"
