"""Minimal LSP server for random map scripts — diagnostics only."""

from __future__ import annotations

import argparse
import tomllib
from pathlib import Path

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticRelatedInformation,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Location,
    LogMessageParams,
    MessageType,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from rmsprep import __version__
from rmsprep import errors
from rmsprep.cli import load_config, options_from_config
from rmsprep.pipeline import Options, process
from rmsprep.tokens import Span

server = LanguageServer(
    "rmsprep-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full
)

_SEVERITY = {
    errors.Severity.ERROR: DiagnosticSeverity.Error,
    errors.Severity.WARNING: DiagnosticSeverity.Warning,
}


def _range(span: Span) -> Range:
    start_line = span.start.line - 1
    start_col = span.start.column - 1
    end_line = span.end.line - 1
    end_col = span.end.column - 1
    if (end_line, end_col) <= (start_line, start_col):
        end_line, end_col = start_line, start_col + 1
    return Range(
        start=Position(line=start_line, character=start_col),
        end=Position(line=end_line, character=end_col),
    )


def to_lsp(diag: errors.Diagnostic, uri: str) -> Diagnostic:
    """Convert a pipeline diagnostic to its LSP form."""
    related = [
        DiagnosticRelatedInformation(location=Location(uri=uri, range=_range(span)), message=text)
        for text, span in diag.notes
    ]
    return Diagnostic(
        range=_range(diag.span),
        message=diag.message,
        severity=_SEVERITY[diag.severity],
        code=diag.kind,
        source="rmsprep",
        related_information=related or None,
    )


def options_for(ls: LanguageServer, path: str | None) -> Options:
    """Options from the rmsprep.toml beside the document, or defaults."""
    if path is None:
        return Options()
    try:
        return options_from_config(load_config(None, Path(path).parent))
    except (OSError, tomllib.TOMLDecodeError, argparse.ArgumentTypeError) as exc:
        ls.window_log_message(
            LogMessageParams(type=MessageType.Warning, message=f"invalid config: {exc}")
        )
        return Options()


def _validate(ls: LanguageServer, uri: str) -> None:
    """Run the rmsprep pipeline and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri
    result = process(doc.source, filename, options_for(ls, doc.path))
    diagnostics = [to_lsp(d, uri) for d in result.diagnostics]

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
