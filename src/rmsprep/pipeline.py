"""Eight-stage pipeline — lex, structure, resolve, expand, hoist, truncate, minify, emit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TextIO

from rmsprep.ast import Root
from rmsprep.debug import dump_tree
from rmsprep.emit import emit
from rmsprep.errors import Diagnostic, PreprocessError
from rmsprep.expand import ExpandContext, expand
from rmsprep.hoist import hoist
from rmsprep.lexer import tokenize
from rmsprep.structure import structure
from rmsprep.symbols import AREA_BASE, SymbolTable, resolve
from rmsprep.truncate import truncate


@dataclass(frozen=True, slots=True)
class Options:
    """Per-run settings; the defaults match the engine's conventions."""

    hoist_rnd: bool = True
    rnd_prefix: str = "C"
    area_base: int = AREA_BASE
    keep_newlines: bool = True
    extern_constants: frozenset[str] = frozenset()


@dataclass
class Document:
    """One script moving through the pipeline. Owns its tree, symbols, and diagnostics."""

    filename: str
    source: str
    options: Options
    root: Root | None = None
    symbols: SymbolTable = field(init=False)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.symbols = SymbolTable(
            area_base=self.options.area_base, extern=self.options.extern_constants
        )


@dataclass(frozen=True, slots=True)
class Result:
    """Outcome of processing one document: text on success, plus all diagnostics."""

    text: str | None
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def ok(self) -> bool:
        return self.text is not None

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.is_error)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if not d.is_error)


def run(doc: Document, trace: TextIO | None = None) -> str:
    """Run every stage on doc, raising the first PreprocessError.

    With trace set, the structured block tree is dumped there before resolution.
    """
    tokens = tokenize(doc.source, doc.filename)
    doc.root = structure(tokens, doc.source, doc.filename)
    if trace is not None:
        dump_tree(doc.root, file=trace)
    doc.root = resolve(doc.root, doc.symbols, doc.source)

    ctx = ExpandContext(doc.symbols, doc.source, doc.filename, doc.diagnostics)
    doc.root = expand(doc.root, ctx)

    if doc.options.hoist_rnd:
        doc.root = hoist(
            doc.root, doc.symbols, doc.options.rnd_prefix, doc.filename, doc.diagnostics
        )

    doc.root = truncate(doc.root)
    return emit(doc.root, doc.options.keep_newlines)


def process(
    source: str,
    filename: str = "input.rms",
    options: Options | None = None,
    trace: TextIO | None = None,
) -> Result:
    """Process one script. Input errors become diagnostics; they are never raised."""
    doc = Document(filename, source, options or Options())
    try:
        text = run(doc, trace)
    except PreprocessError as exc:
        doc.diagnostics.append(exc.to_diagnostic(filename))
        return Result(None, tuple(doc.diagnostics))
    return Result(text, tuple(doc.diagnostics))
