"""Age of Empires II random map script preprocessor."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rmsprep.pipeline import Options

__version__ = "0.1.0"


def preprocess(
    source: str,
    filename: str = "input.rms",
    options: Options | None = None,
) -> str:
    """Preprocess script source into engine-ready text, raising the first error."""
    from rmsprep.pipeline import Document, Options, run

    return run(Document(filename, source, options or Options()))
