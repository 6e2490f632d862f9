"""Break truncation — drop everything from the first #BREAK marker onward."""

from __future__ import annotations

from rmsprep.ast import Marker, Node, Root
from rmsprep.structure import BREAK


def truncate(root: Root) -> Root:
    """Return root cut at its first BREAK marker; unchanged when there is none."""
    kept: list[Node] = []
    for child in root.children:
        if isinstance(child, Marker) and child.name == BREAK:
            return Root(tuple(kept), root.span)
        kept.append(child)
    return root
