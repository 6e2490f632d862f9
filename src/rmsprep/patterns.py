"""Pattern macro registry and the pure layout functions behind it.

Every layout returns integer map-grid points. Coordinates are rounded half
away from zero and clamped to the land_position grid (x in 0..100,
y in 0..99), so identical arguments always produce identical output.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

from rmsprep.numeric import round_half_away

Point = tuple[int, int]

MAP_CENTER = 50.0
MAX_X = 100
MAX_Y = 99


def to_grid(x: float, y: float) -> Point:
    """Snap a real-valued position onto the map grid."""
    gx = min(max(round_half_away(x), 0), MAX_X)
    gy = min(max(round_half_away(y), 0), MAX_Y)
    return gx, gy


def circle_points(
    count: int,
    radius: float,
    cx: float = MAP_CENTER,
    cy: float = MAP_CENTER,
    start_deg: float = 0.0,
) -> list[Point]:
    """count points at evenly spaced angles on a circle, counter-clockwise from start_deg."""
    step = math.tau / count
    start = math.radians(start_deg)
    return [
        to_grid(cx + radius * math.cos(start + i * step), cy + radius * math.sin(start + i * step))
        for i in range(count)
    ]


def line_points(count: int, x1: float, y1: float, x2: float, y2: float) -> list[Point]:
    """count evenly spaced points from (x1, y1) to (x2, y2), both endpoints included."""
    if count == 1:
        return [to_grid(x1, y1)]
    return [
        to_grid(x1 + (x2 - x1) * i / (count - 1), y1 + (y2 - y1) * i / (count - 1))
        for i in range(count)
    ]


def square_points(
    count: int,
    half_side: float,
    cx: float = MAP_CENTER,
    cy: float = MAP_CENTER,
) -> list[Point]:
    """count points evenly spaced along a square's perimeter.

    The walk starts at the middle of the right edge and runs counter-clockwise.
    """
    h = half_side
    corners = [
        (cx + h, cy),
        (cx + h, cy + h),
        (cx - h, cy + h),
        (cx - h, cy - h),
        (cx + h, cy - h),
        (cx + h, cy),
    ]
    perimeter = 8 * h
    points = []
    for i in range(count):
        points.append(_walk(corners, perimeter * i / count))
    return points


def _walk(path: list[tuple[float, float]], distance: float) -> Point:
    """Grid point at the given distance along a polyline."""
    for (ax, ay), (bx, by) in zip(path, path[1:]):
        length = math.hypot(bx - ax, by - ay)
        if distance <= length and length > 0:
            t = distance / length
            return to_grid(ax + (bx - ax) * t, ay + (by - ay) * t)
        distance -= length
    return to_grid(*path[-1])


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParamDecl:
    """Positional parameter of a pattern macro. No default means required."""

    name: str
    default: float | None = None
    count: bool = False


@dataclass(frozen=True, slots=True)
class PatternDef:
    """Definition of a pattern macro."""

    name: str
    params: tuple[ParamDecl, ...]
    layout: Callable[..., list[Point]]

    @property
    def required(self) -> int:
        return sum(1 for p in self.params if p.default is None)

    def signature(self) -> str:
        parts = [p.name if p.default is None else f"[{p.name}]" for p in self.params]
        return f"#{self.name}({', '.join(parts)})"


def _make_patterns() -> dict[str, PatternDef]:
    defs: dict[str, PatternDef] = {}

    def d(name: str, layout: Callable[..., list[Point]], *params: ParamDecl) -> None:
        defs[name] = PatternDef(name, params, layout)

    d(
        "CIRCLE_LANDS",
        circle_points,
        ParamDecl("count", count=True),
        ParamDecl("radius"),
        ParamDecl("cx", MAP_CENTER),
        ParamDecl("cy", MAP_CENTER),
        ParamDecl("start_deg", 0.0),
    )
    d(
        "LINE_LANDS",
        line_points,
        ParamDecl("count", count=True),
        ParamDecl("x1"),
        ParamDecl("y1"),
        ParamDecl("x2"),
        ParamDecl("y2"),
    )
    d(
        "SQUARE_LANDS",
        square_points,
        ParamDecl("count", count=True),
        ParamDecl("half_side"),
        ParamDecl("cx", MAP_CENTER),
        ParamDecl("cy", MAP_CENTER),
    )
    return defs


PATTERNS: dict[str, PatternDef] = _make_patterns()
