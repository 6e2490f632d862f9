"""Number parsing, formatting, and the shared rounding rule."""

from __future__ import annotations

import math

Number = int | float


def parse_number(text: str) -> Number:
    """Parse a NUMBER token value."""
    if "." in text:
        return float(text)
    return int(text)


def round_half_away(x: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def format_number(value: Number) -> str:
    """Render a folded value as script text, integers without a fraction."""
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(value)


def as_int(value: Number) -> int | None:
    """Return value as an int when it is integral, else None."""
    if isinstance(value, int):
        return value
    if value.is_integer():
        return int(value)
    return None
