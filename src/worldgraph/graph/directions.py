"""Canonical direction enumeration and its opposite-direction mapping.

Directions are a closed set. Anything read from storage or files is checked
with ``is_direction`` (or coerced with ``normalize_direction``) before it is
treated as a ``Direction``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class Direction(str, Enum):
    """Canonical exit directions recognized by the world graph."""

    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    NORTHEAST = "northeast"
    NORTHWEST = "northwest"
    SOUTHEAST = "southeast"
    SOUTHWEST = "southwest"
    UP = "up"
    DOWN = "down"
    IN = "in"
    OUT = "out"

    def __str__(self) -> str:
        return self.value


DIRECTIONS: tuple[Direction, ...] = tuple(Direction)

_DIRECTION_VALUES = frozenset(d.value for d in Direction)

_OPPOSITES: dict[Direction, Direction] = {
    Direction.NORTH: Direction.SOUTH,
    Direction.SOUTH: Direction.NORTH,
    Direction.EAST: Direction.WEST,
    Direction.WEST: Direction.EAST,
    Direction.NORTHEAST: Direction.SOUTHWEST,
    Direction.SOUTHWEST: Direction.NORTHEAST,
    Direction.NORTHWEST: Direction.SOUTHEAST,
    Direction.SOUTHEAST: Direction.NORTHWEST,
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.IN: Direction.OUT,
    Direction.OUT: Direction.IN,
}

# Abbreviations accepted by normalize_direction()
_SHORTCUTS: dict[str, Direction] = {
    "n": Direction.NORTH,
    "s": Direction.SOUTH,
    "e": Direction.EAST,
    "w": Direction.WEST,
    "ne": Direction.NORTHEAST,
    "nw": Direction.NORTHWEST,
    "se": Direction.SOUTHEAST,
    "sw": Direction.SOUTHWEST,
    "u": Direction.UP,
    "d": Direction.DOWN,
    "i": Direction.IN,
    "o": Direction.OUT,
}


def is_direction(value: Any) -> bool:
    """Check whether *value* is exactly one of the canonical direction tokens.

    Accepts arbitrary input (edge labels from storage may be corrupted or
    custom). Matching is case-sensitive; use ``normalize_direction`` for
    lenient parsing.
    """
    if isinstance(value, Direction):
        return True
    return isinstance(value, str) and value in _DIRECTION_VALUES


def opposite_direction(direction: Direction | str) -> Direction:
    """Return the direction leading back the way *direction* came.

    The mapping is an involution without fixed points:
    ``opposite_direction(opposite_direction(d)) == d`` and
    ``opposite_direction(d) != d`` for every canonical direction.

    Raises:
        ValueError: If *direction* is not canonical.
    """
    return _OPPOSITES[Direction(direction)]


def normalize_direction(raw: Any) -> Direction | None:
    """Coerce a loosely written direction token to its canonical form.

    Handles case, embedded whitespace ("north east") and the common
    one/two-letter shortcuts. Returns None when *raw* is not recognizable.
    """
    if isinstance(raw, Direction):
        return raw
    if not isinstance(raw, str):
        return None
    key = "".join(raw.lower().split())
    if key in _DIRECTION_VALUES:
        return Direction(key)
    return _SHORTCUTS.get(key)
