"""
Arrow Domain - Grid Geometry

8-direction vector table, bounds checks and coordinate helpers.
Coordinates are (row, col); rows grow downwards.
"""

from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple


class Direction(str, Enum):
    N = "N"
    NE = "NE"
    E = "E"
    SE = "SE"
    S = "S"
    SW = "SW"
    W = "W"
    NW = "NW"


class Point(NamedTuple):
    row: int
    col: int


class NeighborEntry(NamedTuple):
    dir: Direction
    row: int
    col: int


# ============================================
# CONSTANTS
# ============================================

ALL_DIRECTIONS: List[Direction] = [
    Direction.N,
    Direction.NE,
    Direction.E,
    Direction.SE,
    Direction.S,
    Direction.SW,
    Direction.W,
    Direction.NW,
]

# (row delta, col delta)
DIRECTION_VECTORS: Dict[Direction, Tuple[int, int]] = {
    Direction.N: (-1, 0),
    Direction.NE: (-1, 1),
    Direction.E: (0, 1),
    Direction.SE: (1, 1),
    Direction.S: (1, 0),
    Direction.SW: (1, -1),
    Direction.W: (0, -1),
    Direction.NW: (-1, -1),
}

DELTA_TO_DIRECTION: Dict[Tuple[int, int], Direction] = {
    vector: direction for direction, vector in DIRECTION_VECTORS.items()
}


# ============================================
# DIRECTION HELPERS
# ============================================

def in_bounds(row: int, col: int, rows: int, cols: int) -> bool:
    return 0 <= row < rows and 0 <= col < cols


def move_in_direction(point: Tuple[int, int], direction: Direction) -> Point:
    dr, dc = DIRECTION_VECTORS[direction]
    return Point(point[0] + dr, point[1] + dc)


def neighbor_entries(row: int, col: int, rows: int, cols: int) -> List[NeighborEntry]:
    """In-bounds 8-neighbors of (row, col), in ALL_DIRECTIONS order."""
    entries = []
    for direction in ALL_DIRECTIONS:
        dr, dc = DIRECTION_VECTORS[direction]
        next_row, next_col = row + dr, col + dc
        if in_bounds(next_row, next_col, rows, cols):
            entries.append(NeighborEntry(direction, next_row, next_col))
    return entries


def direction_between(from_point: Tuple[int, int], to_point: Tuple[int, int]) -> Optional[Direction]:
    """Direction from one cell to an adjacent one, None if not 8-adjacent."""
    delta = (to_point[0] - from_point[0], to_point[1] - from_point[1])
    return DELTA_TO_DIRECTION.get(delta)


def all_points(rows: int, cols: int) -> List[Point]:
    """Every cell of the grid in row-major order."""
    return [Point(row, col) for row in range(rows) for col in range(cols)]


def parse_direction(value) -> Optional[Direction]:
    if isinstance(value, Direction):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Direction(value.strip().upper())
    except ValueError:
        return None
