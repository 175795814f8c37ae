"""
Arrow Domain - Layout Builder

Turns a growth tree into one arrow block per cell. Tree edges become the
arrows that guarantee the root clears the board; the rest is noise.
"""

from typing import Dict, List

from ..models import Block, DifficultyProfile, GrowthTree, Layout, make_block_id
from .geometry import ALL_DIRECTIONS, Direction, Point, direction_between, neighbor_entries
from .rng import RandomSource, choose_random, shuffle


def _neighbor_dirs(row: int, col: int, rows: int, cols: int) -> List[Direction]:
    dirs = [entry.dir for entry in neighbor_entries(row, col, rows, cols)]
    # 1x1 board: no in-bounds neighbor, any direction just exits the grid
    return dirs or list(ALL_DIRECTIONS)


def build_cell_dirs(
    point: Point,
    tree: GrowthTree,
    profile: DifficultyProfile,
    rng: RandomSource,
) -> List[Direction]:
    """Arrow directions for a single cell."""
    rows, cols = profile.rows, profile.cols
    # dict as an ordered set
    dirs: Dict[Direction, None] = {}

    for child in tree.children_of(point):
        direction = direction_between(point, child)
        if direction is not None:
            dirs[direction] = None

    # Noise arrow
    if len(dirs) < profile.max_dirs and rng() < profile.extra_dir_chance:
        candidates = [d for d in _neighbor_dirs(point.row, point.col, rows, cols) if d not in dirs]
        if candidates:
            dirs[choose_random(candidates, rng)] = None

    # Decoy on a leaf
    if not dirs and rng() < profile.leaf_decoy_chance:
        dirs[choose_random(_neighbor_dirs(point.row, point.col, rows, cols), rng)] = None

    if not dirs:
        dirs[choose_random(_neighbor_dirs(point.row, point.col, rows, cols), rng)] = None

    return shuffle(list(dirs), rng)


def build_layout_from_tree(
    tree: GrowthTree,
    serial: int,
    profile: DifficultyProfile,
    rng: RandomSource,
) -> Layout:
    """One block per cell, row-major order."""
    blocks = []
    for row in range(profile.rows):
        for col in range(profile.cols):
            dirs = build_cell_dirs(Point(row, col), tree, profile, rng)
            blocks.append(Block(
                id=make_block_id(serial, row, col),
                row=row,
                col=col,
                dirs=tuple(dirs),
            ))
    return Layout(rows=profile.rows, cols=profile.cols, blocks=tuple(blocks))
