"""
Arrow Domain - Growth Tree

Random spanning tree over every grid cell with a cap on children per node.
Greedy, no backtracking: an unlucky sequence can dead-end, in which case
None is returned and the caller retries with fresh randomness.
"""

from typing import Dict, List, Optional

from ..models import GrowthTree
from .geometry import Point, all_points, neighbor_entries
from .rng import RandomSource, choose_random


def build_growth_tree(
    rows: int,
    cols: int,
    max_dirs: int,
    rng: RandomSource,
) -> Optional[GrowthTree]:
    """
    Grows a tree from a uniformly random root.

    Each step picks a uniformly random in-tree cell that is under the
    out-degree cap and still touches an unassigned cell, then attaches a
    uniformly random unassigned 8-neighbor of it as a child.

    Returns:
        GrowthTree covering all rows * cols cells, or None on a dead end.
    """
    points = all_points(rows, cols)
    if not points:
        return None

    root = choose_random(points, rng)
    children: Dict[Point, List[Point]] = {point: [] for point in points}
    # dict keeps insertion order, parents are scanned oldest first
    out_count: Dict[Point, int] = {root: 0}
    unassigned = set(points)
    unassigned.discard(root)

    def open_neighbors(point: Point) -> List[Point]:
        return [
            Point(entry.row, entry.col)
            for entry in neighbor_entries(point.row, point.col, rows, cols)
            if (entry.row, entry.col) in unassigned
        ]

    while unassigned:
        expandable = [
            point for point, count in out_count.items()
            if count < max_dirs and open_neighbors(point)
        ]
        if not expandable:
            return None

        parent = choose_random(expandable, rng)
        child = choose_random(open_neighbors(parent), rng)

        children[parent].append(child)
        out_count[parent] += 1
        out_count[child] = 0
        unassigned.discard(child)

    return GrowthTree(root=root, children=children)
