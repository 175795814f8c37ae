"""
Arrow Domain - Wave Simulator

Resolves the chain reaction triggered by one start block.

Rules:
1. Every block of the current frontier vanishes at once, before any ray
   of this wave is cast. Blocks of the same wave never see or block
   each other.
2. Each vanished block casts one ray per arrow; the ray stops at the
   first cell that still holds a block.
3. Hit blocks form the next frontier. A block hit several times in one
   wave dies once, at the start of the next wave.

The layout is never touched: state lives in a dense alive bitset and a
cell -> block index table that loses entries as blocks vanish.
"""

from typing import Dict, List, MutableSequence, Optional, Tuple

from ..models import AttemptSimulation, Block, BlockId, DirectionCast, Layout, Wave, WaveSource
from .geometry import DIRECTION_VECTORS, Direction, in_bounds

EMPTY_CELL = -1


def cast_nearest(
    block: Block,
    direction: Direction,
    index_by_cell: MutableSequence[int],
    layout: Layout,
) -> DirectionCast:
    """Walks from the block along one direction until a live block or the edge."""
    rows, cols = layout.rows, layout.cols
    dr, dc = DIRECTION_VECTORS[direction]
    ray_cells: List[Tuple[int, int]] = []
    row, col = block.row + dr, block.col + dc

    while in_bounds(row, col, rows, cols):
        ray_cells.append((row, col))
        hit_index = index_by_cell[row * cols + col]
        if hit_index != EMPTY_CELL:
            return DirectionCast(dir=direction, to_id=layout.blocks[hit_index].id, ray_cells=tuple(ray_cells))
        row += dr
        col += dc

    return DirectionCast(dir=direction, to_id=None, ray_cells=tuple(ray_cells))


def simulate_attempt(layout: Layout, start_id: BlockId) -> AttemptSimulation:
    """
    Plays the full chain reaction from start_id.

    Pure and deterministic: the same (layout, start_id) always gives the
    same waves. An unknown start produces no waves and success=False.
    """
    blocks = layout.blocks
    alive = bytearray(b"\x01") * len(blocks)
    alive_count = len(blocks)
    index_by_cell = list(layout.index_by_cell)
    index_by_id = layout.index_by_id

    waves: List[Wave] = []
    frontier: List[BlockId] = [start_id]

    while frontier:
        wave_indexes = []
        for block_id in frontier:
            index = index_by_id.get(block_id)
            if index is not None and alive[index]:
                wave_indexes.append(index)
        if not wave_indexes:
            break

        # Vanish first, cast second
        for index in wave_indexes:
            block = blocks[index]
            alive[index] = 0
            index_by_cell[block.row * layout.cols + block.col] = EMPTY_CELL
        alive_count -= len(wave_indexes)

        sources = []
        next_frontier: Dict[BlockId, None] = {}
        for index in wave_indexes:
            block = blocks[index]
            casts = tuple(cast_nearest(block, d, index_by_cell, layout) for d in block.dirs)
            for cast in casts:
                if cast.to_id is not None:
                    next_frontier.setdefault(cast.to_id, None)
            sources.append(WaveSource(from_id=block.id, casts=casts))

        waves.append(Wave(sources=tuple(sources)))
        frontier = list(next_frontier)

    return AttemptSimulation(start_id=start_id, waves=tuple(waves), success=alive_count == 0)


def collect_winning_starts(layout: Layout, stop_after: Optional[int] = None) -> List[BlockId]:
    """Starts that clear the whole board, scanned in layout order."""
    winners: List[BlockId] = []
    for block in layout.blocks:
        if not simulate_attempt(layout, block.id).success:
            continue
        winners.append(block.id)
        if stop_after is not None and len(winners) >= stop_after:
            break
    return winners
