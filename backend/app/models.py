"""
Arrow Domain - Engine Models

Immutable value types shared by the generator, the simulator and the
session. Layouts are never mutated after creation: the simulator works on
its own alive bitset and coordinate table.
"""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, List, Optional, Tuple

from .services.geometry import Direction, Point

BlockId = str


def make_block_id(serial: int, row: int, col: int) -> BlockId:
    return f"arrow-{serial}-{row}-{col}"


# ============================================
# LAYOUT
# ============================================

@dataclass(frozen=True)
class Block:
    """One grid occupant with its arrow directions."""
    id: BlockId
    row: int
    col: int
    dirs: Tuple[Direction, ...]

    @property
    def point(self) -> Point:
        return Point(self.row, self.col)


@dataclass(frozen=True)
class Layout:
    """
    Ground-truth puzzle definition, one Block per cell.

    Blocks form an arena: a block's stable integer handle is its position
    in `blocks`. The lookup tables below are derived once and shared by
    every simulation of this layout.
    """
    rows: int
    cols: int
    blocks: Tuple[Block, ...]

    @cached_property
    def index_by_id(self) -> Dict[BlockId, int]:
        return {block.id: index for index, block in enumerate(self.blocks)}

    @cached_property
    def index_by_cell(self) -> Tuple[int, ...]:
        """Dense row-major cell -> block index table, -1 for empty cells."""
        table = [-1] * (self.rows * self.cols)
        for index, block in enumerate(self.blocks):
            table[block.row * self.cols + block.col] = index
        return tuple(table)

    def get_block(self, block_id: BlockId) -> Optional[Block]:
        index = self.index_by_id.get(block_id)
        if index is None:
            return None
        return self.blocks[index]

    def has_block(self, block_id: BlockId) -> bool:
        return block_id in self.index_by_id

    @property
    def block_ids(self) -> List[BlockId]:
        return [block.id for block in self.blocks]

    @property
    def size(self) -> int:
        return len(self.blocks)


@dataclass(frozen=True)
class DifficultyProfile:
    """Generation parameters for one difficulty."""
    id: str
    rows: int
    cols: int
    max_dirs: int
    extra_dir_chance: float
    leaf_decoy_chance: float


@dataclass
class GrowthTree:
    """Spanning tree over the grid cells, 8-adjacent edges."""
    root: Point
    children: Dict[Point, List[Point]] = field(default_factory=dict)

    def children_of(self, point: Point) -> List[Point]:
        return self.children.get(point, [])


@dataclass(frozen=True)
class PuzzleInstance:
    """An accepted layout plus a start proven to clear it."""
    serial: int
    difficulty: str
    layout: Layout
    solution_start_id: BlockId
    seed: Optional[int] = None
    winner_count: int = 1
    degraded: bool = False

    @property
    def rows(self) -> int:
        return self.layout.rows

    @property
    def cols(self) -> int:
        return self.layout.cols


# ============================================
# SIMULATION
# ============================================

@dataclass(frozen=True)
class DirectionCast:
    """Nearest-hit result of one arrow."""
    dir: Direction
    to_id: Optional[BlockId]
    ray_cells: Tuple[Tuple[int, int], ...]


@dataclass(frozen=True)
class WaveSource:
    from_id: BlockId
    casts: Tuple[DirectionCast, ...]

    @property
    def hit_ids(self) -> List[BlockId]:
        return [cast.to_id for cast in self.casts if cast.to_id is not None]


@dataclass(frozen=True)
class Wave:
    """One synchronous step: all sources vanish before any ray is cast."""
    sources: Tuple[WaveSource, ...]

    @property
    def source_ids(self) -> List[BlockId]:
        return [source.from_id for source in self.sources]

    @property
    def hit_ids(self) -> List[BlockId]:
        seen: Dict[BlockId, None] = {}
        for source in self.sources:
            for hit_id in source.hit_ids:
                seen.setdefault(hit_id, None)
        return list(seen)


@dataclass(frozen=True)
class AttemptSimulation:
    start_id: BlockId
    waves: Tuple[Wave, ...]
    success: bool

    @property
    def removed_count(self) -> int:
        return sum(len(wave.sources) for wave in self.waves)

    @property
    def removed_ids(self) -> List[BlockId]:
        return [block_id for wave in self.waves for block_id in wave.source_ids]
