"""
Arrow Domain - Puzzle Generator (Server)

Generate-and-test search:
1. Grow a random spanning tree with bounded branching
2. Turn it into arrows (tree edges + noise + decoys)
3. Re-verify the tree root clears the board
4. Count winning starts, accept boards with few winners

Always returns a playable puzzle: when the search budget runs out the best
board seen so far is used, then a degraded profile, then a serpentine
board that clears from the top-left cell.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from ..models import Block, DifficultyProfile, Layout, PuzzleInstance, make_block_id
from .geometry import ALL_DIRECTIONS, Direction, Point, direction_between, in_bounds, neighbor_entries
from .growth_tree import build_growth_tree
from .layout_builder import build_layout_from_tree
from .rng import RandomSource, SeededRandom
from .simulator import collect_winning_starts, simulate_attempt

logger = logging.getLogger(__name__)


# ============================================
# DIFFICULTY TABLE
# ============================================

DIFFICULTY_PROFILES: Dict[str, DifficultyProfile] = {
    "easy": DifficultyProfile("easy", rows=5, cols=5, max_dirs=2, extra_dir_chance=0.12, leaf_decoy_chance=0.84),
    "normal": DifficultyProfile("normal", rows=6, cols=6, max_dirs=2, extra_dir_chance=0.14, leaf_decoy_chance=0.80),
    "hard": DifficultyProfile("hard", rows=7, cols=7, max_dirs=2, extra_dir_chance=0.16, leaf_decoy_chance=0.76),
    "expert": DifficultyProfile("expert", rows=8, cols=8, max_dirs=2, extra_dir_chance=0.18, leaf_decoy_chance=0.72),
    "master": DifficultyProfile("master", rows=9, cols=9, max_dirs=2, extra_dir_chance=0.20, leaf_decoy_chance=0.68),
}

DIFFICULTY_IDS: List[str] = list(DIFFICULTY_PROFILES)

# Seeds of the first puzzle of a session
INITIAL_SEEDS: Dict[str, int] = {
    "easy": 1573,
    "normal": 2987,
    "hard": 4431,
    "expert": 6163,
    "master": 7993,
}


# ============================================
# CONSTANTS
# ============================================

GENERATE_RETRIES = 220
TARGET_MAX_WINNERS = 2

DEGRADED_TREE_RNG = 0.5
DEGRADED_BUILDER_RNG = 0.7


def get_profile(difficulty: str) -> DifficultyProfile:
    profile = DIFFICULTY_PROFILES.get(difficulty)
    if profile is None:
        raise ValueError(f"Unknown difficulty '{difficulty}' (expected one of {', '.join(DIFFICULTY_IDS)})")
    return profile


# ============================================
# FALLBACKS
# ============================================

def _try_degraded(profile: DifficultyProfile, serial: int) -> Optional[Tuple[Layout, str]]:
    """Single deterministic attempt with out-degree 1 and no noise."""
    degraded = replace(profile, max_dirs=1, extra_dir_chance=0.0, leaf_decoy_chance=0.0)
    tree = build_growth_tree(degraded.rows, degraded.cols, degraded.max_dirs, lambda: DEGRADED_TREE_RNG)
    if tree is None:
        return None

    layout = build_layout_from_tree(tree, serial, degraded, lambda: DEGRADED_BUILDER_RNG)
    start_id = make_block_id(serial, tree.root.row, tree.root.col)
    if not simulate_attempt(layout, start_id).success:
        return None
    return layout, start_id


def serpentine_walk(rows: int, cols: int) -> List[Point]:
    """Boustrophedon order: left to right on even rows, right to left on odd."""
    walk = []
    for row in range(rows):
        columns = range(cols) if row % 2 == 0 else range(cols - 1, -1, -1)
        walk.extend(Point(row, col) for col in columns)
    return walk


def build_serpentine_layout(rows: int, cols: int, serial: int) -> Tuple[Layout, str]:
    """
    Last-resort board: every cell points at the next cell of the walk, so
    the first cell clears everything one block per wave.
    """
    walk = serpentine_walk(rows, cols)
    dirs_by_point: Dict[Point, Direction] = {}
    for current, following in zip(walk, walk[1:]):
        dirs_by_point[current] = direction_between(current, following)

    tail = walk[-1]
    neighbors = neighbor_entries(tail.row, tail.col, rows, cols)
    dirs_by_point[tail] = neighbors[0].dir if neighbors else ALL_DIRECTIONS[0]

    blocks = tuple(
        Block(id=make_block_id(serial, row, col), row=row, col=col, dirs=(dirs_by_point[Point(row, col)],))
        for row in range(rows)
        for col in range(cols)
    )
    return Layout(rows=rows, cols=cols, blocks=blocks), make_block_id(serial, walk[0].row, walk[0].col)


# ============================================
# MAIN GENERATOR FUNCTION
# ============================================

def generate_layout(
    profile: DifficultyProfile,
    rng: RandomSource,
    serial: int,
    *,
    retries: int = GENERATE_RETRIES,
    max_winners: int = TARGET_MAX_WINNERS,
) -> Tuple[Layout, str, int, bool]:
    """
    Runs the search for one profile.

    Returns:
        (layout, solution_start_id, winner_count, degraded)
    """
    winner_scan_stop = max_winners + 1
    fallback: Optional[Tuple[Layout, str, int]] = None

    for attempt in range(retries):
        tree = build_growth_tree(profile.rows, profile.cols, profile.max_dirs, rng)
        if tree is None:
            continue

        layout = build_layout_from_tree(tree, serial, profile, rng)
        start_id = make_block_id(serial, tree.root.row, tree.root.col)
        # Decoys are random, never assume the root still works
        if not simulate_attempt(layout, start_id).success:
            continue

        winner_count = len(collect_winning_starts(layout, winner_scan_stop))
        if fallback is None or winner_count < fallback[2]:
            fallback = (layout, start_id, winner_count)

        if winner_count <= max_winners:
            logger.debug(
                f"[Generator] {profile.id} serial={serial} accepted on attempt {attempt + 1} "
                f"winners={winner_count}"
            )
            return layout, start_id, winner_count, False

    if fallback is not None:
        logger.info(
            f"[Generator] {profile.id} serial={serial} budget of {retries} exhausted, "
            f"using best board with {fallback[2]} winners"
        )
        layout, start_id, winner_count = fallback
        return layout, start_id, winner_count, False

    logger.warning(f"[Generator] {profile.id} serial={serial}: no solvable board found, degrading profile")
    degraded = _try_degraded(profile, serial)
    if degraded is not None:
        layout, start_id = degraded
        winner_count = len(collect_winning_starts(layout, winner_scan_stop))
        return layout, start_id, winner_count, True

    logger.warning(f"[Generator] {profile.id} serial={serial}: degraded profile failed, using serpentine board")
    layout, start_id = build_serpentine_layout(profile.rows, profile.cols, serial)
    if not simulate_attempt(layout, start_id).success:
        logger.error(f"[Generator] serpentine board {profile.rows}x{profile.cols} did not resolve")
    winner_count = len(collect_winning_starts(layout, winner_scan_stop))
    return layout, start_id, winner_count, True


def create_puzzle(
    difficulty: str,
    rng: RandomSource,
    serial: int,
    *,
    retries: int = GENERATE_RETRIES,
    max_winners: int = TARGET_MAX_WINNERS,
    seed: Optional[int] = None,
) -> PuzzleInstance:
    """Accepted puzzle for a difficulty. Never fails for a known difficulty."""
    profile = get_profile(difficulty)
    layout, start_id, winner_count, degraded = generate_layout(
        profile, rng, serial, retries=retries, max_winners=max_winners,
    )
    return PuzzleInstance(
        serial=serial,
        difficulty=difficulty,
        layout=layout,
        solution_start_id=start_id,
        seed=seed,
        winner_count=winner_count,
        degraded=degraded,
    )


def generate_puzzle(
    difficulty: str,
    seed: int,
    serial: int,
    *,
    retries: int = GENERATE_RETRIES,
    max_winners: int = TARGET_MAX_WINNERS,
) -> PuzzleInstance:
    """Reproducible from (difficulty, seed, serial)."""
    return create_puzzle(
        difficulty,
        SeededRandom(seed),
        serial,
        retries=retries,
        max_winners=max_winners,
        seed=seed,
    )


def initial_puzzle(difficulty: str, **kwargs) -> PuzzleInstance:
    """First puzzle of a session: fixed per-difficulty seed, serial 1."""
    get_profile(difficulty)
    return generate_puzzle(difficulty, INITIAL_SEEDS[difficulty], 1, **kwargs)


# ============================================
# VALIDATION
# ============================================

def validate_layout(layout: Layout) -> Dict[str, Any]:
    """Checks the structural invariants of a layout."""
    errors: List[str] = []
    rows, cols = layout.rows, layout.cols

    if rows < 1 or cols < 1:
        errors.append(f"Grid must be at least 1x1, got {rows}x{cols}")

    seen_ids = set()
    seen_cells = set()
    for block in layout.blocks:
        if block.id in seen_ids:
            errors.append(f"Duplicate block id '{block.id}'")
        seen_ids.add(block.id)

        if not in_bounds(block.row, block.col, rows, cols):
            errors.append(f"Block {block.id} at ({block.row}, {block.col}) is out of bounds")
        elif (block.row, block.col) in seen_cells:
            errors.append(f"Cell ({block.row}, {block.col}) holds more than one block")
        seen_cells.add((block.row, block.col))

        if not block.dirs:
            errors.append(f"Block {block.id} has no directions")
        elif len(set(block.dirs)) != len(block.dirs):
            errors.append(f"Block {block.id} repeats a direction")

    total_cells = max(rows * cols, 1)
    covered = len({cell for cell in seen_cells if in_bounds(cell[0], cell[1], rows, cols)})
    coverage = covered / total_cells * 100
    if covered != rows * cols:
        errors.append(f"Grid not fully covered: {coverage:.1f}% ({covered}/{rows * cols})")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "coverage": coverage,
    }


def validate_puzzle(puzzle: PuzzleInstance) -> Dict[str, Any]:
    """Layout invariants plus a fresh check of the solution start."""
    result = validate_layout(puzzle.layout)
    if not puzzle.layout.has_block(puzzle.solution_start_id):
        result["errors"].append(f"Solution start '{puzzle.solution_start_id}' is not on the board")
    elif not simulate_attempt(puzzle.layout, puzzle.solution_start_id).success:
        result["errors"].append(f"Solution start '{puzzle.solution_start_id}' does not clear the board")
    result["valid"] = len(result["errors"]) == 0
    return result
