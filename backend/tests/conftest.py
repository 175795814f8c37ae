"""
Pytest fixtures for Arrow Domain tests.
"""

from typing import Dict, List, Sequence, Tuple

import pytest

from app.models import Block, Layout, make_block_id
from app.services.geometry import Direction


def make_layout(rows: int, cols: int, cells: Dict[Tuple[int, int], Sequence[str]], serial: int = 0) -> Layout:
    """Layout from a {(row, col): ["E", ...]} mapping, row-major block order."""
    blocks: List[Block] = []
    for row in range(rows):
        for col in range(cols):
            if (row, col) not in cells:
                continue
            blocks.append(Block(
                id=make_block_id(serial, row, col),
                row=row,
                col=col,
                dirs=tuple(Direction(d) for d in cells[(row, col)]),
            ))
    return Layout(rows=rows, cols=cols, blocks=tuple(blocks))


@pytest.fixture
def cycle_layout() -> Layout:
    """2x2 four-cycle: (0,0) E -> (0,1) S -> (1,1) W -> (1,0) N -> (0,0)."""
    return make_layout(2, 2, {
        (0, 0): ["E"],
        (0, 1): ["S"],
        (1, 1): ["W"],
        (1, 0): ["N"],
    })


@pytest.fixture
def chain_layout() -> Layout:
    """1x3 row: A points E, decoy B points E, C points back W."""
    return make_layout(1, 3, {
        (0, 0): ["E"],
        (0, 1): ["E"],
        (0, 2): ["W"],
    })


@pytest.fixture
def dead_end_layout() -> Layout:
    """1x2 row where the left block only points off the grid."""
    return make_layout(1, 2, {
        (0, 0): ["W"],
        (0, 1): ["W"],
    })


@pytest.fixture
def split_layout() -> Layout:
    """
    1x3 row with a fan-out start in the middle.

    The middle block fires both ways, both ends point back at it. Both ends
    vanish in the same wave, so their rays pass through each other.
    """
    return make_layout(1, 3, {
        (0, 0): ["E"],
        (0, 1): ["W", "E"],
        (0, 2): ["W"],
    })


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()
