import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..models import Block, Layout, PuzzleInstance
from .generator import validate_layout
from .geometry import Direction, parse_direction


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _normalize_dirs(raw_dirs: Any) -> Tuple[List[Direction], List[str]]:
    if isinstance(raw_dirs, str):
        raw_dirs = [raw_dirs]
    if not isinstance(raw_dirs, (list, tuple)):
        return [], ["dirs must be a list"]

    dirs: List[Direction] = []
    bad: List[str] = []
    for raw in raw_dirs:
        direction = parse_direction(raw)
        if direction is None:
            bad.append(str(raw))
        else:
            dirs.append(direction)
    return dirs, bad


def parse_layout_payload(payload: Dict[str, Any]) -> Tuple[Optional[Layout], List[str]]:
    """Shape checks only, the grid invariants are not verified here."""
    errors: List[str] = []

    rows = _to_int(payload.get("rows"))
    cols = _to_int(payload.get("cols"))
    if rows is None or cols is None:
        return None, ["rows and cols must be integers"]

    raw_blocks = payload.get("blocks", [])
    if not isinstance(raw_blocks, list):
        return None, ["blocks must be a list"]

    blocks: List[Block] = []
    for idx, raw_block in enumerate(raw_blocks):
        if not isinstance(raw_block, dict):
            errors.append(f"Block #{idx} is not an object")
            continue

        row = _to_int(raw_block.get("row"))
        col = _to_int(raw_block.get("col"))
        if row is None or col is None:
            errors.append(f"Block #{idx} has no integer row/col")
            continue

        dirs, bad = _normalize_dirs(raw_block.get("dirs", []))
        if bad:
            errors.append(f"Block #{idx} has unknown directions: {', '.join(bad)}")
            continue

        block_id = str(raw_block.get("id") or f"arrow-0-{row}-{col}")
        blocks.append(Block(id=block_id, row=row, col=col, dirs=tuple(dirs)))

    if errors:
        return None, errors
    return Layout(rows=rows, cols=cols, blocks=tuple(blocks)), []


def layout_from_payload(payload: Dict[str, Any]) -> Tuple[Optional[Layout], List[str]]:
    """
    Build a Layout from untrusted JSON-like data.

    Returns:
        (layout, errors) - layout is None when errors is not empty.
    """
    layout, errors = parse_layout_payload(payload)
    if layout is None:
        return None, errors

    validation = validate_layout(layout)
    if not validation["valid"]:
        return None, validation["errors"]
    return layout, []


def layout_to_payload(layout: Layout) -> Dict[str, Any]:
    return {
        "rows": layout.rows,
        "cols": layout.cols,
        "blocks": [
            {
                "id": block.id,
                "row": block.row,
                "col": block.col,
                "dirs": [d.value for d in block.dirs],
            }
            for block in layout.blocks
        ],
    }


def puzzle_to_payload(puzzle: PuzzleInstance) -> Dict[str, Any]:
    return {
        "serial": puzzle.serial,
        "difficulty": puzzle.difficulty,
        "seed": puzzle.seed,
        "solution_start_id": puzzle.solution_start_id,
        "meta": {
            "winner_count": puzzle.winner_count,
            "degraded": puzzle.degraded,
        },
        **layout_to_payload(puzzle.layout),
    }


def puzzle_from_payload(payload: Dict[str, Any]) -> Tuple[Optional[PuzzleInstance], List[str]]:
    layout, errors = layout_from_payload(payload)
    if layout is None:
        return None, errors

    start_id = payload.get("solution_start_id")
    if not isinstance(start_id, str) or not layout.has_block(start_id):
        return None, ["solution_start_id must name a block of the layout"]

    meta = payload.get("meta") or {}
    return PuzzleInstance(
        serial=_to_int(payload.get("serial")) or 0,
        difficulty=str(payload.get("difficulty", "custom")),
        layout=layout,
        solution_start_id=start_id,
        seed=_to_int(payload.get("seed")),
        winner_count=_to_int(meta.get("winner_count")) or 0,
        degraded=bool(meta.get("degraded", False)),
    ), []


def load_puzzle_from_file(file_path: Path) -> Tuple[Optional[PuzzleInstance], List[str]]:
    """Load a puzzle exported with puzzle_to_payload."""
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        return None, [f"Cannot read {file_path}: {e}"]

    if not isinstance(raw_data, dict):
        return None, [f"{file_path} does not hold a JSON object"]
    return puzzle_from_payload(raw_data)
