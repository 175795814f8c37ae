"""
Tests for JSON import/export of layouts and puzzles.
"""

import json

from app.services.generator import generate_puzzle
from app.services.geometry import Direction
from app.services.layout_loader import (
    layout_from_payload,
    layout_to_payload,
    load_puzzle_from_file,
    parse_layout_payload,
    puzzle_from_payload,
    puzzle_to_payload,
)


class TestLayoutPayload:

    def test_accepts_valid_payload(self):
        layout, errors = layout_from_payload({
            "rows": 1,
            "cols": 2,
            "blocks": [
                {"id": "left", "row": 0, "col": 0, "dirs": ["e"]},
                {"row": 0, "col": 1, "dirs": "W"},
            ],
        })
        assert errors == []
        assert layout.get_block("left").dirs == (Direction.E,)
        assert layout.get_block("arrow-0-0-1").dirs == (Direction.W,)

    def test_rejects_unknown_direction(self):
        layout, errors = layout_from_payload({
            "rows": 1, "cols": 1, "blocks": [{"row": 0, "col": 0, "dirs": ["up"]}],
        })
        assert layout is None
        assert "unknown directions: up" in errors[0]

    def test_rejects_missing_coordinates(self):
        layout, errors = parse_layout_payload({
            "rows": "two", "cols": 2, "blocks": [],
        })
        assert layout is None
        assert errors == ["rows and cols must be integers"]

    def test_shape_only_parse_keeps_incomplete_grid(self):
        layout, errors = parse_layout_payload({
            "rows": 2, "cols": 2, "blocks": [{"row": 0, "col": 0, "dirs": ["E"]}],
        })
        assert errors == []
        assert layout.size == 1

    def test_grid_invariants_checked(self):
        layout, errors = layout_from_payload({
            "rows": 2, "cols": 2, "blocks": [{"row": 0, "col": 0, "dirs": ["E"]}],
        })
        assert layout is None
        assert any("not fully covered" in e for e in errors)

    def test_round_trip_keeps_layout(self, cycle_layout):
        layout, errors = layout_from_payload(layout_to_payload(cycle_layout))
        assert errors == []
        assert layout == cycle_layout


class TestPuzzleFiles:

    def test_export_and_load(self, tmp_path):
        puzzle = generate_puzzle("easy", 55, 2)
        path = tmp_path / "easy.json"
        path.write_text(json.dumps(puzzle_to_payload(puzzle)), encoding="utf-8")

        loaded, errors = load_puzzle_from_file(path)

        assert errors == []
        assert loaded.layout == puzzle.layout
        assert loaded.solution_start_id == puzzle.solution_start_id
        assert loaded.seed == 55
        assert loaded.winner_count == puzzle.winner_count

    def test_missing_start(self, cycle_layout):
        payload = layout_to_payload(cycle_layout)
        payload["solution_start_id"] = "nope"
        puzzle, errors = puzzle_from_payload(payload)
        assert puzzle is None
        assert errors == ["solution_start_id must name a block of the layout"]

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        puzzle, errors = load_puzzle_from_file(path)
        assert puzzle is None
        assert errors[0].startswith("Cannot read")
