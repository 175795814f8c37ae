#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path
from typing import Sequence

from app.models import PuzzleInstance
from app.services.generator import DIFFICULTY_IDS, GENERATE_RETRIES, TARGET_MAX_WINNERS, generate_puzzle, validate_puzzle
from app.services.layout_loader import load_puzzle_from_file, puzzle_to_payload
from app.services.rng import SeededRandom


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate arrow puzzles, validate them and optionally export them as JSON."
    )
    parser.add_argument(
        "--difficulty",
        choices=DIFFICULTY_IDS + ["all"],
        default="all",
        help="Difficulty to generate, or 'all'.",
    )
    parser.add_argument("--count", type=int, default=5, help="Puzzles per difficulty.")
    parser.add_argument("--seed", type=int, default=1, help="Base seed; puzzle seeds are drawn from it.")
    parser.add_argument("--retries", type=int, default=GENERATE_RETRIES, help="Search budget per puzzle.")
    parser.add_argument("--max-winners", type=int, default=TARGET_MAX_WINNERS, help="Winner cap for acceptance.")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON lines.")
    parser.add_argument("--export", type=Path, default=None, help="Directory to write puzzle JSON files into.")
    parser.add_argument(
        "--check",
        type=Path,
        nargs="+",
        default=None,
        help="Validate previously exported puzzle files instead of generating.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log generator details.")
    return parser.parse_args(argv)


def derive_seeds(base_seed: int, count: int) -> list[int]:
    rng = SeededRandom(base_seed)
    return [rng.next_int(1, 0xFFFFFFFF) for _ in range(count)]


def report_row(puzzle: PuzzleInstance, elapsed_ms: float) -> dict:
    result = validate_puzzle(puzzle)
    return {
        "difficulty": puzzle.difficulty,
        "serial": puzzle.serial,
        "seed": puzzle.seed,
        "size": f"{puzzle.rows}x{puzzle.cols}",
        "winners": puzzle.winner_count,
        "degraded": puzzle.degraded,
        "valid": result["valid"],
        "errors": result["errors"],
        "ms": round(elapsed_ms, 1),
    }


def export_puzzle(puzzle: PuzzleInstance, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{puzzle.difficulty}_{puzzle.serial:04d}.json"
    path.write_text(json.dumps(puzzle_to_payload(puzzle), ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


def print_row(row: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(row, ensure_ascii=False))
        return
    status = "OK " if row["valid"] else "BAD"
    flags = " degraded" if row.get("degraded") else ""
    print(
        f"{status} {row['difficulty']:<7} serial={row['serial']:<4} seed={row['seed']} "
        f"size={row['size']} winners={row['winners']}{flags} {row['ms']}ms"
    )
    for error in row["errors"]:
        print(f"    {error}")


def check_files(paths: Sequence[Path], as_json: bool) -> int:
    invalid = 0
    for path in paths:
        puzzle, errors = load_puzzle_from_file(path)
        if puzzle is None:
            invalid += 1
            row = {"file": str(path), "valid": False, "errors": errors}
            print(json.dumps(row) if as_json else f"BAD {path}: {'; '.join(errors)}")
            continue

        row = report_row(puzzle, 0.0)
        row["file"] = str(path)
        if not row["valid"]:
            invalid += 1
        print_row(row, as_json)

    print(f"Checked {len(paths)} file(s), {invalid} invalid.")
    return 1 if invalid else 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.check:
        return check_files(args.check, args.json)

    difficulties = DIFFICULTY_IDS if args.difficulty == "all" else [args.difficulty]
    seeds = derive_seeds(args.seed, args.count)

    invalid = 0
    degraded = 0
    for difficulty in difficulties:
        for serial, seed in enumerate(seeds, start=1):
            started = time.perf_counter()
            puzzle = generate_puzzle(
                difficulty, seed, serial, retries=args.retries, max_winners=args.max_winners,
            )
            row = report_row(puzzle, (time.perf_counter() - started) * 1000)
            if args.export is not None:
                row["file"] = str(export_puzzle(puzzle, args.export))

            invalid += 0 if row["valid"] else 1
            degraded += 1 if puzzle.degraded else 0
            print_row(row, args.json)

    total = len(difficulties) * len(seeds)
    if not args.json:
        print(f"Generated {total} puzzle(s): {invalid} invalid, {degraded} degraded.")
    return 1 if invalid else 0


if __name__ == "__main__":
    raise SystemExit(main())
