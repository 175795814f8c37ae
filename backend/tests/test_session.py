"""
Tests for the play session state machine and its paced playback.
"""

import asyncio

import pytest

from app.models import PuzzleInstance
from app.services.session import GamePhase, PlaybackTimings, PuzzleSession, ResolveResult

from conftest import make_layout


def make_puzzle(layout, start_id="arrow-0-0-0", serial=1, difficulty="easy") -> PuzzleInstance:
    return PuzzleInstance(serial=serial, difficulty=difficulty, layout=layout, solution_start_id=start_id)


class FakeFactory:
    """Stands in for generate_puzzle, hands out a fixed layout."""

    def __init__(self, layout):
        self.layout = layout
        self.calls = []

    def __call__(self, difficulty, seed, serial):
        self.calls.append((difficulty, seed, serial))
        return PuzzleInstance(
            serial=serial,
            difficulty=difficulty,
            layout=self.layout,
            solution_start_id="arrow-0-0-0",
            seed=seed,
        )


@pytest.fixture
def cycle_session(cycle_layout):
    return PuzzleSession(
        "s-cycle",
        make_puzzle(cycle_layout),
        puzzle_factory=FakeFactory(cycle_layout),
        seed_source=lambda: 99,
    )


@pytest.fixture
def dead_end_session(dead_end_layout):
    return PuzzleSession("s-dead", make_puzzle(dead_end_layout))


class TestInitialState:

    def test_starts_idle_with_full_board(self, cycle_session):
        assert cycle_session.phase == GamePhase.IDLE
        assert cycle_session.status == "idle"
        assert cycle_session.remaining_blocks == 4
        assert cycle_session.total_blocks == 4
        assert cycle_session.attempts == 0
        assert not cycle_session.controls_locked

    def test_default_timings(self):
        timings = PlaybackTimings()
        assert (timings.activate_ms, timings.ray_ms, timings.hit_ms, timings.gap_ms, timings.fail_reset_ms) == (
            180, 260, 150, 80, 820,
        )


class TestPlayback:

    def test_success_is_sticky(self, cycle_session, fake_sleep):
        sim = asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))

        assert sim.success
        assert cycle_session.phase == GamePhase.RESOLVED
        assert cycle_session.resolve_result == ResolveResult.SUCCESS
        assert cycle_session.status == "success"
        assert cycle_session.remaining_blocks == 0
        assert cycle_session.attempts == 1
        assert [e.kind for e in cycle_session.events] == ["solved"]

    def test_wave_pacing(self, cycle_session, fake_sleep):
        """Three waves with hits (four delays each), a final wave without hits (three)."""
        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))

        assert fake_sleep.calls[:4] == [0.18, 0.26, 0.15, 0.08]
        assert fake_sleep.calls[-3:] == [0.18, 0.26, 0.08]
        assert len(fake_sleep.calls) == 15

    def test_failure_resets_board(self, dead_end_session, fake_sleep):
        sim = asyncio.run(dead_end_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))

        assert not sim.success
        assert dead_end_session.phase == GamePhase.IDLE
        assert dead_end_session.resolve_result is None
        assert dead_end_session.remaining_blocks == 2
        assert dead_end_session.attempts == 1
        assert [e.kind for e in dead_end_session.events] == ["failed", "reset"]
        assert fake_sleep.calls[-1] == 0.82

    def test_failed_state_visible_during_reset_delay(self, dead_end_session):
        seen = []

        async def sleep(seconds):
            seen.append((seconds, dead_end_session.phase, dead_end_session.resolve_result))

        asyncio.run(dead_end_session.play_attempt("arrow-0-0-0", sleep=sleep))

        assert seen[-1] == (0.82, GamePhase.RESOLVED, ResolveResult.FAIL)

    def test_marks_and_removal_during_wave(self, chain_layout):
        session = PuzzleSession("s-chain", make_puzzle(chain_layout))
        seen = []

        async def sleep(seconds):
            seen.append((seconds, list(session.active_ids), list(session.hit_ids), session.remaining_blocks))

        asyncio.run(session.play_attempt("arrow-0-0-0", sleep=sleep))

        # Activation: source marked, still alive
        assert seen[0] == (0.18, ["arrow-0-0-0"], [], 3)
        # Ray: source gone
        assert seen[1] == (0.26, ["arrow-0-0-0"], [], 2)
        # Hit: next frontier marked
        assert seen[2] == (0.15, ["arrow-0-0-0"], ["arrow-0-0-1"], 2)
        # Gap: marks cleared
        assert seen[3] == (0.08, [], [], 2)

    def test_retry_after_failure_counts_attempts(self, dead_end_session, fake_sleep):
        asyncio.run(dead_end_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))
        asyncio.run(dead_end_session.play_attempt("arrow-0-0-1", sleep=fake_sleep))
        assert dead_end_session.attempts == 2

    def test_scheduled_playback_task(self, cycle_layout):
        session = PuzzleSession("s-task", make_puzzle(cycle_layout), timings=PlaybackTimings.instant())

        async def scenario():
            sim = session.start_attempt("arrow-0-0-0")
            assert session.phase == GamePhase.ANIMATING
            await session.playback_task
            return sim

        sim = asyncio.run(scenario())
        assert sim.success
        assert session.phase == GamePhase.RESOLVED


class TestIgnoredInput:

    def test_unknown_id(self, cycle_session):
        assert cycle_session.begin_attempt("arrow-7-7-7") is None
        assert cycle_session.phase == GamePhase.IDLE
        assert cycle_session.attempts == 0

    def test_selection_while_animating(self, cycle_session):
        results = []

        async def sleep(seconds):
            results.append(cycle_session.begin_attempt("arrow-0-1-0"))

        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=sleep))

        assert all(result is None for result in results)
        assert cycle_session.attempts == 1
        assert cycle_session.resolve_result == ResolveResult.SUCCESS

    def test_selection_after_success(self, cycle_session, fake_sleep):
        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))
        assert cycle_session.begin_attempt("arrow-0-0-0") is None
        assert cycle_session.phase == GamePhase.RESOLVED

    def test_hint_ignored_while_animating(self, cycle_session):
        hints = []

        async def sleep(seconds):
            hints.append(cycle_session.show_hint())

        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=sleep))
        assert set(hints) == {None}


class TestCancellation:

    def test_restart_during_playback(self, cycle_session):
        calls = []

        async def sleep(seconds):
            calls.append(seconds)
            if len(calls) == 2:
                cycle_session.restart()

        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=sleep))

        # Stopped at the first check after the restart
        assert len(calls) == 2
        assert cycle_session.phase == GamePhase.IDLE
        assert cycle_session.remaining_blocks == 4
        assert cycle_session.attempts == 0
        assert [e.kind for e in cycle_session.events] == ["restarted"]

    def test_new_puzzle_during_playback(self, cycle_session):
        async def sleep(seconds):
            if cycle_session.puzzle.serial == 1:
                cycle_session.next_puzzle()

        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=sleep))

        assert cycle_session.puzzle.serial == 2
        assert cycle_session.phase == GamePhase.IDLE
        assert cycle_session.remaining_blocks == 4
        assert "solved" not in [e.kind for e in cycle_session.events]

    def test_restart_during_fail_reset_delay(self, dead_end_session):
        async def sleep(seconds):
            if seconds == 0.82:
                dead_end_session.restart()

        asyncio.run(dead_end_session.play_attempt("arrow-0-0-0", sleep=sleep))

        assert [e.kind for e in dead_end_session.events] == ["failed", "restarted"]
        assert dead_end_session.phase == GamePhase.IDLE
        assert dead_end_session.attempts == 0


class TestBoardControl:

    def test_restart_is_idempotent(self, cycle_session, fake_sleep):
        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))
        cycle_session.restart()
        first = (cycle_session.phase, set(cycle_session.alive_ids), cycle_session.attempts, cycle_session.resolve_result)
        cycle_session.restart()
        second = (cycle_session.phase, set(cycle_session.alive_ids), cycle_session.attempts, cycle_session.resolve_result)

        assert first == second
        assert first[1] == set(cycle_session.layout.block_ids)

    def test_replay_after_success(self, cycle_session, fake_sleep):
        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))
        cycle_session.replay()
        assert cycle_session.status == "idle"
        assert cycle_session.remaining_blocks == 4

    def test_new_puzzle_uses_fresh_seed_and_serial(self, cycle_session):
        puzzle = cycle_session.new_puzzle()

        assert cycle_session._puzzle_factory.calls == [("easy", 99, 2)]
        assert puzzle.serial == 2
        assert cycle_session.puzzle is puzzle
        assert cycle_session.events[-1].kind == "new_puzzle"

    def test_change_difficulty(self, cycle_session):
        cycle_session.change_difficulty("master")
        cycle_session.next_puzzle()

        assert cycle_session._puzzle_factory.calls == [("master", 99, 2), ("master", 99, 3)]
        assert cycle_session.difficulty == "master"

    def test_hint_reveals_solution(self, cycle_session):
        assert cycle_session.show_hint() == "arrow-0-0-0"
        assert cycle_session.hint_start_id == "arrow-0-0-0"

    def test_attempt_clears_hint(self, cycle_session, fake_sleep):
        cycle_session.show_hint()
        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))
        assert cycle_session.hint_start_id is None

    def test_listener_receives_events(self, dead_end_layout, fake_sleep):
        session = PuzzleSession("s-listen", make_puzzle(dead_end_layout))
        received = []
        session.add_listener(received.append)

        asyncio.run(session.play_attempt("arrow-0-0-0", sleep=fake_sleep))

        assert [e.kind for e in received] == ["failed", "reset"]
        assert received[0].attempts == 1

    def test_alive_ids_in_layout_order(self):
        layout = make_layout(1, 3, {(0, 0): ["E"], (0, 1): ["E"], (0, 2): ["W"]})
        session = PuzzleSession("s-order", make_puzzle(layout))
        assert session.alive_in_layout_order() == ["arrow-0-0-0", "arrow-0-0-1", "arrow-0-0-2"]

    def test_failing_listener_does_not_block_reset(self, dead_end_layout, fake_sleep):
        session = PuzzleSession("s-broken", make_puzzle(dead_end_layout))

        def listener(event):
            if event.kind == "failed":
                raise RuntimeError("listener down")

        session.add_listener(listener)
        asyncio.run(session.play_attempt("arrow-0-0-0", sleep=fake_sleep))

        assert session.phase == GamePhase.IDLE
        assert session.remaining_blocks == 2
        assert [e.kind for e in session.events] == ["failed", "reset"]

    def test_snapshot(self, cycle_session, fake_sleep):
        asyncio.run(cycle_session.play_attempt("arrow-0-0-0", sleep=fake_sleep))
        snapshot = cycle_session.snapshot()

        assert snapshot["phase"] == "resolved"
        assert snapshot["status"] == "success"
        assert snapshot["resolve_result"] == "success"
        assert (snapshot["rows"], snapshot["cols"]) == (2, 2)
        assert (snapshot["remaining_blocks"], snapshot["total_blocks"]) == (0, 4)
        assert snapshot["attempts"] == 1
        assert snapshot["alive_ids"] == []


class TestPlaybackTask:

    def test_restart_cancels_running_task(self, cycle_layout):
        session = PuzzleSession("s-cancel", make_puzzle(cycle_layout))

        async def scenario():
            session.start_attempt("arrow-0-0-0")
            task = session.playback_task
            await asyncio.sleep(0)
            session.restart()
            await asyncio.gather(task, return_exceptions=True)
            return task

        task = asyncio.run(scenario())

        assert task.cancelled()
        assert session.playback_task is None
        assert session.phase == GamePhase.IDLE
        assert session.remaining_blocks == 4

    def test_task_error_is_logged(self, cycle_layout, caplog):
        async def broken_sleep(seconds):
            raise RuntimeError("clock gone")

        session = PuzzleSession("s-error", make_puzzle(cycle_layout), sleep=broken_sleep)

        async def scenario():
            session.start_attempt("arrow-0-0-0")
            await asyncio.gather(session.playback_task, return_exceptions=True)
            await asyncio.sleep(0)

        with caplog.at_level("ERROR", logger="app.services.session"):
            asyncio.run(scenario())

        assert "playback failed" in caplog.text
