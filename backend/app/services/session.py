"""
Arrow Domain - Play Session

State machine of one live puzzle:

    IDLE --select alive block--> ANIMATING
    ANIMATING --playback done, success--> RESOLVED (sticky)
    ANIMATING --playback done, fail--> RESOLVED (transient) --reset delay--> IDLE
    any --new puzzle / difficulty change / restart--> IDLE

Playback is the only asynchronous part. It runs as a sequential task that
carries a PlaybackToken; after every sleep it checks the token and quietly
stops when a newer run (restart, new puzzle, next attempt) has started.
All state is owned by one event loop, input is refused while ANIMATING.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, Tuple

from ..models import AttemptSimulation, BlockId, Layout, PuzzleInstance
from .generator import generate_puzzle
from .rng import create_random_seed
from .simulator import simulate_attempt

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
PuzzleFactory = Callable[[str, int, int], PuzzleInstance]

RECENT_EVENTS_LIMIT = 20


class GamePhase(str, Enum):
    IDLE = "idle"
    ANIMATING = "animating"
    RESOLVED = "resolved"


class ResolveResult(str, Enum):
    SUCCESS = "success"
    FAIL = "fail"


@dataclass(frozen=True)
class PlaybackTimings:
    """Delays of one wave and of the failure reset, in milliseconds."""
    activate_ms: int = 180
    ray_ms: int = 260
    hit_ms: int = 150
    gap_ms: int = 80
    fail_reset_ms: int = 820

    @classmethod
    def from_settings(cls, settings) -> "PlaybackTimings":
        return cls(
            activate_ms=settings.STEP_ACTIVATE_MS,
            ray_ms=settings.STEP_RAY_MS,
            hit_ms=settings.STEP_HIT_MS,
            gap_ms=settings.STEP_GAP_MS,
            fail_reset_ms=settings.FAIL_RESET_MS,
        )

    @classmethod
    def instant(cls) -> "PlaybackTimings":
        return cls(activate_ms=0, ray_ms=0, hit_ms=0, gap_ms=0, fail_reset_ms=0)


@dataclass(frozen=True)
class SessionEvent:
    """Notification for the presentation layer."""
    kind: str  # 'solved' | 'failed' | 'reset' | 'restarted' | 'new_puzzle'
    serial: int
    attempts: int
    at: float


class PlaybackToken:
    """Cancellation token of one playback run."""

    def __init__(self, session: "PuzzleSession", run_id: int):
        self._session = session
        self.run_id = run_id

    @property
    def is_stale(self) -> bool:
        return self._session.run_id != self.run_id


class PuzzleSession:
    """
    Live puzzle instance with its alive set, attempts and play phase.

    The layout itself is never mutated; restarting restores the alive set
    from the layout's full block list.
    """

    def __init__(
        self,
        session_id: str,
        puzzle: PuzzleInstance,
        *,
        timings: Optional[PlaybackTimings] = None,
        puzzle_factory: PuzzleFactory = generate_puzzle,
        seed_source: Callable[[], int] = create_random_seed,
        sleep: Sleep = asyncio.sleep,
    ):
        self.session_id = session_id
        self.timings = timings or PlaybackTimings()
        self.created_at = time.time()
        self.updated_at = self.created_at

        self._puzzle_factory = puzzle_factory
        self._seed_source = seed_source
        self._sleep = sleep
        self._listeners: List[Callable[[SessionEvent], None]] = []
        self._playback_task: Optional[asyncio.Task] = None

        self.run_id = 0
        self.serial = puzzle.serial
        self.events: Deque[SessionEvent] = deque(maxlen=RECENT_EVENTS_LIMIT)

        self.puzzle = puzzle
        self.alive_ids: Set[BlockId] = set()
        self.attempts = 0
        self.phase = GamePhase.IDLE
        self.resolve_result: Optional[ResolveResult] = None
        self.hint_start_id: Optional[BlockId] = None
        self.active_ids: List[BlockId] = []
        self.hit_ids: List[BlockId] = []
        self._reset_board()

    # ============================================
    # PROPERTIES
    # ============================================

    @property
    def layout(self) -> Layout:
        return self.puzzle.layout

    @property
    def difficulty(self) -> str:
        return self.puzzle.difficulty

    @property
    def total_blocks(self) -> int:
        return self.layout.size

    @property
    def remaining_blocks(self) -> int:
        return len(self.alive_ids)

    @property
    def controls_locked(self) -> bool:
        return self.phase == GamePhase.ANIMATING

    @property
    def status(self) -> str:
        if self.phase == GamePhase.ANIMATING:
            return "animating"
        if self.resolve_result is not None:
            return self.resolve_result.value
        return "idle"

    @property
    def playback_task(self) -> Optional[asyncio.Task]:
        return self._playback_task

    def alive_in_layout_order(self) -> List[BlockId]:
        return [block.id for block in self.layout.blocks if block.id in self.alive_ids]

    def is_alive(self, block_id: BlockId) -> bool:
        return block_id in self.alive_ids

    def snapshot(self) -> Dict[str, Any]:
        """Board stats for the presentation layer."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "status": self.status,
            "resolve_result": self.resolve_result.value if self.resolve_result else None,
            "controls_locked": self.controls_locked,
            "difficulty": self.difficulty,
            "serial": self.puzzle.serial,
            "rows": self.layout.rows,
            "cols": self.layout.cols,
            "attempts": self.attempts,
            "remaining_blocks": self.remaining_blocks,
            "total_blocks": self.total_blocks,
            "alive_ids": self.alive_in_layout_order(),
            "active_ids": list(self.active_ids),
            "hit_ids": list(self.hit_ids),
            "hint_start_id": self.hint_start_id,
        }

    # ============================================
    # NOTIFICATIONS
    # ============================================

    def add_listener(self, listener: Callable[[SessionEvent], None]) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: str) -> None:
        event = SessionEvent(kind=kind, serial=self.puzzle.serial, attempts=self.attempts, at=time.time())
        self.events.append(event)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"[Session] {self.session_id} listener failed on '{kind}': {e}")

    # ============================================
    # BOARD CONTROL
    # ============================================

    def _touch(self) -> None:
        self.updated_at = time.time()

    def _cancel_playback(self) -> None:
        # Bumping the run id makes every outstanding token stale
        self.run_id += 1
        task, self._playback_task = self._playback_task, None
        if task is not None and not task.done():
            task.cancel()

    def _on_playback_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[Session] {self.session_id} playback failed: {error!r}")

    def _clear_transient(self) -> None:
        self.active_ids = []
        self.hit_ids = []

    def _reset_board(self) -> None:
        self.alive_ids = set(self.layout.block_ids)
        self.attempts = 0
        self.resolve_result = None
        self.phase = GamePhase.IDLE
        self.hint_start_id = None
        self._clear_transient()

    def apply_puzzle(self, puzzle: PuzzleInstance) -> None:
        self._cancel_playback()
        self.puzzle = puzzle
        self.serial = max(self.serial, puzzle.serial)
        self._reset_board()
        self._touch()
        self._emit("new_puzzle")

    def restart(self) -> None:
        """Back to the full original board, attempts cleared."""
        self._cancel_playback()
        self._reset_board()
        self._touch()
        self._emit("restarted")

    def replay(self) -> None:
        self.restart()

    def new_puzzle(self, difficulty: Optional[str] = None) -> PuzzleInstance:
        """Fresh puzzle from an entropy seed; allowed in any phase."""
        difficulty = difficulty or self.difficulty
        self.serial += 1
        seed = self._seed_source()
        puzzle = self._puzzle_factory(difficulty, seed, self.serial)
        logger.info(
            f"[Session] {self.session_id} new puzzle difficulty={difficulty} serial={self.serial} "
            f"seed={seed} winners={puzzle.winner_count} degraded={puzzle.degraded}"
        )
        self.apply_puzzle(puzzle)
        return puzzle

    def change_difficulty(self, difficulty: str) -> PuzzleInstance:
        return self.new_puzzle(difficulty)

    def next_puzzle(self) -> PuzzleInstance:
        return self.new_puzzle()

    def show_hint(self) -> Optional[BlockId]:
        if self.controls_locked:
            return None
        self.hint_start_id = self.puzzle.solution_start_id
        self._touch()
        return self.hint_start_id

    # ============================================
    # ATTEMPTS
    # ============================================

    def begin_attempt(self, start_id: BlockId) -> Optional[Tuple[AttemptSimulation, PlaybackToken]]:
        """
        Validates the selection and switches to ANIMATING.

        Returns None, with no state change, when the phase is not IDLE or
        the block is unknown or already gone.
        """
        if self.phase != GamePhase.IDLE or not self.is_alive(start_id):
            return None

        simulation = simulate_attempt(self.layout, start_id)
        if not simulation.waves:
            return None

        self.run_id += 1
        token = PlaybackToken(self, self.run_id)
        self.attempts += 1
        self.resolve_result = None
        self.hint_start_id = None
        self.phase = GamePhase.ANIMATING
        self._clear_transient()
        self._touch()
        logger.debug(
            f"[Session] {self.session_id} attempt #{self.attempts} start={start_id} "
            f"waves={len(simulation.waves)} success={simulation.success}"
        )
        return simulation, token

    async def _wait(self, ms: int, sleep: Sleep) -> None:
        await sleep(ms / 1000)

    async def play(self, simulation: AttemptSimulation, token: PlaybackToken, sleep: Optional[Sleep] = None) -> None:
        """Paces the waves of a simulation, then resolves the attempt."""
        sleep = sleep or self._sleep
        timings = self.timings

        for wave in simulation.waves:
            if token.is_stale:
                return
            if not wave.sources:
                continue

            self.active_ids = wave.source_ids
            self.hit_ids = []
            await self._wait(timings.activate_ms, sleep)
            if token.is_stale:
                return

            self.alive_ids.difference_update(wave.source_ids)
            await self._wait(timings.ray_ms, sleep)
            if token.is_stale:
                return

            hit_ids = wave.hit_ids
            if hit_ids:
                self.hit_ids = hit_ids
                await self._wait(timings.hit_ms, sleep)
                if token.is_stale:
                    return

            self._clear_transient()
            await self._wait(timings.gap_ms, sleep)

        if token.is_stale:
            return

        self.phase = GamePhase.RESOLVED
        self.resolve_result = ResolveResult.SUCCESS if simulation.success else ResolveResult.FAIL
        self._clear_transient()
        self._touch()

        if simulation.success:
            logger.info(f"[Session] {self.session_id} solved in {self.attempts} attempt(s)")
            self._emit("solved")
            return

        self._emit("failed")
        await self._wait(timings.fail_reset_ms, sleep)
        if token.is_stale:
            return

        self.alive_ids = set(self.layout.block_ids)
        self.phase = GamePhase.IDLE
        self.resolve_result = None
        self._clear_transient()
        self._touch()
        self._emit("reset")

    def start_attempt(self, start_id: BlockId) -> Optional[AttemptSimulation]:
        """Begins an attempt and schedules its playback on the running loop."""
        started = self.begin_attempt(start_id)
        if started is None:
            return None
        simulation, token = started
        self._playback_task = asyncio.get_running_loop().create_task(self.play(simulation, token))
        self._playback_task.add_done_callback(self._on_playback_done)
        return simulation

    async def play_attempt(self, start_id: BlockId, sleep: Optional[Sleep] = None) -> Optional[AttemptSimulation]:
        """Begins an attempt and awaits its whole playback."""
        started = self.begin_attempt(start_id)
        if started is None:
            return None
        simulation, token = started
        await self.play(simulation, token, sleep)
        return simulation
