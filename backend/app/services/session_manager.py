"""
Arrow Domain - Session Manager

In-memory registry of play sessions. Sessions are ephemeral: nothing is
persisted, a restart of the server drops every session.
"""

import logging
import time
import uuid
from functools import partial
from typing import Dict, List, Optional

from ..config import settings
from .generator import generate_puzzle, initial_puzzle
from .session import PlaybackTimings, PuzzleSession

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates, tracks and evicts PuzzleSession objects."""

    def __init__(
        self,
        *,
        retries: int,
        max_winners: int,
        timings: PlaybackTimings,
        max_sessions: int = 1000,
        ttl_seconds: int = 3600,
    ):
        self._sessions: Dict[str, PuzzleSession] = {}
        self.retries = retries
        self.max_winners = max_winners
        self.timings = timings
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, config=settings) -> "SessionManager":
        return cls(
            retries=config.GENERATE_RETRIES,
            max_winners=config.TARGET_MAX_WINNERS,
            timings=PlaybackTimings.from_settings(config),
            max_sessions=config.MAX_SESSIONS,
            ttl_seconds=config.SESSION_TTL_SECONDS,
        )

    def puzzle_factory(self):
        return partial(generate_puzzle, retries=self.retries, max_winners=self.max_winners)

    def create_session(self, difficulty: str, seed: Optional[int] = None) -> PuzzleSession:
        """
        New session with its first puzzle.

        Without an explicit seed the first puzzle uses the fixed seed of the
        difficulty, so every session opens on the same board.
        """
        self.cleanup_stale_sessions()
        self._evict_overflow()

        if seed is None:
            puzzle = initial_puzzle(difficulty, retries=self.retries, max_winners=self.max_winners)
        else:
            puzzle = generate_puzzle(difficulty, seed, 1, retries=self.retries, max_winners=self.max_winners)

        session = PuzzleSession(
            session_id=str(uuid.uuid4()),
            puzzle=puzzle,
            timings=self.timings,
            puzzle_factory=self.puzzle_factory(),
        )
        self._sessions[session.session_id] = session
        logger.info(
            f"[Session] created {session.session_id} difficulty={difficulty} "
            f"seed={puzzle.seed} board={puzzle.rows}x{puzzle.cols}"
        )
        return session

    def get_session(self, session_id: str) -> Optional[PuzzleSession]:
        return self._sessions.get(session_id)

    def end_session(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        # Any playback still running sees a stale token and stops
        session.restart()
        logger.info(f"[Session] ended {session_id}")
        return True

    def list_sessions(self) -> List[str]:
        return list(self._sessions)

    def cleanup_stale_sessions(self, now: Optional[float] = None) -> int:
        """Drops sessions idle for longer than the TTL."""
        now = now if now is not None else time.time()
        stale = [
            sid for sid, session in self._sessions.items()
            if now - session.updated_at > self.ttl_seconds
        ]
        for sid in stale:
            self.end_session(sid)
        return len(stale)

    def _evict_overflow(self) -> None:
        while self._sessions and len(self._sessions) >= self.max_sessions:
            oldest = min(self._sessions.values(), key=lambda s: s.updated_at)
            logger.warning(f"[Session] limit of {self.max_sessions} reached, evicting {oldest.session_id}")
            self.end_session(oldest.session_id)

    def __len__(self) -> int:
        return len(self._sessions)


# ============================================
# SINGLETON
# ============================================

session_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Dependency для получения менеджера сессий."""
    global session_manager

    if session_manager is None:
        session_manager = SessionManager.from_settings(settings)

    return session_manager


def reset_session_manager() -> None:
    global session_manager
    session_manager = None
