"""
Arrow Domain - Game API

1. Stateless engine endpoints (difficulties, generation, simulation, validation)
2. In-memory play sessions with paced wave playback
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ..config import settings
from ..middleware.security import limiter, validate_json_size
from ..models import AttemptSimulation, Layout, PuzzleInstance
from ..schemas import (
    DifficultyInfo, DifficultyListResponse,
    BlockSchema, LayoutSchema, PuzzleMeta, PuzzleResponse, GeneratePuzzleRequest,
    DirectionCastSchema, WaveSourceSchema, WaveSchema, SimulationResponse,
    SimulateRequest, SolveRequest, SolveResponse, ValidateLayoutResponse,
    CreateSessionRequest, AttemptRequest, NewPuzzleRequest,
    SessionEventSchema, SessionResponse, AttemptResponse, HintResponse,
)
from ..services.generator import DIFFICULTY_PROFILES, INITIAL_SEEDS, generate_puzzle, validate_layout
from ..services.layout_loader import layout_from_payload, parse_layout_payload
from ..services.session import PuzzleSession
from ..services.session_manager import SessionManager, get_session_manager
from ..services.simulator import collect_winning_starts, simulate_attempt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/game", tags=["game"], dependencies=[Depends(validate_json_size)])


# ============================================
# SERIALIZATION
# ============================================

def _serialize_blocks(layout: Layout) -> List[BlockSchema]:
    return [
        BlockSchema(id=block.id, row=block.row, col=block.col, dirs=[d.value for d in block.dirs])
        for block in layout.blocks
    ]


def _serialize_puzzle(puzzle: PuzzleInstance, include_solution: bool = False) -> PuzzleResponse:
    return PuzzleResponse(
        serial=puzzle.serial,
        difficulty=puzzle.difficulty,
        seed=puzzle.seed,
        rows=puzzle.rows,
        cols=puzzle.cols,
        blocks=_serialize_blocks(puzzle.layout),
        solution_start_id=puzzle.solution_start_id if include_solution else None,
        meta=PuzzleMeta(winner_count=puzzle.winner_count, degraded=puzzle.degraded),
    )


def _serialize_simulation(simulation: AttemptSimulation, total_blocks: int) -> SimulationResponse:
    waves = []
    for wave in simulation.waves:
        sources = [
            WaveSourceSchema(
                from_id=source.from_id,
                casts=[
                    DirectionCastSchema(
                        dir=cast.dir.value,
                        to_id=cast.to_id,
                        ray_cells=[[row, col] for row, col in cast.ray_cells],
                    )
                    for cast in source.casts
                ],
            )
            for source in wave.sources
        ]
        waves.append(WaveSchema(sources=sources, hit_ids=wave.hit_ids))

    return SimulationResponse(
        start_id=simulation.start_id,
        success=simulation.success,
        removed_count=simulation.removed_count,
        total_blocks=total_blocks,
        waves=waves,
    )


def _serialize_session(session: PuzzleSession) -> SessionResponse:
    return SessionResponse(
        **session.snapshot(),
        puzzle=_serialize_puzzle(session.puzzle),
        events=[
            SessionEventSchema(kind=e.kind, serial=e.serial, attempts=e.attempts, at=e.at)
            for e in session.events
        ],
    )


def _parse_layout(schema: LayoutSchema) -> Layout:
    layout, errors = layout_from_payload(schema.model_dump())
    if layout is None:
        raise HTTPException(status_code=400, detail={"message": "Invalid layout", "errors": errors})
    return layout


def _get_session_or_404(manager: SessionManager, session_id: str) -> PuzzleSession:
    session = manager.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


async def _skip_delay(_seconds: float) -> None:
    return None


# ============================================
# ENGINE ENDPOINTS
# ============================================

@router.get("/difficulties", response_model=DifficultyListResponse)
async def list_difficulties():
    return DifficultyListResponse(
        difficulties=[
            DifficultyInfo(
                id=profile.id,
                rows=profile.rows,
                cols=profile.cols,
                max_dirs=profile.max_dirs,
                extra_dir_chance=profile.extra_dir_chance,
                leaf_decoy_chance=profile.leaf_decoy_chance,
                initial_seed=INITIAL_SEEDS[profile.id],
            )
            for profile in DIFFICULTY_PROFILES.values()
        ],
        default=settings.DEFAULT_DIFFICULTY,
    )


@router.post("/puzzles", response_model=PuzzleResponse)
@limiter.limit(settings.game_rate_limit)
async def create_puzzle_endpoint(request: Request, payload: GeneratePuzzleRequest):
    puzzle = generate_puzzle(
        payload.difficulty,
        payload.seed,
        payload.serial,
        retries=settings.GENERATE_RETRIES,
        max_winners=settings.TARGET_MAX_WINNERS,
    )
    logger.info(
        f"[Game] generated {puzzle.difficulty} seed={payload.seed} serial={payload.serial} "
        f"winners={puzzle.winner_count} degraded={puzzle.degraded}"
    )
    return _serialize_puzzle(puzzle, include_solution=payload.include_solution)


@router.post("/simulate", response_model=SimulationResponse)
@limiter.limit(settings.game_rate_limit)
async def simulate_endpoint(request: Request, payload: SimulateRequest):
    layout = _parse_layout(payload.layout)
    simulation = simulate_attempt(layout, payload.start_id)
    return _serialize_simulation(simulation, layout.size)


@router.post("/validate", response_model=ValidateLayoutResponse)
@limiter.limit(settings.game_rate_limit)
async def validate_endpoint(request: Request, payload: LayoutSchema):
    layout, errors = parse_layout_payload(payload.model_dump())
    if layout is None:
        return ValidateLayoutResponse(valid=False, errors=errors, coverage=0.0)
    return ValidateLayoutResponse(**validate_layout(layout))


@router.post("/solve", response_model=SolveResponse)
@limiter.limit(settings.game_rate_limit)
async def solve_endpoint(request: Request, payload: SolveRequest):
    layout = _parse_layout(payload.layout)
    winners = collect_winning_starts(layout, payload.limit)
    return SolveResponse(winning_start_ids=winners, winner_count=len(winners))


# ============================================
# SESSIONS
# ============================================

@router.post("/sessions", response_model=SessionResponse, status_code=201)
@limiter.limit(settings.game_rate_limit)
async def create_session(
    request: Request,
    payload: CreateSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    difficulty = payload.difficulty or settings.DEFAULT_DIFFICULTY
    session = manager.create_session(difficulty, seed=payload.seed)
    return _serialize_session(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    return _serialize_session(_get_session_or_404(manager, session_id))


@router.delete("/sessions/{session_id}")
async def end_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    if not manager.end_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"success": True}


@router.post("/sessions/{session_id}/attempt", response_model=AttemptResponse)
@limiter.limit(settings.game_rate_limit)
async def attempt(
    request: Request,
    session_id: str,
    payload: AttemptRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    session = _get_session_or_404(manager, session_id)

    simulation: Optional[AttemptSimulation]
    if settings.PLAYBACK_ENABLED:
        simulation = session.start_attempt(payload.start_id)
    else:
        simulation = await session.play_attempt(payload.start_id, sleep=_skip_delay)

    if simulation is None:
        logger.debug(f"[Game] {session_id} ignored selection {payload.start_id} in phase {session.phase.value}")
        return AttemptResponse(accepted=False, simulation=None, session=_serialize_session(session))

    return AttemptResponse(
        accepted=True,
        simulation=_serialize_simulation(simulation, session.total_blocks),
        session=_serialize_session(session),
    )


@router.post("/sessions/{session_id}/restart", response_model=SessionResponse)
async def restart(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    session = _get_session_or_404(manager, session_id)
    session.restart()
    return _serialize_session(session)


@router.post("/sessions/{session_id}/new", response_model=SessionResponse)
@limiter.limit(settings.game_rate_limit)
async def new_puzzle(
    request: Request,
    session_id: str,
    payload: NewPuzzleRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    session = _get_session_or_404(manager, session_id)
    if payload.difficulty and payload.difficulty != session.difficulty:
        session.change_difficulty(payload.difficulty)
    else:
        session.new_puzzle()
    return _serialize_session(session)


@router.post("/sessions/{session_id}/next", response_model=SessionResponse)
@limiter.limit(settings.game_rate_limit)
async def next_puzzle(
    request: Request,
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
):
    session = _get_session_or_404(manager, session_id)
    session.next_puzzle()
    return _serialize_session(session)


@router.post("/sessions/{session_id}/hint", response_model=HintResponse)
async def hint(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    session = _get_session_or_404(manager, session_id)
    start_id = session.show_hint()
    return HintResponse(start_id=start_id, session=_serialize_session(session))
