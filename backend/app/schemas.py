"""
Arrow Domain - Pydantic Schemas

Все схемы валидации в одном файле.
"""

from typing import Optional, List, Literal
from pydantic import BaseModel, Field

DifficultyId = Literal["easy", "normal", "hard", "expert", "master"]


# ============================================
# DIFFICULTY
# ============================================

class DifficultyInfo(BaseModel):
    """Профиль сложности."""
    id: DifficultyId
    rows: int
    cols: int
    max_dirs: int
    extra_dir_chance: float
    leaf_decoy_chance: float
    initial_seed: int


class DifficultyListResponse(BaseModel):
    """Список сложностей."""
    difficulties: List[DifficultyInfo]
    default: DifficultyId


# ============================================
# LAYOUT
# ============================================

class BlockSchema(BaseModel):
    """Блок на поле."""
    id: Optional[str] = None
    row: int
    col: int
    dirs: List[str]  # 'N', 'NE', 'E', 'SE', 'S', 'SW', 'W', 'NW'


class LayoutSchema(BaseModel):
    """Поле целиком."""
    rows: int = Field(..., ge=1, le=32)
    cols: int = Field(..., ge=1, le=32)
    blocks: List[BlockSchema]


class PuzzleMeta(BaseModel):
    """Метаданные генерации."""
    winner_count: int
    degraded: bool = False


class PuzzleResponse(BaseModel):
    """Ответ с данными головоломки."""
    serial: int
    difficulty: str
    seed: Optional[int] = None
    rows: int
    cols: int
    blocks: List[BlockSchema]
    solution_start_id: Optional[str] = None
    meta: PuzzleMeta


class GeneratePuzzleRequest(BaseModel):
    """Запрос генерации головоломки по сиду."""
    difficulty: DifficultyId = "normal"
    seed: int = Field(..., ge=0, le=0xFFFFFFFF)
    serial: int = Field(1, ge=0)
    include_solution: bool = False


# ============================================
# SIMULATION
# ============================================

class DirectionCastSchema(BaseModel):
    """Луч одной стрелки."""
    dir: str
    to_id: Optional[str]
    ray_cells: List[List[int]]


class WaveSourceSchema(BaseModel):
    """Источник волны."""
    from_id: str
    casts: List[DirectionCastSchema]


class WaveSchema(BaseModel):
    """Одна волна."""
    sources: List[WaveSourceSchema]
    hit_ids: List[str]


class SimulationResponse(BaseModel):
    """Результат попытки."""
    start_id: str
    success: bool
    removed_count: int
    total_blocks: int
    waves: List[WaveSchema]


class SimulateRequest(BaseModel):
    """Запрос симуляции произвольного поля."""
    layout: LayoutSchema
    start_id: str


class SolveRequest(BaseModel):
    """Запрос поиска выигрышных стартов."""
    layout: LayoutSchema
    limit: Optional[int] = Field(None, ge=1)


class SolveResponse(BaseModel):
    """Выигрышные старты."""
    winning_start_ids: List[str]
    winner_count: int


class ValidateLayoutResponse(BaseModel):
    """Результат проверки поля."""
    valid: bool
    errors: List[str]
    coverage: float


# ============================================
# SESSIONS
# ============================================

class CreateSessionRequest(BaseModel):
    """Запрос создания сессии."""
    difficulty: Optional[DifficultyId] = None
    seed: Optional[int] = Field(None, ge=0, le=0xFFFFFFFF)


class AttemptRequest(BaseModel):
    """Выбор стартового блока."""
    start_id: str


class NewPuzzleRequest(BaseModel):
    """Новая головоломка (опционально другой сложности)."""
    difficulty: Optional[DifficultyId] = None


class SessionEventSchema(BaseModel):
    """Событие сессии."""
    kind: str  # 'solved' | 'failed' | 'reset' | 'restarted' | 'new_puzzle'
    serial: int
    attempts: int
    at: float


class SessionResponse(BaseModel):
    """Снимок сессии."""
    session_id: str
    phase: str  # 'idle' | 'animating' | 'resolved'
    status: str  # 'idle' | 'animating' | 'success' | 'fail'
    resolve_result: Optional[str] = None
    controls_locked: bool
    difficulty: str
    serial: int
    rows: int
    cols: int
    attempts: int
    remaining_blocks: int
    total_blocks: int
    alive_ids: List[str]
    active_ids: List[str] = []
    hit_ids: List[str] = []
    hint_start_id: Optional[str] = None
    puzzle: PuzzleResponse
    events: List[SessionEventSchema] = []


class AttemptResponse(BaseModel):
    """Ответ на выбор блока."""
    accepted: bool
    simulation: Optional[SimulationResponse] = None
    session: SessionResponse


class HintResponse(BaseModel):
    """Ответ подсказки."""
    start_id: Optional[str]
    session: SessionResponse
