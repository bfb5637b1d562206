"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between clients and the server.
All responses include explicit types for OpenAPI schema generation.

Error Codes:
- GAME_NOT_FOUND: Game does not exist or has been dropped
- SESSION_REQUIRED: The X-Session-Id header is missing
- VALIDATION_ERROR: Request body failed validation
- Every intent RejectionCode (BAD_TURN, HASH_MISMATCH, ...) as-is
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field

from ..engine_core.intent import IntentType


# =============================================================================
# Enums
# =============================================================================

class GameStatus(str, Enum):
    """Game status values."""
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"


class PlayerRole(str, Enum):
    PLAYER = "player"
    SPECTATOR = "spectator"


class ErrorCode(str, Enum):
    """Structured error codes."""
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    GAME_FINISHED = "GAME_FINISHED"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"
    SPECTATOR_RESTRICTED = "SPECTATOR_RESTRICTED"
    BAD_TURN = "BAD_TURN"
    WRONG_PHASE = "WRONG_PHASE"
    DUPLICATE_COMMIT = "DUPLICATE_COMMIT"
    MISSING_COMMIT = "MISSING_COMMIT"
    HASH_MISMATCH = "HASH_MISMATCH"
    ALREADY_REVEALED = "ALREADY_REVEALED"
    BAD_PAYLOAD = "BAD_PAYLOAD"
    INVALID_SPECIES = "INVALID_SPECIES"
    INVALID_SHIP = "INVALID_SHIP"
    SESSION_REQUIRED = "SESSION_REQUIRED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Request Models
# =============================================================================

class CreateGameRequest(BaseModel):
    """Create a game and take the first seat."""
    player_name: str = Field("Player", min_length=1, max_length=64)
    max_turns: Optional[int] = Field(None, ge=1, description="End the game after this many turns")


class JoinGameRequest(BaseModel):
    player_name: str = Field("Player", min_length=1, max_length=64)


class IntentSubmission(BaseModel):
    """An intent. The acting player comes from the X-Session-Id header."""
    intent_type: IntentType
    turn_number: int
    commit_hash: Optional[str] = Field(None, description="sha256 hex of canonical payload + nonce")
    payload: Optional[Any] = Field(None, description="Revealed payload")
    nonce: Optional[str] = Field(None, description="Nonce used for the commitment")


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class PlayerInfo(BaseModel):
    id: str
    player_id: str
    session_id: Optional[str] = Field(None, description="Only present on your own entry")
    name: str
    role: PlayerRole
    faction: Optional[str] = None
    lines: int = 0


class CommitmentInfo(BaseModel):
    commit_hash: str
    committed_at: int
    revealed: bool
    revealed_at: Optional[int] = None
    reveal_payload: Optional[Any] = Field(None, description="Masked until the instance is disclosed")
    nonce: Optional[str] = None


class ShipInfo(BaseModel):
    instance_id: str
    ship_def_id: str
    owner_id: str
    created_turn: int


class TurnDataInfo(BaseModel):
    turn_number: int
    dice_roll: Optional[int] = None
    dice_finalized: bool = False
    lines_distributed: bool = False


class ClockInfo(BaseModel):
    base_ms: int
    increment_ms: int
    remaining_ms: dict[str, int] = Field(default_factory=dict, description="player_id -> remaining time")
    last_update_ms: Optional[int] = None
    live: bool = False


class GameStateResponse(BaseModel):
    """Server snapshot from the caller's perspective."""
    game_id: str
    status: GameStatus
    phase_key: str = Field(..., description="major.sub, or game_over")
    current_phase: str
    current_sub_phase: Optional[str] = None
    turn_number: int
    winner: Optional[str] = None
    end_reason: Optional[str] = Field(None, description="surrender, turn_limit, timeout or timeout_draw")
    max_turns: Optional[int] = None
    players: list[PlayerInfo] = Field(default_factory=list)
    commitments: dict[str, dict[str, CommitmentInfo]] = Field(default_factory=dict)
    ships: dict[str, list[ShipInfo]] = Field(default_factory=dict)
    readiness: dict[str, str] = Field(default_factory=dict)
    turn_data: TurnDataInfo
    clock: Optional[ClockInfo] = None


class SeatResponse(BaseModel):
    """Credentials for a seat. Keep session_id secret; it authenticates intents."""
    game_id: str
    session_id: str
    player_id: str
    role: PlayerRole
    state: GameStateResponse


class IntentResponse(BaseModel):
    ok: bool = True
    state: GameStateResponse
    events: list[dict[str, Any]] = Field(default_factory=list)


class GameSummaryInfo(BaseModel):
    game_id: str
    status: GameStatus
    phase_key: str
    turn_number: int
    player_count: int


class GameListResponse(BaseModel):
    games: list[GameSummaryInfo]
    count: int


class EndGameResponse(BaseModel):
    success: bool
    game_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
