"""
API Models - Request and response shapes for the game service.

Framework-agnostic dataclasses used by GameService; the FastAPI layer
converts them to the pydantic schemas in schemas.py.

Design principles:
- Snapshots are plain dicts (GameState.to_dict from the caller's perspective)
- Errors carry a machine-readable code
- Versioned (API version in error responses)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class APIVersion(Enum):
    V1 = "v1"


# =============================================================================
# Request Models
# =============================================================================

@dataclass
class CreateGameRequest:
    """Create a game and take the first seat."""
    player_name: str = "Player"
    max_turns: int | None = None


@dataclass
class JoinGameRequest:
    """Join a game; seats are filled first, later joiners spectate."""
    player_name: str = "Player"


# =============================================================================
# Response Models
# =============================================================================

@dataclass
class ErrorResponse:
    """
    Error response.

    Returned for any 4xx or 5xx status.
    """
    error: str
    error_code: str
    details: dict[str, Any] | None = None
    api_version: str = APIVersion.V1.value


@dataclass
class SeatResponse:
    """Credentials for a seat (or spectator slot) in a game."""
    game_id: str
    session_id: str
    player_id: str
    role: str
    state: dict[str, Any]


@dataclass
class IntentResponse:
    """Outcome of an intent, with the caller's view of the resulting state."""
    ok: bool
    state: dict[str, Any]
    events: list[dict[str, Any]] = field(default_factory=list)
    rejection: dict[str, str] | None = None


@dataclass
class GameSummary:
    game_id: str
    status: str
    phase_key: str
    turn_number: int
    player_count: int
