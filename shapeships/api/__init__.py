"""
API Module - Turn server interface.

Exposes the engine via REST API for game clients.
A client:
1. Creates or joins a game and receives a session id
2. Polls state from its own perspective
3. Submits commit/reveal and ready intents
4. Surrenders or lets the game run to its turn limit

All games live in memory. No persistent user accounts required.
"""

from .models import (
    # Requests
    CreateGameRequest,
    JoinGameRequest,
    # Responses
    SeatResponse,
    IntentResponse,
    ErrorResponse,
    GameSummary,
)
from .service import GameService
from .app import create_app

__all__ = [
    # Requests
    "CreateGameRequest",
    "JoinGameRequest",
    # Responses
    "SeatResponse",
    "IntentResponse",
    "ErrorResponse",
    "GameSummary",
    # Service
    "GameService",
    "create_app",
]
