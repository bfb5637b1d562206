"""
API Service - Business logic layer between the API and the engine.

The service:
1. Creates games and hands out seats (session ids)
2. Resolves a session id to the acting player
3. Applies intents through the reducer and keeps the resulting state
4. Serializes state from the caller's perspective

This layer is framework-agnostic (used by FastAPI and by in-process clients).
Games live in memory only.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable
import logging
import time
import uuid

from .models import (
    CreateGameRequest,
    ErrorResponse,
    GameSummary,
    IntentResponse,
    JoinGameRequest,
    SeatResponse,
)
from ..engine_core.clock import ensure_player_clock
from ..engine_core.intent import IntentRequest, RejectionCode
from ..engine_core.reducer import IntentReducer
from ..engine_core.state import (
    ROLE_PLAYER,
    ROLE_SPECTATOR,
    SEATS,
    GameState,
    GameStatus,
    Player,
)

logger = logging.getLogger(__name__)


@dataclass
class GameService:
    """
    In-memory game server.

    Usage:
        service = GameService()

        seat = service.create_game(CreateGameRequest(player_name="Ada"))
        other = service.join_game(seat.game_id, JoinGameRequest(player_name="Bo"))

        response = service.submit_intent(seat.game_id, seat.session_id, request)
    """
    reducer: IntentReducer = field(default_factory=IntentReducer)
    clock: Callable[[], float] = time.time

    _games: dict[str, GameState] = field(default_factory=dict)

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _not_found(self, game_id: str) -> ErrorResponse:
        return ErrorResponse(
            error=f"Game {game_id} not found",
            error_code=RejectionCode.GAME_NOT_FOUND.value,
        )

    def get_game(self, game_id: str) -> GameState | None:
        return self._games.get(game_id)

    def create_game(self, request: CreateGameRequest) -> SeatResponse:
        """Create a new game with the requester in the first seat."""
        game_id = str(uuid.uuid4())
        state = GameState(
            game_id=game_id,
            max_turns=request.max_turns,
            created_at=self.clock(),
        )
        self._games[game_id] = state
        logger.info(f"Created game {game_id}")
        return self._seat(state, request.player_name)

    def join_game(self, game_id: str, request: JoinGameRequest) -> SeatResponse | ErrorResponse:
        state = self._games.get(game_id)
        if state is None:
            return self._not_found(game_id)
        if state.is_finished:
            return ErrorResponse(error="Game is finished", error_code=RejectionCode.GAME_FINISHED.value)
        return self._seat(state, request.player_name)

    def _seat(self, state: GameState, player_name: str) -> SeatResponse:
        role = ROLE_PLAYER if len(state.seated_players) < SEATS else ROLE_SPECTATOR
        player = Player(
            player_id=f"player_{uuid.uuid4().hex[:8]}",
            name=player_name,
            session_id=str(uuid.uuid4()),
            role=role,
        )
        state.players.append(player)
        if role == ROLE_PLAYER:
            ensure_player_clock(state, player.player_id)
        if len(state.seated_players) == SEATS and state.status == GameStatus.WAITING:
            state.status = GameStatus.ACTIVE
        logger.info(f"{player.player_id} joined game {state.game_id} as {role}")

        return SeatResponse(
            game_id=state.game_id,
            session_id=player.session_id,
            player_id=player.player_id,
            role=role,
            state=state.to_dict(perspective=player.player_id),
        )

    def get_state(self, game_id: str, session_id: str | None = None) -> dict[str, Any] | ErrorResponse:
        """
        State from the session's perspective (fully masked for unknown sessions).

        Reads accrue the clocks too, so a stalled game still runs out of time.
        """
        state = self._games.get(game_id)
        if state is None:
            return self._not_found(game_id)
        state = self._accrue(state)
        player = state.get_player_by_session(session_id) if session_id else None
        return state.to_dict(perspective=player.player_id if player else None)

    def _accrue(self, state: GameState) -> GameState:
        accrued, events = self.reducer.accrue(state, self._now_ms())
        if accrued is not state:
            self._games[state.game_id] = accrued
        for event in events:
            logger.info(f"Game {state.game_id}: {event.type}")
        return accrued

    def submit_intent(self, game_id: str, session_id: str, request: IntentRequest) -> IntentResponse | ErrorResponse:
        """
        Apply an intent for the player behind session_id.

        Protocol rejections come back as IntentResponse(ok=False); only a
        missing game is an ErrorResponse. The resulting state is kept either
        way: a rejected intent can still have accrued the clocks.
        """
        state = self._games.get(game_id)
        if state is None:
            return self._not_found(game_id)

        player = state.get_player_by_session(session_id)
        # Unknown sessions fall through to the reducer's participant check
        player_id = player.player_id if player else session_id

        result = self.reducer.apply(state, player_id, request, self._now_ms())
        self._games[game_id] = result.state

        perspective = player.player_id if player else None
        return IntentResponse(
            ok=result.ok,
            state=result.state.to_dict(perspective=perspective),
            events=[event.to_dict() for event in result.events],
            rejection=result.rejection.to_dict() if result.rejection else None,
        )

    def list_games(self) -> list[GameSummary]:
        return [
            GameSummary(
                game_id=state.game_id,
                status=state.status.value,
                phase_key=state.phase_key,
                turn_number=state.turn_number,
                player_count=len(state.seated_players),
            )
            for state in self._games.values()
        ]

    def end_game(self, game_id: str, session_id: str | None) -> bool | ErrorResponse:
        """Drop a game from memory. Only a seated player may do this."""
        state = self._games.get(game_id)
        if state is None:
            return self._not_found(game_id)
        player = state.get_player_by_session(session_id) if session_id else None
        if player is None:
            return ErrorResponse(
                error="Player is not a participant in this game",
                error_code=RejectionCode.NOT_PARTICIPANT.value,
            )
        if not player.is_seated:
            return ErrorResponse(
                error="Spectators cannot end a game",
                error_code=RejectionCode.SPECTATOR_RESTRICTED.value,
            )
        del self._games[game_id]
        logger.info(f"{player.player_id} ended game {game_id}")
        return True
