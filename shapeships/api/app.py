"""
FastAPI Application - REST API for game clients.

Endpoints:
    POST   /api/v1/games                       Create a game (first seat)
    GET    /api/v1/games                       List games
    POST   /api/v1/games/{id}/join             Join a game (seat or spectator)
    GET    /api/v1/games/{id}/state            Game state (X-Session-Id perspective)
    POST   /api/v1/games/{id}/intents          Submit an intent (X-Session-Id required)
    DELETE /api/v1/games/{id}                  Drop a game (seated X-Session-Id required)
    GET    /api/v1/health                      Health check

Intent flow:
    1. BUILD_COMMIT during the build phase sends only the hash
    2. BUILD_REVEAL in battle.reveal sends payload + nonce
    3. The server recomputes the hash; a mismatch is HASH_MISMATCH, never corrected

All responses are JSON with explicit Pydantic schemas. Rejected intents
return an ErrorResponse whose error_code is the rejection code.
"""

from typing import Annotated, Optional, Union
import os

from fastapi import FastAPI, Header
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__

# Environment configuration
SHAPESHIPS_ENV = os.getenv("SHAPESHIPS_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

# Rejection code -> HTTP status
REJECTION_STATUS = {
    "GAME_NOT_FOUND": 404,
    "NOT_PARTICIPANT": 403,
    "SPECTATOR_RESTRICTED": 403,
    "GAME_FINISHED": 409,
    "BAD_TURN": 409,
    "WRONG_PHASE": 409,
    "DUPLICATE_COMMIT": 409,
    "MISSING_COMMIT": 409,
    "ALREADY_REVEALED": 409,
    "HASH_MISMATCH": 400,
    "BAD_PAYLOAD": 400,
    "INVALID_SPECIES": 400,
    "INVALID_SHIP": 400,
    "INTERNAL_ERROR": 500,
}


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional GameService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    from .service import GameService
    from .models import (
        CreateGameRequest as CreateGameModel,
        JoinGameRequest as JoinGameModel,
    )
    from .schemas import (
        # Request models
        CreateGameRequest,
        JoinGameRequest,
        IntentSubmission,
        # Response models
        ErrorResponse,
        SeatResponse,
        GameStateResponse,
        IntentResponse,
        GameListResponse,
        GameSummaryInfo,
        EndGameResponse,
        HealthResponse,
        # Enums
        ErrorCode,
    )
    from ..engine_core.intent import IntentRequest

    app = FastAPI(
        title="Shapeships Turn Server",
        description="""
Server-authoritative turn synchronization for a two-player simultaneous-turn game.

## Commit / Reveal

Hidden choices are committed as `sha256(canonical_json(payload) + nonce)` and
revealed later with the payload and nonce. Canonical JSON is UTF-8 with sorted
keys, no whitespace, and no floats.

## Error Codes

| Code | Description |
|------|-------------|
| `GAME_NOT_FOUND` | Game does not exist |
| `BAD_TURN` | Intent names a turn that is not current |
| `WRONG_PHASE` | Intent not allowed in the current phase |
| `DUPLICATE_COMMIT` | Already committed for this instance |
| `MISSING_COMMIT` | Reveal without a commitment |
| `HASH_MISMATCH` | Reveal does not match the commitment |
| `ALREADY_REVEALED` | Reveal already recorded |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_service = service or GameService()

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def from_service_error(response) -> JSONResponse:
        return make_error_response(
            ErrorCode(response.error_code),
            response.error,
            status_code=REJECTION_STATUS.get(response.error_code, 400),
            details=response.details,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request, exc: RequestValidationError):
        return make_error_response(
            ErrorCode.VALIDATION_ERROR,
            "Request validation failed",
            status_code=422,
            details={"errors": jsonable_errors(exc)},
        )

    def jsonable_errors(exc: RequestValidationError) -> list[dict]:
        return [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg", ""))}
            for err in exc.errors()
        ]

    # =========================================================================
    # Game Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/games",
        response_model=SeatResponse,
        tags=["Games"],
        summary="Create a game and take the first seat",
    )
    async def create_game(body: CreateGameRequest) -> SeatResponse:
        seat = api_service.create_game(
            CreateGameModel(player_name=body.player_name, max_turns=body.max_turns)
        )
        return _convert_seat(seat)

    @app.get(
        "/api/v1/games",
        response_model=GameListResponse,
        tags=["Games"],
        summary="List games",
    )
    async def list_games() -> GameListResponse:
        games = [
            GameSummaryInfo(
                game_id=g.game_id,
                status=g.status,
                phase_key=g.phase_key,
                turn_number=g.turn_number,
                player_count=g.player_count,
            )
            for g in api_service.list_games()
        ]
        return GameListResponse(games=games, count=len(games))

    @app.post(
        "/api/v1/games/{game_id}/join",
        response_model=SeatResponse,
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Join a game",
    )
    async def join_game(game_id: str, body: JoinGameRequest) -> Union[SeatResponse, JSONResponse]:
        """Seats are filled first; later joiners become spectators."""
        seat = api_service.join_game(game_id, JoinGameModel(player_name=body.player_name))
        if hasattr(seat, "error"):
            return from_service_error(seat)
        return _convert_seat(seat)

    @app.get(
        "/api/v1/games/{game_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Get game state",
    )
    async def get_game_state(
        game_id: str,
        x_session_id: Annotated[Optional[str], Header()] = None,
    ) -> Union[GameStateResponse, JSONResponse]:
        """
        State from the caller's perspective. Without a known session all
        unrevealed payloads are masked.
        """
        state = api_service.get_state(game_id, x_session_id)
        if hasattr(state, "error"):
            return from_service_error(state)
        return GameStateResponse.model_validate(state)

    @app.post(
        "/api/v1/games/{game_id}/intents",
        response_model=IntentResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Malformed or mismatching intent"},
            403: {"model": ErrorResponse, "description": "Not a seated participant"},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Stale turn/phase or protocol conflict"},
        },
        tags=["Intents"],
        summary="Submit an intent",
    )
    async def submit_intent(
        game_id: str,
        body: IntentSubmission,
        x_session_id: Annotated[Optional[str], Header()] = None,
    ) -> Union[IntentResponse, JSONResponse]:
        if not x_session_id:
            return make_error_response(
                ErrorCode.SESSION_REQUIRED,
                "X-Session-Id header is required",
                status_code=401,
            )

        request = IntentRequest(
            intent_type=body.intent_type,
            turn_number=body.turn_number,
            commit_hash=body.commit_hash,
            payload=body.payload,
            nonce=body.nonce,
            game_id=game_id,
        )
        response = api_service.submit_intent(game_id, x_session_id, request)
        if hasattr(response, "error"):
            return from_service_error(response)

        if not response.ok:
            code = response.rejection["code"]
            return make_error_response(
                ErrorCode(code),
                response.rejection["message"],
                status_code=REJECTION_STATUS.get(code, 400),
                details={"turn_number": response.state["turn_number"], "phase_key": response.state["phase_key"]},
            )

        return IntentResponse(
            ok=True,
            state=GameStateResponse.model_validate(response.state),
            events=response.events,
        )

    @app.delete(
        "/api/v1/games/{game_id}",
        response_model=EndGameResponse,
        responses={
            401: {"model": ErrorResponse, "description": "X-Session-Id header missing"},
            403: {"model": ErrorResponse, "description": "Not a seated participant"},
            404: {"model": ErrorResponse},
        },
        tags=["Games"],
        summary="Drop a game",
    )
    async def end_game(
        game_id: str,
        x_session_id: Annotated[Optional[str], Header()] = None,
    ) -> Union[EndGameResponse, JSONResponse]:
        """Only a seated player of the game may drop it."""
        if not x_session_id:
            return make_error_response(
                ErrorCode.SESSION_REQUIRED,
                "X-Session-Id header is required",
                status_code=401,
            )
        result = api_service.end_game(game_id, x_session_id)
        if hasattr(result, "error"):
            return from_service_error(result)
        return EndGameResponse(success=result, game_id=game_id)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/api/v1/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="shapeships-server",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Shapeships Turn Server",
            "version": __version__,
            "env": SHAPESHIPS_ENV,
            "docs": "/api/docs",
            "health": "/api/v1/health",
        }

    # =========================================================================
    # Conversion Helpers
    # =========================================================================

    def _convert_seat(seat) -> SeatResponse:
        return SeatResponse(
            game_id=seat.game_id,
            session_id=seat.session_id,
            player_id=seat.player_id,
            role=seat.role,
            state=GameStateResponse.model_validate(seat.state),
        )

    return app


# For running directly: uvicorn shapeships.api.app:app
app = create_app()
