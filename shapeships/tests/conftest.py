"""
Pytest fixtures for shapeships tests.
"""

import pytest

from ..api.models import CreateGameRequest, JoinGameRequest
from ..api.service import GameService
from ..engine_core.clock import ensure_player_clock
from ..engine_core.hashing import make_commit_hash
from ..engine_core.intent import IntentRequest, canonical_build_payload
from ..engine_core.reducer import IntentReducer
from ..engine_core.state import GameState, GameStatus, Player, ROLE_SPECTATOR


class ScriptedBytes:
    """Byte source that replays fixed values, one byte per call."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def __call__(self, n: int) -> bytes:
        out = bytes(self.values[(self.calls + i) % len(self.values)] for i in range(n))
        self.calls += n
        return out


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        self.now += 1
        return self.now


# Byte 3 -> 3 % 6 + 1 = 4
DICE_FOUR = 3


def species_request(turn: int, species: str, nonce: str = "n" * 32) -> IntentRequest:
    payload = {"species": species}
    return IntentRequest.species_submit(turn, species, nonce, make_commit_hash(payload, nonce))


def build_commit(turn: int, counts: dict, nonce: str = "b" * 32):
    """(commit request, reveal request) for one build draft."""
    payload = canonical_build_payload(counts)
    commit = IntentRequest.build_commit(turn, make_commit_hash(payload, nonce))
    reveal = IntentRequest.build_reveal(turn, payload, nonce)
    return commit, reveal


def accept(reducer, state, player_id, request, now_ms=2000):
    result = reducer.apply(state, player_id, request, now_ms)
    assert result.ok, result.rejection
    return result


def both_ready(reducer, state):
    state = accept(reducer, state, "p1", IntentRequest.declare_ready(state.turn_number)).state
    return accept(reducer, state, "p2", IntentRequest.declare_ready(state.turn_number)).state


@pytest.fixture
def scripted_bytes():
    return ScriptedBytes([DICE_FOUR])


@pytest.fixture
def reducer(scripted_bytes) -> IntentReducer:
    """Reducer whose dice always roll 4."""
    return IntentReducer(randbytes=scripted_bytes)


@pytest.fixture
def two_player_state() -> GameState:
    """Active game in species selection with two seated players and a spectator."""
    return GameState(
        game_id="test_game",
        status=GameStatus.ACTIVE,
        players=[
            Player(player_id="p1", name="Ada", session_id="s1"),
            Player(player_id="p2", name="Bo", session_id="s2"),
            Player(player_id="watcher", name="Cy", session_id="s3", role=ROLE_SPECTATOR),
        ],
    )


@pytest.fixture
def drawing_state(reducer, two_player_state) -> GameState:
    """Both species chosen; turn 1 is waiting in build.drawing with 4 lines each."""
    state = two_player_state
    for player_id, species in (("p1", "human"), ("p2", "xenite")):
        result = reducer.apply(state, player_id, species_request(1, species), now_ms=1000)
        assert result.ok, result.rejection
        state = result.state
    assert state.phase_key == "build.drawing"
    return state


@pytest.fixture
def clocked_state(drawing_state) -> GameState:
    """drawing_state with both clocks at base time, last accrued at 1000 ms."""
    for player in drawing_state.seated_players:
        ensure_player_clock(drawing_state, player.player_id)
    drawing_state.clock.last_update_ms = 1000
    return drawing_state


@pytest.fixture
def service(scripted_bytes) -> GameService:
    return GameService(reducer=IntentReducer(randbytes=scripted_bytes), clock=FakeClock())


@pytest.fixture
def seats(service):
    """(first seat, second seat) of a fresh game."""
    first = service.create_game(CreateGameRequest(player_name="Ada"))
    second = service.join_game(first.game_id, JoinGameRequest(player_name="Bo"))
    return first, second
