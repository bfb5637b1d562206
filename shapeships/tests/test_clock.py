"""
Tests for the server chess clock.

Tests:
- Base time, pause before species, charging only the player being waited on
- Increment once per turn
- Timeout loss and simultaneous-timeout draw, through the reducer and service
"""

from ..api.models import JoinGameRequest
from ..engine_core.clock import accrue_clocks, apply_increment, ensure_player_clock
from ..engine_core.intent import IntentRequest, RejectionCode
from ..engine_core.phase import GAME_OVER
from ..engine_core.state import BASE_TIME_MS, GameStatus
from .conftest import accept, both_ready, build_commit, species_request


class TestClockRules:

    def test_seat_gets_base_time_once(self, two_player_state):
        ensure_player_clock(two_player_state, "p1")
        assert two_player_state.clock.remaining_ms == {"p1": BASE_TIME_MS}
        two_player_state.clock.remaining_ms["p1"] = 5
        ensure_player_clock(two_player_state, "p1")
        assert two_player_state.clock.remaining_ms["p1"] == 5

    def test_paused_until_species_locked(self, two_player_state):
        for pid in ("p1", "p2"):
            ensure_player_clock(two_player_state, pid)
        assert accrue_clocks(two_player_state, 5000) == []
        accrue_clocks(two_player_state, 95_000)
        assert two_player_state.clock.remaining_ms == {"p1": BASE_TIME_MS, "p2": BASE_TIME_MS}
        assert two_player_state.clock.last_update_ms == 95_000

    def test_only_unready_player_is_charged(self, clocked_state):
        clocked_state.readiness["p1"] = clocked_state.phase_key
        accrue_clocks(clocked_state, 11_000)
        assert clocked_state.clock.remaining_ms == {"p1": BASE_TIME_MS, "p2": BASE_TIME_MS - 10_000}

    def test_reveal_charges_only_pending_committer(self, reducer, clocked_state):
        c1, _ = build_commit(1, {"DEF": 1})
        state = accept(reducer, clocked_state, "p1", c1).state
        state = both_ready(reducer, state)
        assert state.phase_key == "battle.reveal"

        accrue_clocks(state, 12_000)
        # 1 s charged to both before the commit, then 10 s to p1 alone
        assert state.clock.remaining_ms == {"p1": BASE_TIME_MS - 11_000, "p2": BASE_TIME_MS - 1000}

    def test_increment_once_per_turn(self, reducer, clocked_state):
        state = both_ready(reducer, clocked_state)
        assert state.turn_number == 2
        expected = BASE_TIME_MS - 1000 + 15_000
        assert state.clock.remaining_ms == {"p1": expected, "p2": expected}
        assert state.clock.increment_turn == {"p1": 2, "p2": 2}

        apply_increment(state, 2)
        assert state.clock.remaining_ms["p1"] == expected

    def test_snapshot_carries_clock(self, clocked_state):
        clock = clocked_state.to_dict(perspective="p2")["clock"]
        assert clock["live"] is True
        assert clock["remaining_ms"] == {"p1": BASE_TIME_MS, "p2": BASE_TIME_MS}

    def test_no_clock_returns_same_state(self, reducer, two_player_state):
        state, events = reducer.accrue(two_player_state, 5)
        assert state is two_player_state
        assert events == []


class TestTimeout:

    def test_flagged_player_loses(self, reducer, clocked_state):
        state = accept(reducer, clocked_state, "p1", IntentRequest.declare_ready(1)).state

        result = reducer.apply(state, "p2", IntentRequest.declare_ready(1), 700_000)
        assert result.code == RejectionCode.GAME_FINISHED
        finished = result.state
        assert finished.status == GameStatus.FINISHED
        assert finished.phase_key == GAME_OVER
        assert finished.winner == "p1"
        assert finished.end_reason == "timeout"
        assert finished.clock.remaining_ms["p2"] == 0
        assert finished.clock.remaining_ms["p1"] == BASE_TIME_MS - 1000
        assert [e.type for e in result.events] == ["CLOCK_TIMEOUT", "GAME_OVER"]

        # Input state untouched
        assert not state.is_finished

    def test_simultaneous_timeout_is_draw(self, clocked_state):
        events = accrue_clocks(clocked_state, 1000 + BASE_TIME_MS)
        assert clocked_state.is_finished
        assert clocked_state.winner is None
        assert clocked_state.end_reason == "timeout_draw"
        assert events[0].data["player_ids"] == ["p1", "p2"]

    def test_finished_game_stops_clocks(self, reducer, clocked_state):
        state = accept(reducer, clocked_state, "p1", IntentRequest.surrender(1)).state
        before = dict(state.clock.remaining_ms)
        assert accrue_clocks(state, 10_000_000) == []
        assert state.clock.remaining_ms == before


class TestServiceClock:

    def test_seated_players_get_clocks(self, service, seats):
        first, second = seats
        state = service.get_game(first.game_id)
        assert set(state.clock.remaining_ms) == {first.player_id, second.player_id}

        spectator = service.join_game(first.game_id, JoinGameRequest(player_name="Cy"))
        assert spectator.player_id not in service.get_game(first.game_id).clock.remaining_ms

    def test_stalled_reveal_ends_on_time(self, service, seats):
        first, second = seats
        service.submit_intent(first.game_id, first.session_id, species_request(1, "human"))
        service.submit_intent(first.game_id, second.session_id, species_request(1, "xenite"))

        # First commits and then never reveals
        commit, _ = build_commit(1, {"DEF": 1})
        service.submit_intent(first.game_id, first.session_id, commit)
        for seat in (first, second):
            service.submit_intent(first.game_id, seat.session_id, IntentRequest.declare_ready(1))
        assert service.get_game(first.game_id).phase_key == "battle.reveal"

        blocked = service.submit_intent(first.game_id, second.session_id, IntentRequest.declare_ready(1))
        assert blocked.rejection["code"] == "WRONG_PHASE"

        service.clock.now += BASE_TIME_MS / 1000
        state = service.get_state(first.game_id, second.session_id)
        assert state["status"] == "finished"
        assert state["winner"] == second.player_id
        assert state["end_reason"] == "timeout"

        response = service.submit_intent(first.game_id, second.session_id, IntentRequest.declare_ready(1))
        assert response.rejection["code"] == "GAME_FINISHED"

