"""
Tests for the intent reducer.

Tests:
- Shared validation order (finished, participant, seat, turn, setup)
- Species selection and the system advance into the build phase
- Build commit/reveal, ship creation and line spending
- Readiness-gated phase advance and turn wrap
- Surrender and game over
"""

from ..engine_core.hashing import make_commit_hash
from ..engine_core.intent import IntentRequest, RejectionCode
from ..engine_core.phase import GAME_OVER
from ..engine_core.phase_flow import requires_input
from ..engine_core.reducer import IntentReducer, apply_intent
from ..engine_core.state import GameStatus
from .conftest import ScriptedBytes, accept, both_ready, build_commit, species_request


class TestValidation:
    """Checks shared by every intent, in order."""

    def test_finished_game(self, reducer, two_player_state):
        two_player_state.status = GameStatus.FINISHED
        result = reducer.apply(two_player_state, "ghost", species_request(1, "human"), 1)
        assert result.code == RejectionCode.GAME_FINISHED

    def test_not_participant(self, reducer, two_player_state):
        result = reducer.apply(two_player_state, "ghost", species_request(1, "human"), 1)
        assert result.code == RejectionCode.NOT_PARTICIPANT

    def test_spectator_restricted(self, reducer, two_player_state):
        result = reducer.apply(two_player_state, "watcher", species_request(1, "human"), 1)
        assert result.code == RejectionCode.SPECTATOR_RESTRICTED

    def test_bad_turn(self, reducer, two_player_state):
        result = reducer.apply(two_player_state, "p1", species_request(2, "human"), 1)
        assert result.code == RejectionCode.BAD_TURN

    def test_setup_only_allows_species(self, reducer, two_player_state):
        result = reducer.apply(two_player_state, "p1", IntentRequest.declare_ready(1), 1)
        assert result.code == RejectionCode.WRONG_PHASE

        commit, _ = build_commit(1, {"DEF": 1})
        result = reducer.apply(two_player_state, "p1", commit, 1)
        assert result.code == RejectionCode.WRONG_PHASE

    def test_rejection_returns_original_state(self, reducer, two_player_state):
        result = reducer.apply(two_player_state, "p1", species_request(1, "martian"), 1)
        assert result.state is two_player_state
        assert two_player_state.commitments == {}


class TestSpeciesSelection:

    def test_first_submission_waits(self, reducer, two_player_state):
        result = accept(reducer, two_player_state, "p1", species_request(1, "human"))
        assert result.state.phase_key == "setup.species_selection"
        assert result.state.commit_for("SPECIES_1", "p1").is_revealed
        # Input state untouched
        assert two_player_state.commitments == {}

    def test_both_lock_and_enter_build(self, reducer, two_player_state):
        state = accept(reducer, two_player_state, "p1", species_request(1, "human")).state
        result = accept(reducer, state, "p2", species_request(1, "centaur"))
        state = result.state

        assert state.get_player("p1").faction == "human"
        assert state.get_player("p2").faction == "centaur"
        assert state.phase_key == "build.drawing"
        assert state.turn_data.dice_roll == 4
        assert state.turn_data.lines_distributed
        assert [p.lines for p in state.seated_players] == [4, 4]

        types = [e.type for e in result.events]
        assert types.index("SPECIES_LOCKED") < types.index("DICE_ROLLED") < types.index("LINES_GRANTED")

    def test_species_hidden_until_both_submit(self, reducer, two_player_state):
        state = accept(reducer, two_player_state, "p1", species_request(1, "human")).state

        theirs = state.to_dict(perspective="p2")["commitments"]["SPECIES_1"]["p1"]
        assert theirs["revealed"] is True
        assert theirs["reveal_payload"] is None and theirs["nonce"] is None
        assert state.to_dict()["commitments"]["SPECIES_1"]["p1"]["reveal_payload"] is None
        assert state.to_dict(perspective="p1")["commitments"]["SPECIES_1"]["p1"]["reveal_payload"] == {"species": "human"}

        state = accept(reducer, state, "p2", species_request(1, "centaur")).state
        assert state.to_dict(perspective="p2")["commitments"]["SPECIES_1"]["p1"]["reveal_payload"] == {"species": "human"}

    def test_lone_seat_species_stays_hidden(self, reducer, two_player_state):
        two_player_state.players = two_player_state.players[:1]
        state = accept(reducer, two_player_state, "p1", species_request(1, "human")).state
        assert not state.is_disclosed("SPECIES_1")

    def test_invalid_species(self, reducer, two_player_state):
        result = reducer.apply(two_player_state, "p1", species_request(1, "martian"), 1)
        assert result.code == RejectionCode.INVALID_SPECIES

    def test_hash_mismatch(self, reducer, two_player_state):
        request = species_request(1, "human")
        request.payload = {"species": "xenite"}
        result = reducer.apply(two_player_state, "p1", request, 1)
        assert result.code == RejectionCode.HASH_MISMATCH

    def test_duplicate(self, reducer, two_player_state):
        state = accept(reducer, two_player_state, "p1", species_request(1, "human")).state
        result = reducer.apply(state, "p1", species_request(1, "xenite"), 1)
        assert result.code == RejectionCode.DUPLICATE_COMMIT

    def test_missing_nonce(self, reducer, two_player_state):
        request = species_request(1, "human")
        request.nonce = None
        result = reducer.apply(two_player_state, "p1", request, 1)
        assert result.code == RejectionCode.BAD_PAYLOAD

    def test_species_after_setup(self, reducer, drawing_state):
        result = reducer.apply(drawing_state, "p1", species_request(1, "human"), 1)
        assert result.code == RejectionCode.WRONG_PHASE


class TestBuildCommitReveal:

    def test_commit_during_build(self, reducer, drawing_state):
        commit, _ = build_commit(1, {"DEF": 2})
        result = accept(reducer, drawing_state, "p1", commit)
        record = result.state.commit_for("BUILD_1", "p1")
        assert record.commit_hash == commit.commit_hash
        assert not record.is_revealed

    def test_commit_needs_hash(self, reducer, drawing_state):
        result = reducer.apply(drawing_state, "p1", IntentRequest.build_commit(1, "not-a-hash"), 1)
        assert result.code == RejectionCode.BAD_PAYLOAD

    def test_duplicate_commit(self, reducer, drawing_state):
        commit, _ = build_commit(1, {"DEF": 2})
        state = accept(reducer, drawing_state, "p1", commit).state
        other, _ = build_commit(1, {"DEF": 1})
        assert reducer.apply(state, "p1", other, 1).code == RejectionCode.DUPLICATE_COMMIT

    def test_reveal_outside_reveal_phase(self, reducer, drawing_state):
        commit, reveal = build_commit(1, {"DEF": 2})
        state = accept(reducer, drawing_state, "p1", commit).state
        assert reducer.apply(state, "p1", reveal, 1).code == RejectionCode.WRONG_PHASE

    def test_ready_enters_reveal_when_commits_pending(self, reducer, drawing_state):
        commit, _ = build_commit(1, {"DEF": 2})
        state = accept(reducer, drawing_state, "p1", commit).state

        state = accept(reducer, state, "p1", IntentRequest.declare_ready(1)).state
        assert state.phase_key == "build.drawing"
        assert state.readiness == {"p1": "build.drawing"}

        state = accept(reducer, state, "p2", IntentRequest.declare_ready(1)).state
        assert state.phase_key == "battle.reveal"
        assert state.readiness == {}
        assert requires_input(state)

    def test_full_turn(self, reducer, drawing_state):
        c1, r1 = build_commit(1, {"DEF": 2}, nonce="1" * 32)
        c2, r2 = build_commit(1, {"XEN": 1}, nonce="2" * 32)
        state = accept(reducer, drawing_state, "p1", c1).state
        state = accept(reducer, state, "p2", c2).state
        state = both_ready(reducer, state)

        state = accept(reducer, state, "p1", r1).state
        assert state.phase_key == "battle.reveal"
        assert state.ships == {}

        result = accept(reducer, state, "p2", r2)
        state = result.state

        assert [s.ship_def_id for s in state.ships["p1"]] == ["DEF", "DEF"]
        assert [s.ship_def_id for s in state.ships["p2"]] == ["XEN"]
        assert all(s.created_turn == 1 for s in state.ships["p1"])

        # Next turn: 4 - 4 + 4 and 4 - 2 + 4
        assert state.turn_number == 2
        assert state.phase_key == "build.drawing"
        assert state.get_player("p1").lines == 4
        assert state.get_player("p2").lines == 6
        assert "TURN_STARTED" in [e.type for e in result.events]

    def test_reveal_masked_until_all_revealed(self, reducer, drawing_state):
        c1, r1 = build_commit(1, {"DEF": 1}, nonce="1" * 32)
        c2, _ = build_commit(1, {"XEN": 1}, nonce="2" * 32)
        state = accept(reducer, drawing_state, "p1", c1).state
        state = accept(reducer, state, "p2", c2).state
        state = both_ready(reducer, state)
        state = accept(reducer, state, "p1", r1).state

        theirs = state.to_dict(perspective="p2")["commitments"]["BUILD_1"]["p1"]
        mine = state.to_dict(perspective="p1")["commitments"]["BUILD_1"]["p1"]
        assert theirs["revealed"] is True
        assert theirs["reveal_payload"] is None and theirs["nonce"] is None
        assert mine["reveal_payload"] == r1.payload

    def test_reveal_errors(self, reducer, drawing_state):
        c1, r1 = build_commit(1, {"DEF": 1}, nonce="1" * 32)
        c2, _ = build_commit(1, {"XEN": 1}, nonce="2" * 32)
        state = accept(reducer, drawing_state, "p1", c1).state
        state = accept(reducer, state, "p2", c2).state
        state = both_ready(reducer, state)

        wrong = IntentRequest.build_reveal(1, r1.payload, "f" * 32)
        assert reducer.apply(state, "p1", wrong, 1).code == RejectionCode.HASH_MISMATCH

        no_nonce = IntentRequest.build_reveal(1, r1.payload, None)
        assert reducer.apply(state, "p1", no_nonce, 1).code == RejectionCode.BAD_PAYLOAD

        state = accept(reducer, state, "p1", r1).state
        assert reducer.apply(state, "p1", r1, 1).code == RejectionCode.ALREADY_REVEALED

    def test_reveal_without_commit(self, reducer, drawing_state):
        c1, _ = build_commit(1, {"DEF": 1})
        state = accept(reducer, drawing_state, "p1", c1).state
        state = both_ready(reducer, state)
        _, r2 = build_commit(1, {"XEN": 1})
        assert reducer.apply(state, "p2", r2, 1).code == RejectionCode.MISSING_COMMIT

    def test_unusable_build_is_voided(self, reducer, drawing_state):
        payload = {"builds": [{"ship_def_id": "ZZZ", "count": 1}]}
        state = accept(reducer, drawing_state, "p1", IntentRequest.build_commit(1, make_commit_hash(payload, "n"))).state
        state = both_ready(reducer, state)
        assert state.phase_key == "battle.reveal"

        result = accept(reducer, state, "p1", IntentRequest.build_reveal(1, payload, "n"))
        voided = [e for e in result.events if e.type == "BUILD_VOIDED"]
        assert voided[0].data["code"] == "INVALID_SHIP"

        # Nothing built, nothing spent, and the game moves on
        state = result.state
        assert state.turn_number == 2
        assert state.phase_key == "build.drawing"
        assert state.ships.get("p1", []) == []
        assert state.get_player("p1").lines == 8

    def test_malformed_build_still_settles_commit(self, reducer, drawing_state):
        payload = {"ships": "everything"}
        c2, r2 = build_commit(1, {"XEN": 1}, nonce="2" * 32)
        state = accept(reducer, drawing_state, "p1", IntentRequest.build_commit(1, make_commit_hash(payload, "n"))).state
        state = accept(reducer, state, "p2", c2).state
        state = both_ready(reducer, state)

        state = accept(reducer, state, "p1", IntentRequest.build_reveal(1, payload, "n")).state
        assert state.commit_for("BUILD_1", "p1").is_revealed
        state = accept(reducer, state, "p2", r2).state
        assert [s.ship_def_id for s in state.ships["p2"]] == ["XEN"]
        assert state.turn_number == 2

    def test_mismatched_unusable_build_still_rejected(self, reducer, drawing_state):
        payload = {"builds": [{"ship_def_id": "ZZZ", "count": 1}]}
        state = accept(reducer, drawing_state, "p1", IntentRequest.build_commit(1, make_commit_hash(payload, "n"))).state
        state = both_ready(reducer, state)
        result = reducer.apply(state, "p1", IntentRequest.build_reveal(1, payload, "m"), 1)
        assert result.code == RejectionCode.HASH_MISMATCH

    def test_ready_blocked_while_reveals_pending(self, reducer, drawing_state):
        c1, _ = build_commit(1, {"DEF": 1})
        state = accept(reducer, drawing_state, "p1", c1).state
        state = both_ready(reducer, state)
        result = reducer.apply(state, "p2", IntentRequest.declare_ready(1), 1)
        assert result.code == RejectionCode.WRONG_PHASE

    def test_single_committer_advances_on_own_reveal(self, reducer, drawing_state):
        c1, r1 = build_commit(1, {"DEF": 1})
        state = accept(reducer, drawing_state, "p1", c1).state
        state = both_ready(reducer, state)
        state = accept(reducer, state, "p1", r1).state
        assert state.turn_number == 2
        assert "p2" not in state.ships
        # Commit window closed, so the lone reveal is public
        assert state.to_dict(perspective="p2")["commitments"]["BUILD_1"]["p1"]["reveal_payload"] == r1.payload

    def test_lines_floor_at_zero(self, reducer, drawing_state):
        c2, r2 = build_commit(1, {"QUE": 1})
        state = accept(reducer, drawing_state, "p2", c2).state
        state = both_ready(reducer, state)
        state = accept(reducer, state, "p2", r2).state
        # Floored to 0 before the next turn's 4 lines
        assert state.get_player("p2").lines == 4


class TestTurnFlow:

    def test_no_commits_runs_to_next_turn(self, reducer, drawing_state):
        state = both_ready(reducer, drawing_state)
        assert state.turn_number == 2
        assert state.phase_key == "build.drawing"
        assert state.turn_data.turn_number == 2
        assert state.get_player("p1").lines == 8

    def test_dice_rolled_once_per_turn(self, drawing_state):
        source = ScriptedBytes([0, 1, 2, 3, 4, 5])
        reducer = IntentReducer(randbytes=source)
        state = both_ready(reducer, drawing_state)
        assert source.calls == 1
        assert state.turn_data.dice_roll == 1

    def test_max_turns_ends_game(self, reducer, drawing_state):
        drawing_state.max_turns = 1
        state = both_ready(reducer, drawing_state)
        assert state.phase_key == GAME_OVER
        assert state.status == GameStatus.FINISHED
        assert state.winner is None
        assert state.end_reason == "turn_limit"

        result = reducer.apply(state, "p1", IntentRequest.declare_ready(1), 1)
        assert result.code == RejectionCode.GAME_FINISHED


class TestSurrender:

    def test_surrender_hands_win_to_opponent(self, reducer, drawing_state):
        result = accept(reducer, drawing_state, "p1", IntentRequest.surrender(1))
        assert result.state.winner == "p2"
        assert result.state.phase_key == GAME_OVER
        assert result.state.end_reason == "surrender"
        assert result.state.is_finished

    def test_surrender_ignores_turn_number(self, reducer, drawing_state):
        result = accept(reducer, drawing_state, "p2", IntentRequest.surrender(99))
        assert result.state.winner == "p1"

    def test_surrender_during_setup(self, reducer, two_player_state):
        result = accept(reducer, two_player_state, "p1", IntentRequest.surrender(1))
        assert result.state.is_finished


class TestInternalErrors:

    def test_handler_crash_becomes_internal_error(self, two_player_state):
        def broken(n):
            raise RuntimeError("entropy unavailable")

        reducer = IntentReducer(randbytes=broken)
        state = accept(reducer, two_player_state, "p1", species_request(1, "human")).state
        result = reducer.apply(state, "p2", species_request(1, "xenite"), 1)
        assert result.code == RejectionCode.INTERNAL_ERROR
        assert result.state is state
        assert state.get_player("p1").faction is None

    def test_apply_intent_helper(self, two_player_state):
        result = apply_intent(two_player_state, "p1", species_request(1, "human"), 1)
        assert result.ok
        assert result.events[0].type == "SPECIES_SUBMITTED"

