"""
Tests for the phase table and phase labels.
"""

import pytest

from ..engine_core.phase import (
    GAME_OVER,
    INITIAL_PHASE,
    PHASE_SEQUENCE,
    TURN_START_PHASE,
    UNKNOWN_PHASE,
    MajorPhase,
    PhaseError,
    advances_turn,
    build_phase_key,
    is_valid_phase_key,
    major_phase_label,
    major_phase_of,
    next_phase,
    normalize_phase_token,
    sub_phase_label,
    sub_phase_of,
    total_subphases,
)


class TestPhaseTable:
    """Tests for ordering and successors."""

    def test_eleven_subphases_in_order(self):
        assert total_subphases() == 11
        assert PHASE_SEQUENCE[0] == "setup.species_selection"
        assert PHASE_SEQUENCE[1] == "build.dice_roll"
        assert PHASE_SEQUENCE.index("build.drawing") < PHASE_SEQUENCE.index("battle.reveal")
        assert PHASE_SEQUENCE[-1] == "battle.end_of_turn_resolution"
        assert INITIAL_PHASE == "setup.species_selection"

    def test_next_phase_is_total(self):
        for key in PHASE_SEQUENCE:
            assert next_phase(key) in PHASE_SEQUENCE

    def test_wrap_to_next_turn(self):
        assert advances_turn("battle.end_of_turn_resolution")
        assert not advances_turn("build.drawing")
        assert next_phase("battle.end_of_turn_resolution") == TURN_START_PHASE == "build.dice_roll"

    def test_wrap_to_game_over(self):
        assert next_phase("battle.end_of_turn_resolution", game_over=True) == GAME_OVER

    def test_game_over_flag_only_matters_on_wrap(self):
        assert next_phase("build.drawing", game_over=True) == "build.end_of_build"

    def test_terminal_and_unknown_raise(self):
        with pytest.raises(PhaseError):
            next_phase(GAME_OVER)
        with pytest.raises(PhaseError):
            next_phase("build.nope")

    def test_setup_is_not_revisited(self):
        assert "setup.species_selection" not in [next_phase(k) for k in PHASE_SEQUENCE]

    @pytest.mark.parametrize("start", PHASE_SEQUENCE)
    def test_game_over_reached_from_every_key(self, start):
        key, steps = start, 0
        while key != GAME_OVER:
            key = next_phase(key, game_over=True)
            steps += 1
            assert steps <= total_subphases()


class TestPhaseKeys:

    def test_build_phase_key_strict(self):
        assert build_phase_key("battle", "reveal") == "battle.reveal"
        assert build_phase_key(MajorPhase.BUILD, "drawing") == "build.drawing"
        assert build_phase_key("Battle", "reveal") is None
        assert build_phase_key("battle", "nope") is None

    def test_normalize_is_explicit(self):
        assert normalize_phase_token("  Battle ") == "battle"
        assert normalize_phase_token(None) == ""
        assert build_phase_key(normalize_phase_token(" BATTLE"), "reveal") == "battle.reveal"

    def test_split_helpers(self):
        assert major_phase_of("battle.reveal") == MajorPhase.BATTLE
        assert sub_phase_of("battle.reveal") == "reveal"
        assert major_phase_of(GAME_OVER) is None
        assert sub_phase_of("garbage") is None
        assert not is_valid_phase_key(None)


class TestPhaseLabels:

    @pytest.mark.parametrize("key,major,sub", [
        ("build.drawing", "BUILD PHASE", "Drawing"),
        ("battle.end_of_turn_resolution", "BATTLE PHASE", "End of Turn Resolution"),
        ("setup.species_selection", "SETUP PHASE", "Species Selection"),
        (GAME_OVER, "GAME OVER", "Game Over"),
        (UNKNOWN_PHASE, "UNKNOWN PHASE", "Unknown"),
        ("", "UNKNOWN PHASE", "Unknown"),
        (None, "UNKNOWN PHASE", "Unknown"),
    ])
    def test_labels(self, key, major, sub):
        assert major_phase_label(key) == major
        assert sub_phase_label(key) == sub

    def test_fallback_title_case(self):
        assert major_phase_label("battle.some_new_step") == "BATTLE PHASE"
        assert sub_phase_label("battle.some_new_step") == "Some New Step"

    def test_malformed_major(self):
        assert major_phase_label("lunch.break") == "UNKNOWN PHASE"
        assert sub_phase_label("build.") == "Unknown"
