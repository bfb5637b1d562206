"""
Tests for API Pydantic schemas.

Validates that:
- Requests reject malformed input
- Engine snapshots fit GameStateResponse
- Every rejection code has a matching ErrorCode
"""

import pytest
from pydantic import ValidationError

from ..api.schemas import (
    CreateGameRequest,
    ErrorCode,
    ErrorResponse,
    GameStateResponse,
    IntentSubmission,
)
from ..engine_core.intent import IntentType, RejectionCode


class TestPydanticSchemas:
    """Tests for Pydantic schema validation."""

    def test_create_game_defaults(self):
        request = CreateGameRequest()
        assert request.player_name == "Player"
        assert request.max_turns is None

    def test_create_game_rejects_zero_turns(self):
        with pytest.raises(ValidationError):
            CreateGameRequest(max_turns=0)

    def test_intent_submission(self):
        submission = IntentSubmission(intent_type="BUILD_COMMIT", turn_number=3, commit_hash="a" * 64)
        assert submission.intent_type == IntentType.BUILD_COMMIT
        assert submission.payload is None

    def test_intent_submission_unknown_type(self):
        with pytest.raises(ValidationError):
            IntentSubmission(intent_type="TELEPORT", turn_number=1)

    def test_error_codes_cover_rejections(self):
        for code in RejectionCode:
            assert ErrorCode(code.value).value == code.value

    def test_error_response_dump(self):
        data = ErrorResponse(error="nope", error_code=ErrorCode.BAD_TURN).model_dump(mode="json")
        assert data == {"error": "nope", "error_code": "BAD_TURN", "details": None, "api_version": "v1"}

    def test_engine_snapshot_validates(self, drawing_state):
        response = GameStateResponse.model_validate(drawing_state.to_dict(perspective="p1"))
        assert response.phase_key == "build.drawing"
        assert response.current_sub_phase == "drawing"
        assert response.turn_data.dice_roll == 4
        assert {p.player_id for p in response.players} == {"p1", "p2", "watcher"}
        assert response.commitments["SPECIES_1"]["p2"].revealed
