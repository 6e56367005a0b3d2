"""
Tests for the session lifecycle rules.
"""

import pytest

from app.core.db.schemas.quiz import SessionStatus
from app.modules.quiz import state
from app.modules.quiz.errors import ConflictError

WAITING, ACTIVE, ENDED = SessionStatus.WAITING, SessionStatus.ACTIVE, SessionStatus.ENDED


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (WAITING, ACTIVE, True),
            (ACTIVE, ENDED, True),
            (WAITING, ENDED, False),
            (ACTIVE, WAITING, False),
            (ENDED, ACTIVE, False),
            (ENDED, WAITING, False),
            (WAITING, WAITING, False),
        ],
    )
    def test_only_forward_single_steps(self, current, target, allowed):
        assert state.can_transition(current, target) is allowed


class TestGuards:
    def test_start_rejects_active_and_ended(self):
        state.ensure_can_start(WAITING)
        with pytest.raises(ConflictError) as exc:
            state.ensure_can_start(ACTIVE)
        assert exc.value.code == "session_already_started"
        with pytest.raises(ConflictError) as exc:
            state.ensure_can_start(ENDED)
        assert exc.value.code == "session_ended"

    def test_end_rejects_waiting_and_ended(self):
        state.ensure_can_end(ACTIVE)
        with pytest.raises(ConflictError) as exc:
            state.ensure_can_end(WAITING)
        assert exc.value.code == "session_not_started"
        with pytest.raises(ConflictError) as exc:
            state.ensure_can_end(ENDED)
        assert exc.value.code == "session_already_ended"

    def test_joins_only_while_waiting(self):
        state.ensure_accepting_joins(WAITING)
        for status in (ACTIVE, ENDED):
            with pytest.raises(ConflictError):
                state.ensure_accepting_joins(status)

    def test_answers_only_while_active(self):
        state.ensure_accepting_answers(ACTIVE)
        for status in (WAITING, ENDED):
            with pytest.raises(ConflictError) as exc:
                state.ensure_accepting_answers(status)
            assert exc.value.code == "session_not_active"

    def test_questions_hidden_until_start(self):
        with pytest.raises(ConflictError):
            state.ensure_questions_visible(WAITING)
        state.ensure_questions_visible(ACTIVE)
        state.ensure_questions_visible(ENDED)
