"""Session lifecycle rules.

A session moves WAITING -> ACTIVE -> ENDED, host-driven, never backwards
and never skipping a state. The helpers here only decide; persisting a
transition is the session service's job, which does it as a conditional
update so two racing transitions cannot both win.
"""

from __future__ import annotations

from app.core.db.schemas.quiz import SessionStatus
from app.modules.quiz.errors import ConflictError

TRANSITIONS: dict[SessionStatus, SessionStatus] = {
    SessionStatus.WAITING: SessionStatus.ACTIVE,
    SessionStatus.ACTIVE: SessionStatus.ENDED,
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return TRANSITIONS.get(current) == target


def ensure_can_start(status: SessionStatus) -> None:
    if status == SessionStatus.ACTIVE:
        raise ConflictError("Session has already started", code="session_already_started")
    if status == SessionStatus.ENDED:
        raise ConflictError("Session has ended", code="session_ended")


def ensure_can_end(status: SessionStatus) -> None:
    if status == SessionStatus.WAITING:
        raise ConflictError("Session has not started yet", code="session_not_started")
    if status == SessionStatus.ENDED:
        raise ConflictError("Session has already ended", code="session_already_ended")


def ensure_accepting_joins(status: SessionStatus) -> None:
    # Late joins are not supported: a student joining mid-game gets no questions
    if status == SessionStatus.ACTIVE:
        raise ConflictError("Session is already running", code="session_already_started")
    if status == SessionStatus.ENDED:
        raise ConflictError("Session has ended", code="session_ended")


def ensure_accepting_answers(status: SessionStatus) -> None:
    if status != SessionStatus.ACTIVE:
        raise ConflictError("Session is not active", code="session_not_active")


def ensure_questions_visible(status: SessionStatus) -> None:
    if status == SessionStatus.WAITING:
        raise ConflictError("Session has not started yet", code="session_not_started")
