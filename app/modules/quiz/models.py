"""Pydantic models for live quiz sessions.

Plain schemas shared by the session engine and the API handlers. DB models
live under app.core.db.schemas.quiz; these are the shapes that leave the
engine, so none of the participant-facing ones carry the answer key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.core.db.schemas.quiz import Difficulty, SessionStatus


class QuestionSelector(BaseModel):
    """How a session's question set is picked at creation time.

    Either an explicit list of question ids, or ``total_questions`` random
    active questions (optionally restricted to one category). The selector
    is resolved exactly once; the session stores the concrete ids.
    """

    question_ids: Optional[list[int]] = None
    category_id: Optional[int] = None
    total_questions: int = 10
    shuffle: bool = True

    @model_validator(mode="after")
    def _dedupe_ids(self) -> "QuestionSelector":
        if self.question_ids:
            self.question_ids = list(dict.fromkeys(self.question_ids))
        return self


class SessionSummary(BaseModel):
    id: int
    code: str
    title: str
    status: SessionStatus
    host_id: int
    timer_per_question_seconds: int
    is_shuffled: bool
    total_questions: int
    participant_count: int
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class ParticipantSummary(BaseModel):
    id: int
    user_id: int
    display_name: str
    avatar_url: Optional[str] = None
    score: int = 0
    joined_at: datetime


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    display_name: str
    avatar_url: Optional[str] = None
    score: int


class PublicQuestion(BaseModel):
    """Participant-facing question: never includes the answer key."""

    id: int
    position: int
    text: str
    category: Optional[str] = None
    difficulty: Difficulty


class QuestionSet(BaseModel):
    session_id: int
    code: str
    title: str
    timer_per_question_seconds: int
    questions: list[PublicQuestion] = Field(default_factory=list)


class AnswerResult(BaseModel):
    question_id: int
    is_correct: bool
    points_awarded: int
    explanation: Optional[str] = None
    already_answered: bool = False
    score: int


class UserInfo(BaseModel):
    """What the session engine needs to know about a user."""

    id: int
    display_name: str
    avatar_url: Optional[str] = None
    can_host: bool = False
    is_admin: bool = False
