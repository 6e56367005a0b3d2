from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.modules.quiz.models import (
    ParticipantSummary,
    QuestionSelector,
    SessionSummary,
)


class CreateSessionRequest(BaseModel):
    title: str = Field(..., max_length=200)
    timer_per_question_seconds: int = 30
    # Question selection: explicit ids, or N random from an optional category
    question_ids: Optional[list[int]] = None
    category_id: Optional[int] = None
    total_questions: int = 10
    shuffle: bool = True

    def selector(self) -> QuestionSelector:
        return QuestionSelector(
            question_ids=self.question_ids,
            category_id=self.category_id,
            total_questions=self.total_questions,
            shuffle=self.shuffle,
        )


class JoinSessionRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)


class JoinSessionResponse(BaseModel):
    participant: ParticipantSummary
    session: SessionSummary


class SubmitAnswerRequest(BaseModel):
    question_id: int
    answer: bool
    time_remaining_seconds: float = Field(..., ge=0)
