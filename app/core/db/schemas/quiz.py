from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.db.base import Base

if TYPE_CHECKING:
    from .auth import User


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionStatus(enum.Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    ENDED = "ended"


class Difficulty(enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuizCategory(Base):
    __tablename__ = "quiz_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), index=True
    )

    questions: Mapped[list["QuizQuestion"]] = relationship(
        "QuizQuestion", back_populates="category"
    )


class QuizQuestion(Base):
    """A true/false statement in the question bank."""

    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("quiz_categories.id"), nullable=True, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answer: Mapped[bool] = mapped_column(Boolean, nullable=False)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    difficulty: Mapped[Difficulty] = mapped_column(
        Enum(Difficulty), nullable=False, default=Difficulty.MEDIUM
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    created_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), index=True
    )

    category: Mapped[Optional["QuizCategory"]] = relationship(
        "QuizCategory", back_populates="questions"
    )


class QuizSession(Base):
    __tablename__ = "quiz_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    code: Mapped[str] = mapped_column(
        String(16), nullable=False, unique=True, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    host_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    timer_per_question_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    is_shuffled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus),
        nullable=False,
        default=SessionStatus.WAITING,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    host: Mapped["User"] = relationship("User")
    questions: Mapped[list["QuizSessionQuestion"]] = relationship(
        "QuizSessionQuestion",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="QuizSessionQuestion.position",
    )
    participants: Mapped[list["QuizSessionParticipant"]] = relationship(
        "QuizSessionParticipant",
        back_populates="session",
        cascade="all, delete-orphan",
    )


class QuizSessionQuestion(Base):
    __tablename__ = "quiz_session_questions"
    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_session_question"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_sessions.id"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_questions.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    session: Mapped["QuizSession"] = relationship(
        "QuizSession", back_populates="questions"
    )
    question: Mapped["QuizQuestion"] = relationship("QuizQuestion")


class QuizSessionParticipant(Base):
    __tablename__ = "quiz_session_participants"
    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_session_participant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_sessions.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    session: Mapped["QuizSession"] = relationship(
        "QuizSession", back_populates="participants"
    )
    answers: Mapped[list["QuizSessionAnswer"]] = relationship(
        "QuizSessionAnswer", back_populates="participant", cascade="all, delete-orphan"
    )


class QuizSessionAnswer(Base):
    """One accepted answer; the unique key enforces at-most-once scoring."""

    __tablename__ = "quiz_session_answers"
    __table_args__ = (
        UniqueConstraint(
            "session_id", "participant_id", "question_id", name="uq_session_answer"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_sessions.id"), nullable=False, index=True
    )
    participant_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_session_participants.id"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_questions.id"), nullable=False
    )
    submitted_answer: Mapped[bool] = mapped_column(Boolean, nullable=False)
    time_remaining_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answered_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    participant: Mapped["QuizSessionParticipant"] = relationship(
        "QuizSessionParticipant", back_populates="answers"
    )


__all__ = [
    "utcnow",
    "SessionStatus",
    "Difficulty",
    "QuizCategory",
    "QuizQuestion",
    "QuizSession",
    "QuizSessionQuestion",
    "QuizSessionParticipant",
    "QuizSessionAnswer",
]
