from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.core.db.schemas.quiz import Difficulty
from app.modules.quiz.generator import GeneratedQuestion


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class CategoryRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    question_count: int = 0
    created_at: datetime


class QuestionCreate(BaseModel):
    text: str = Field(..., min_length=1)
    correct_answer: bool
    explanation: Optional[str] = None
    category_id: Optional[int] = None
    difficulty: Difficulty = Difficulty.MEDIUM


class QuestionRead(BaseModel):
    """Host-facing question, including the answer key."""

    id: int
    text: str
    correct_answer: bool
    explanation: Optional[str] = None
    category_id: Optional[int] = None
    difficulty: Difficulty
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class GenerateQuestionsRequest(BaseModel):
    mode: Literal["math", "ai"] = "math"
    num_questions: int = Field(10, ge=1, le=50)
    # AI settings
    topic: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    # Math settings
    math_ops: list[str] = Field(default_factory=lambda: ["add", "sub"])
    min_value: int = 1
    max_value: int = 99
    false_ratio: float = Field(0.5, ge=0.0, le=1.0)
    # Persist into the bank under this category when set
    persist: bool = False
    category_id: Optional[int] = None


class GenerateQuestionsResponse(BaseModel):
    questions: list[GeneratedQuestion]
    saved: list[QuestionRead] = Field(default_factory=list)
