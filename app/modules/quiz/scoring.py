"""Points awarded for a single live-quiz answer.

The engine takes any ``ScoreFunction`` so the curve can be tuned without
touching the transaction that applies it. The default is a fixed base for
a correct answer plus a speed bonus proportional to the share of the timer
still left; wrong answers earn nothing.
"""

from __future__ import annotations

import math
from typing import Callable

from app.core.config import settings

ScoreFunction = Callable[[bool, float, int], int]


def speed_bonus_score(
    is_correct: bool,
    time_remaining_seconds: float,
    timer_total_seconds: int,
    *,
    base_points: int | None = None,
    speed_bonus_points: int | None = None,
) -> int:
    if not is_correct:
        return 0
    base = settings.quiz.base_points if base_points is None else base_points
    bonus = (
        settings.quiz.speed_bonus_points
        if speed_bonus_points is None
        else speed_bonus_points
    )
    if timer_total_seconds <= 0:
        ratio = 0.0
    else:
        ratio = min(max(float(time_remaining_seconds) / timer_total_seconds, 0.0), 1.0)
    return max(0, int(base) + math.floor(ratio * int(bonus)))


def apply_score(
    score_fn: ScoreFunction,
    is_correct: bool,
    time_remaining_seconds: float,
    timer_total_seconds: int,
) -> int:
    """Run a score function and coerce its result to a non-negative int."""
    if not is_correct:
        return 0
    points = score_fn(is_correct, time_remaining_seconds, timer_total_seconds)
    return max(0, int(points))
