"""Ranked projection over a session's participants.

Pure and recomputed on every read. Ties on score go to whoever joined
first, then to the lower participant id, so successive polls of an
unchanged roster always return the same order.
"""

from __future__ import annotations

from typing import Iterable

from app.core.db.schemas.quiz import QuizSessionParticipant
from app.modules.quiz.models import LeaderboardEntry


def _rank_key(p: QuizSessionParticipant):
    return (-int(p.score or 0), p.joined_at, p.id)


def rank(participants: Iterable[QuizSessionParticipant]) -> list[LeaderboardEntry]:
    ordered = sorted(participants, key=_rank_key)
    return [
        LeaderboardEntry(
            rank=i,
            user_id=p.user_id,
            display_name=p.display_name,
            avatar_url=p.avatar_url,
            score=int(p.score or 0),
        )
        for i, p in enumerate(ordered, start=1)
    ]
