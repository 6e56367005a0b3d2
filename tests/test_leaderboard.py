"""
Tests for the ranked leaderboard projection.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

from app.modules.quiz.leaderboard import rank

T0 = datetime(2026, 1, 5, 9, 0, 0)


def participant(pid, score, joined_offset, name=None):
    return SimpleNamespace(
        id=pid,
        user_id=100 + pid,
        display_name=name or f"P{pid}",
        avatar_url=None,
        score=score,
        joined_at=T0 + timedelta(seconds=joined_offset),
    )


class TestRank:
    def test_empty_roster(self):
        assert rank([]) == []

    def test_orders_by_score_descending(self):
        entries = rank([participant(1, 100, 0), participant(2, 900, 1), participant(3, 500, 2)])
        assert [e.user_id for e in entries] == [102, 103, 101]
        assert [e.rank for e in entries] == [1, 2, 3]

    def test_ties_go_to_earlier_joiner(self):
        entries = rank([participant(1, 500, 10), participant(2, 500, 5)])
        assert [e.user_id for e in entries] == [102, 101]

    def test_full_tie_falls_back_to_participant_id(self):
        entries = rank([participant(7, 0, 0), participant(3, 0, 0)])
        assert [e.user_id for e in entries] == [103, 107]

    def test_ranking_is_stable_across_calls(self):
        roster = [participant(i, (i * 37) % 5 * 100, i % 3) for i in range(1, 12)]
        first = rank(roster)
        second = rank(list(reversed(roster)))
        assert first == second
