"""
Unit and integration tests — Athlete rating engine (rating_service.py).

Coverage:
  - Category weights (exact names, unknown → 3)
  - Achievement / performance / hybrid formulas and neutral defaults
  - Half-up rounding to one decimal
  - rate(): only verified achievements count, sessions across all plans
"""
from __future__ import annotations

import pytest

from portal.models.models import ReviewKind, ReviewStatus, Role
from portal.services.rating_service import (
    achievement_score,
    category_weight,
    hybrid_score,
    performance_score,
    rate,
)
from portal.services.workflow_service import submit, transition


# ─────────────────────────── Pure formulas ────────────────────────────────────

class TestCategoryWeight:
    @pytest.mark.parametrize("category, weight", [
        ("Competition",  5),
        ("Season Award", 5),
        ("Performance",  4),
        ("Training",     3),
        ("competition",  3),
        (" Performance ", 3),
        ("Chess",        3),
        ("",             3),
        (None,           3),
    ])
    def test_weights(self, category, weight: int) -> None:
        assert category_weight(category) == weight


class TestScores:
    def test_no_achievements_is_neutral(self) -> None:
        assert achievement_score([]) == 3.0

    def test_single_competition_caps_at_five(self) -> None:
        assert achievement_score(["Competition"]) == 5.0

    def test_training_only(self) -> None:
        assert achievement_score(["Training"]) == 3.2

    def test_performance_only(self) -> None:
        assert achievement_score(["Performance"]) == 4.1

    def test_mixed_categories(self) -> None:
        assert achievement_score(["Competition", "Training"]) == 4.1

    def test_no_sessions_is_neutral(self) -> None:
        assert performance_score(0, 0) == 3.0

    @pytest.mark.parametrize("completed, total, expected", [
        (4, 4, 5.0),
        (0, 4, 0.0),
        (3, 4, 3.8),
        (2, 4, 2.5),
        (1, 3, 1.7),
        (2, 3, 3.3),
    ])
    def test_performance_ratio(self, completed: int, total: int, expected: float) -> None:
        assert performance_score(completed, total) == expected

    def test_hybrid_is_mean(self) -> None:
        assert hybrid_score(5.0, 3.0) == 4.0
        assert hybrid_score(4.1, 2.5) == 3.3

    def test_half_rounds_up(self) -> None:
        assert hybrid_score(4.0, 3.5) == 3.8

    def test_half_of_float_sum_rounds_up(self) -> None:
        # (4.1 + 3.8) / 2 is 3.9499… in binary floating point
        assert hybrid_score(4.1, 3.8) == 4.0

    def test_achievement_mean_rounds_half_up(self) -> None:
        # Competition + Performance: mean 4.5 → 4.55
        assert achievement_score(["Competition", "Performance"]) == 4.6

    def test_lowercase_category_gets_default_weight(self) -> None:
        assert achievement_score(["competition"]) == 3.2


# ─────────────────────────── Persisted state ──────────────────────────────────

async def _achievement(session, athlete, official, category: str, status: str | None) -> None:
    record, failure = await submit(
        session, ReviewKind.ACHIEVEMENT, athlete.id, {"title": category, "category": category},
    )
    assert failure is None
    if status is not None:
        _, failure = await transition(session, record.id, status, official)
        assert failure is None


class TestRate:
    async def test_new_athlete_is_neutral(self, async_session, make_user) -> None:
        athlete = await make_user()
        rating = await rate(async_session, athlete.id)
        assert (rating.achievement_score, rating.performance_score, rating.hybrid_score) == (3.0, 3.0, 3.0)
        assert rating.verified_achievements == 0
        assert rating.total_sessions == 0

    async def test_only_verified_achievements_count(self, async_session, make_user) -> None:
        athlete = await make_user()
        official = await make_user(Role.OFFICIAL)
        await _achievement(async_session, athlete, official, "Competition", ReviewStatus.VERIFIED)
        await _achievement(async_session, athlete, official, "Training", ReviewStatus.REJECTED)
        await _achievement(async_session, athlete, official, "Training", None)

        rating = await rate(async_session, athlete.id)
        assert rating.verified_achievements == 1
        assert rating.achievement_score == 5.0
        assert rating.performance_score == 3.0
        assert rating.hybrid_score == 4.0

    async def test_sessions_across_plans(self, async_session, make_user, make_plan) -> None:
        athlete = await make_user()
        coach = await make_user(Role.COACH)
        await make_plan(athlete, coach, total=2, completed=2)
        await make_plan(athlete, coach, total=2, completed=1)

        rating = await rate(async_session, athlete.id)
        assert (rating.completed_sessions, rating.total_sessions) == (3, 4)
        assert rating.performance_score == 3.8

    async def test_other_athletes_sessions_ignored(self, async_session, make_user, make_plan) -> None:
        athlete = await make_user()
        other = await make_user()
        coach = await make_user(Role.COACH)
        await make_plan(other, coach, total=5, completed=5)

        rating = await rate(async_session, athlete.id)
        assert rating.total_sessions == 0
        assert rating.performance_score == 3.0

    async def test_combined_breakdown(self, async_session, make_user, make_plan) -> None:
        athlete = await make_user()
        official = await make_user(Role.OFFICIAL)
        coach = await make_user(Role.COACH)
        await _achievement(async_session, athlete, official, "Competition", ReviewStatus.VERIFIED)
        await _achievement(async_session, athlete, official, "Training", ReviewStatus.VERIFIED)
        await make_plan(athlete, coach, total=4, completed=2)

        rating = await rate(async_session, athlete.id)
        assert rating.achievement_score == 4.1
        assert rating.performance_score == 2.5
        assert rating.hybrid_score == 3.3

    async def test_rate_is_recomputed_each_call(self, async_session, make_user) -> None:
        athlete = await make_user()
        official = await make_user(Role.OFFICIAL)
        before = await rate(async_session, athlete.id)
        await _achievement(async_session, athlete, official, "Performance", ReviewStatus.VERIFIED)
        after = await rate(async_session, athlete.id)
        assert before.achievement_score == 3.0
        assert after.achievement_score == 4.1
