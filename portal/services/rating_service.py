"""
Athlete rating engine.

Three 0–5 scores derived from verified facts only
--------------------------------------------------
Achievement score
    Each verified achievement contributes its category weight
    (Competition 5, Season Award 5, Performance 4, anything else 3;
    names are matched exactly).
    score = min(5, mean(weights) × 0.9 + 0.5)
    The 0.9 / +0.5 transform maps the 3–5 weight range onto 3.2–5.0.
Performance score
    score = 5 × completed sessions / all sessions of every plan assigned
    to the athlete.
Hybrid score
    Mean of the two above.

An athlete with no data for a score gets the neutral 3.0. Every score is
rounded to one decimal. Nothing is cached: scores are recomputed on each
read, so they are never stale.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.models import ReviewKind, ReviewStatus, TrainingPlan, TrainingSession
from portal.services.store_service import query_records

NEUTRAL_SCORE = 3.0
MAX_SCORE     = 5

# Exact category names as shown in the achievement form
ACHIEVEMENT_WEIGHTS: dict[str, int] = {
    "Competition":  5,
    "Season Award": 5,
    "Performance":  4,
    "Training":     3,
}
DEFAULT_WEIGHT = 3

_MAX    = Decimal(MAX_SCORE)
_SCALE  = Decimal("0.9")
_OFFSET = Decimal("0.5")


@dataclass(frozen=True)
class RatingBreakdown:
    achievement_score:      float
    performance_score:      float
    hybrid_score:           float
    verified_achievements:  int
    completed_sessions:     int
    total_sessions:         int


def _round1(value: Decimal) -> float:
    """Half-up rounding to one decimal (3.95 → 4.0, unlike round())."""
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def category_weight(category: str | None) -> int:
    return ACHIEVEMENT_WEIGHTS.get(category or "", DEFAULT_WEIGHT)


def achievement_score(categories: Sequence[str | None]) -> float:
    """Score for the categories of an athlete's verified achievements."""
    if not categories:
        return NEUTRAL_SCORE
    mean = Decimal(sum(category_weight(c) for c in categories)) / len(categories)
    return _round1(min(_MAX, mean * _SCALE + _OFFSET))


def performance_score(completed: int, total: int) -> float:
    if total <= 0:
        return NEUTRAL_SCORE
    return _round1(_MAX * completed / total)


def hybrid_score(achievement: float, performance: float) -> float:
    # Both inputs are already one-decimal scores; str() recovers them exactly
    return _round1((Decimal(str(achievement)) + Decimal(str(performance))) / 2)


# ─────────────────────────── Main entry point ─────────────────────────────────

async def rate(session: AsyncSession, athlete_id: int) -> RatingBreakdown:
    """
    Compute the rating breakdown for one athlete from persisted state.
    Read-only: never writes, never caches.
    """
    verified = await query_records(
        session,
        kind=ReviewKind.ACHIEVEMENT,
        subject_id=athlete_id,
        status=ReviewStatus.VERIFIED,
    )
    # A record read mid-transition only counts once its status says verified
    categories = [r.field("category") for r in verified if r.status == ReviewStatus.VERIFIED]

    completed, total = await _session_counts(session, athlete_id)

    a_score = achievement_score(categories)
    p_score = performance_score(completed, total)
    return RatingBreakdown(
        achievement_score=a_score,
        performance_score=p_score,
        hybrid_score=hybrid_score(a_score, p_score),
        verified_achievements=len(categories),
        completed_sessions=completed,
        total_sessions=total,
    )


async def _session_counts(session: AsyncSession, athlete_id: int) -> Tuple[int, int]:
    """(completed, total) sessions across every plan assigned to the athlete."""
    result = await session.execute(
        select(
            func.count(TrainingSession.id),
            func.sum(case((TrainingSession.completed.is_(True), 1), else_=0)),
        )
        .join(TrainingPlan, TrainingSession.plan_id == TrainingPlan.id)
        .where(TrainingPlan.athlete_id == athlete_id)
    )
    total, completed = result.one()
    return int(completed or 0), int(total or 0)
