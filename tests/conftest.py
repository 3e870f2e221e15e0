"""
Shared pytest fixtures for the review core tests.

Sets required environment variables BEFORE any portal module is imported so
that pydantic-settings and SQLAlchemy engine initialisation use safe test
values.
"""
from __future__ import annotations

import os
from typing import AsyncGenerator

# ── Set env vars before any portal import ─────────────────────────────────────
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["BOT_TOKEN"] = ""

# ── Third-party ───────────────────────────────────────────────────────────────
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# ── Portal imports (safe after env vars are set) ──────────────────────────────
from portal.models.base import Base
from portal.models.models import Role, TrainingPlan, TrainingSession, User


# ── DB fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a fresh AsyncSession backed by an isolated in-memory SQLite database.
    Schema is created fresh for every test function; engine is always disposed
    on teardown, even if the test raises an exception.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


# ── Mock helpers ──────────────────────────────────────────────────────────────

class RecordingNotifier:
    """Notifier that keeps every request instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str, str]] = []

    async def notify(self, user_id: int, kind: str, message: str) -> None:
        self.sent.append((user_id, kind, message))

    def for_user(self, user_id: int) -> list[tuple[int, str, str]]:
        return [n for n in self.sent if n[0] == user_id]


class FailingNotifier:
    """Notifier whose transport is down."""

    async def notify(self, user_id: int, kind: str, message: str) -> None:
        raise RuntimeError("delivery backend unavailable")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_user(async_session):
    """Factory fixture — persists a user with the given role and returns it."""
    counter = {"n": 0}

    async def _make(role: str = Role.ATHLETE, name: str | None = None, **kwargs) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            role=role,
            is_admin=kwargs.pop("is_admin", False),
            **kwargs,
        )
        async_session.add(user)
        await async_session.commit()
        return user

    return _make


@pytest.fixture
def make_plan(async_session):
    """Factory fixture — persists a training plan with `completed` of `total` sessions done."""

    async def _make(athlete: User, coach: User, total: int = 0, completed: int = 0) -> TrainingPlan:
        plan = TrainingPlan(athlete_id=athlete.id, coach_id=coach.id, title="Base block")
        async_session.add(plan)
        await async_session.flush()
        for i in range(total):
            async_session.add(
                TrainingSession(plan_id=plan.id, title=f"Session {i + 1}", completed=i < completed)
            )
        await async_session.commit()
        return plan

    return _make


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()
