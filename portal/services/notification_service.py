"""
Notification emitter.

The workflow service hands every decision outcome to a Notifier as a
(user_id, kind, message) request after the transition is committed.
Delivery is the notifier's business: failures are logged here and never
reach the caller.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.config import settings
from portal.models.models import ReviewKind, ReviewRecord, ReviewStatus, User

logger = logging.getLogger(__name__)


class NotificationKind:
    MEDICAL_LEAVE_REVIEWED = "medical_leave_reviewed"
    MEDICAL_LEAVE_DECISION = "medical_leave_decision"
    REGISTRATION_CANCELLED = "registration_cancelled"

    @staticmethod
    def for_outcome(record_kind: str, status: str) -> str:
        """e.g. ('achievement', 'verified') → 'achievement_verified'."""
        return f"{record_kind}_{status}"


class Notifier(Protocol):
    async def notify(self, user_id: int, kind: str, message: str) -> None: ...


# ─────────────────────────── Implementations ──────────────────────────────────

class LoggingNotifier:
    """Writes notification requests to the log. Used when no transport is set up."""

    async def notify(self, user_id: int, kind: str, message: str) -> None:
        logger.info("Notification for user_id=%d [%s]: %s", user_id, kind, message)


class TelegramNotifier:
    """
    Delivers notifications as Telegram messages.
    Users without a linked telegram_id are skipped.
    """

    def __init__(
        self,
        bot: Bot,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._bot = bot
        self._session_factory = session_factory

    async def notify(self, user_id: int, kind: str, message: str) -> None:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
        if user is None or not user.telegram_id:
            logger.debug("User %d has no Telegram chat, skipping %s", user_id, kind)
            return
        try:
            await self._bot.send_message(
                chat_id=user.telegram_id,
                text=message,
            )
        except (TelegramForbiddenError, TelegramBadRequest) as e:
            logger.warning(
                "Could not notify user_id=%d telegram_id=%d: %s", user_id, user.telegram_id, e
            )

    async def close(self) -> None:
        await self._bot.session.close()


def build_notifier(session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> Notifier:
    """Pick the notifier the current settings allow."""
    if settings.telegram_enabled and session_factory is not None:
        bot = Bot(token=settings.BOT_TOKEN)
        return TelegramNotifier(bot, session_factory)
    return LoggingNotifier()


# ─────────────────────────── Message texts ────────────────────────────────────

_OUTCOME_TEXT = {
    ReviewStatus.VERIFIED:  "has been verified",
    ReviewStatus.APPROVED:  "has been approved",
    ReviewStatus.REJECTED:  "has been rejected",
    ReviewStatus.CANCELLED: "has been cancelled",
    ReviewStatus.ACCEPTED:  "has been accepted by the specialist",
    ReviewStatus.DECLINED:  "has been declined by the specialist",
}


def outcome_message(record: ReviewRecord, status: str) -> str:
    """Sentence shown to the subject after `record` moved to `status`."""
    label = record.kind_label
    title = record.field("title") or record.field("sport")
    subject = f"Your {label.lower()}" + (f" '{title}'" if title else "")

    if record.kind == ReviewKind.MEDICAL_LEAVE:
        if status == ReviewStatus.PENDING_COACH_DECISION:
            return (
                "Your medical leave request has been reviewed by a specialist "
                "and is waiting for your coach's decision."
            )
        if status in (ReviewStatus.APPROVED, ReviewStatus.REJECTED):
            text = f"Your coach has decided: {record.field('coach_decision')}."
            if record.field("coach_notes"):
                text += f" Notes: {record.field('coach_notes')}"
            return text

    text = f"{subject} {_OUTCOME_TEXT.get(status, 'is now ' + status)}."
    if status == ReviewStatus.REJECTED and record.field("review_notes"):
        text += f" Reason: {record.field('review_notes')}"
    if record.kind == ReviewKind.PROFILE_CHANGE_REQUEST and status == ReviewStatus.APPROVED:
        text += " Your profile has been updated."
    return text


def counterparty_message(record: ReviewRecord, status: str) -> Optional[str]:
    """Text for the coach on the record, when the outcome concerns them too."""
    if record.kind == ReviewKind.MEDICAL_LEAVE and status == ReviewStatus.PENDING_COACH_DECISION:
        return (
            "A specialist has reviewed a medical leave request with recommendation: "
            f"{record.field('specialist_recommendation')}. Your decision is needed."
        )
    if status == ReviewStatus.CANCELLED:
        return f"An athlete has cancelled their {record.kind_label.lower()}."
    return None
