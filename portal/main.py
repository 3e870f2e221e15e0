"""
Sports portal review core — database bootstrap.
Configures logging, creates all tables, reports which notifier is active.

    python -m portal.main
"""
import asyncio
import logging
import sys

from portal.config import settings
from portal.models.base import AsyncSessionFactory, Base, engine
from portal.services.notification_service import TelegramNotifier, build_notifier

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready.")
    except Exception as e:
        logger.critical(
            "Cannot connect to database!\n"
            "   URL: %s\n"
            "   Error: %s\n\n"
            "   → Locally: start PostgreSQL or use SQLite "
            "(DATABASE_URL=sqlite+aiosqlite:///./portal.db)",
            settings.DATABASE_URL.split("@")[-1],   # hide credentials in log
            e,
        )
        sys.exit(1)


async def main() -> None:
    logger.info("Bootstrapping sports portal review core…")
    await create_tables()

    notifier = build_notifier(AsyncSessionFactory)
    if isinstance(notifier, TelegramNotifier):
        logger.info("Notifications: Telegram delivery enabled.")
        await notifier.close()
    else:
        logger.info("Notifications: BOT_TOKEN not set, requests are logged only.")

    await engine.dispose()
    logger.info("Done.")


if __name__ == "__main__":
    asyncio.run(main())
