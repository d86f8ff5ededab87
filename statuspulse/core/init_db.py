"""
Database initialization script.

Creates every table and seeds bot_config with default values.
Existing configuration values are never overwritten.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from statuspulse.core.config import get_settings
from statuspulse.core.database import Base, engine as default_engine
import statuspulse.models  # noqa: F401  (registers tables with Base)
from statuspulse.services.bot_config import BotConfigRepository, ConfigKeys

logger = logging.getLogger(__name__)


def default_bot_config() -> dict:
    settings = get_settings()
    interval = settings.poll_interval_default_seconds
    return {
        ConfigKeys.POLLING_STATUS: interval,
        ConfigKeys.POLLING_INCIDENT: interval,
        ConfigKeys.POLLING_MAINTENANCE: interval,
        ConfigKeys.POLLING_METRICS: interval,
        ConfigKeys.REPORT_THRESHOLD: settings.default_report_threshold,
        ConfigKeys.REPORT_INTERVAL: settings.default_report_interval_minutes,
    }


async def init_database(engine: Optional[AsyncEngine] = None) -> int:
    """Create tables and seed defaults. Returns the number of config keys seeded."""
    engine = engine or default_engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        seeded = await BotConfigRepository(session).seed_defaults(default_bot_config())
        await session.commit()

    logger.info(f"Database initialized ({seeded} config keys seeded)")
    return seeded


async def drop_all_tables(engine: Optional[AsyncEngine] = None):
    """Drop all tables (use with caution!)."""
    engine = engine or default_engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("All tables dropped")


if __name__ == "__main__":
    import sys

    from statuspulse.core.logging import setup_logging

    setup_logging(get_settings().log_level)
    if len(sys.argv) > 1 and sys.argv[1] == "--drop":
        print("WARNING: This will drop all tables!")
        confirm = input("Type 'yes' to confirm: ")
        if confirm == "yes":
            asyncio.run(drop_all_tables())
        else:
            print("Aborted.")
    else:
        asyncio.run(init_database())
