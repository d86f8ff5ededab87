"""
BotConfig repository.

Flat key/value settings that operators can change at runtime: poll intervals
and report threshold parameters. Values are stored as text.
"""
import logging
from typing import Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from statuspulse.core.database import insert_ignore, upsert, utcnow
from statuspulse.models.config_orm import BotConfigORM

logger = logging.getLogger(__name__)


class ConfigKeys:
    POLLING_STATUS = "polling.status"
    POLLING_INCIDENT = "polling.incident"
    POLLING_MAINTENANCE = "polling.maintenance"
    POLLING_METRICS = "polling.metrics"
    REPORT_THRESHOLD = "report_threshold"
    REPORT_INTERVAL = "report_interval"


class BotConfigRepository:
    """Reads and writes bot_config rows within the caller's session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Optional[str]:
        return await self.session.scalar(select(BotConfigORM.value).where(BotConfigORM.key == key))

    async def get_int(self, key: str, default: int) -> int:
        """Integer value for key, or default when the key is absent or unparsable."""
        raw = await self.get(key)
        if raw is None:
            logger.debug(f"Config key '{key}' not set, using default {default}")
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Config key '{key}' has non-integer value '{raw}', using default {default}")
            return default

    async def set(self, key: str, value) -> None:
        await self.session.execute(
            upsert(
                self.session,
                BotConfigORM.__table__,
                {"key": key, "value": str(value), "updated_at": utcnow()},
                ["key"],
            )
        )

    async def all(self) -> Dict[str, str]:
        result = await self.session.execute(select(BotConfigORM))
        return {row.key: row.value for row in result.scalars()}

    async def seed_defaults(self, defaults: Mapping[str, object]) -> int:
        """Insert missing keys without touching values that are already set."""
        inserted = 0
        for key, value in defaults.items():
            stmt = insert_ignore(
                self.session,
                BotConfigORM.__table__,
                {"key": key, "value": str(value), "updated_at": utcnow()},
                ["key"],
            )
            result = await self.session.execute(stmt)
            inserted += result.rowcount or 0
        return inserted
