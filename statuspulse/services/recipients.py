"""
Notification recipients.

A recipient is either a guild channel or a user's direct messages. The two
are a closed set of variants distinguished by ``kind``; the ledger key is
what the dedup ledger stores.
"""
import logging
from dataclasses import dataclass
from typing import List, Literal, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from statuspulse.core.database import upsert, utcnow
from statuspulse.models.config_orm import GuildConfigORM, UserConfigORM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuildRecipient:
    guild_id: str
    channel_id: str
    kind: Literal["guild"] = "guild"

    @property
    def ledger_key(self) -> str:
        return f"guild:{self.guild_id}"


@dataclass(frozen=True)
class UserRecipient:
    user_id: str
    kind: Literal["user"] = "user"

    @property
    def ledger_key(self) -> str:
        return f"user:{self.user_id}"


Recipient = Union[GuildRecipient, UserRecipient]


class RecipientRepository:
    """Guild and user notification subscriptions, within the caller's session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def register_guild(self, guild_id: str, channel_id: str) -> None:
        """Subscribe a guild channel, or re-enable it and move it to a new channel."""
        now = utcnow()
        await self.session.execute(
            upsert(
                self.session,
                GuildConfigORM.__table__,
                {"guild_id": guild_id, "channel_id": channel_id, "enabled": True,
                 "created_at": now, "updated_at": now},
                ["guild_id"],
                update_columns=["channel_id", "enabled", "updated_at"],
            )
        )
        logger.info(f"Registered guild {guild_id} (channel {channel_id})")

    async def register_user(self, user_id: str) -> None:
        now = utcnow()
        await self.session.execute(
            upsert(
                self.session,
                UserConfigORM.__table__,
                {"user_id": user_id, "enabled": True, "created_at": now, "updated_at": now},
                ["user_id"],
                update_columns=["enabled", "updated_at"],
            )
        )
        logger.info(f"Registered user {user_id}")

    async def disable_guild(self, guild_id: str) -> bool:
        """Soft delete. Returns False when the guild was never registered."""
        result = await self.session.execute(
            update(GuildConfigORM)
            .where(GuildConfigORM.guild_id == guild_id)
            .values(enabled=False, updated_at=utcnow())
        )
        if not result.rowcount:
            return False
        logger.info(f"Disabled guild {guild_id}")
        return True

    async def disable_user(self, user_id: str) -> bool:
        result = await self.session.execute(
            update(UserConfigORM)
            .where(UserConfigORM.user_id == user_id)
            .values(enabled=False, updated_at=utcnow())
        )
        if not result.rowcount:
            return False
        logger.info(f"Disabled user {user_id}")
        return True

    async def list_enabled(self) -> List[Recipient]:
        """Enabled guilds that have a channel, followed by enabled users."""
        guilds = await self.session.execute(
            select(GuildConfigORM.guild_id, GuildConfigORM.channel_id)
            .where(GuildConfigORM.enabled.is_(True), GuildConfigORM.channel_id.is_not(None))
            .order_by(GuildConfigORM.guild_id)
        )
        users = await self.session.execute(
            select(UserConfigORM.user_id)
            .where(UserConfigORM.enabled.is_(True))
            .order_by(UserConfigORM.user_id)
        )
        recipients: List[Recipient] = [
            GuildRecipient(guild_id=guild_id, channel_id=channel_id) for guild_id, channel_id in guilds
        ]
        recipients.extend(UserRecipient(user_id=user_id) for user_id in users.scalars())
        return recipients

    async def count_enabled(self) -> dict:
        guilds = await self.session.scalar(
            select(func.count()).select_from(GuildConfigORM).where(GuildConfigORM.enabled.is_(True))
        )
        users = await self.session.scalar(
            select(func.count()).select_from(UserConfigORM).where(UserConfigORM.enabled.is_(True))
        )
        return {"guilds": guilds or 0, "users": users or 0}

