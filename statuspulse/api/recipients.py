"""Notification recipient registration."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.api.deps import get_session_factory
from statuspulse.services.recipients import GuildRecipient, RecipientRepository

logger = logging.getLogger(__name__)

router = APIRouter()


class GuildRegistration(BaseModel):
    channel_id: str = Field(description="Channel that receives alerts")


class RecipientSummary(BaseModel):
    kind: str
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    user_id: Optional[str] = None


async def _run(session_factory, action):
    async with session_factory() as session:
        try:
            result = await action(RecipientRepository(session))
            await session.commit()
            return result
        except Exception:
            await session.rollback()
            raise


@router.get("")
async def list_recipients(session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)):
    async with session_factory() as session:
        repo = RecipientRepository(session)
        recipients = await repo.list_enabled()
        counts = await repo.count_enabled()

    items = []
    for r in recipients:
        if isinstance(r, GuildRecipient):
            items.append(RecipientSummary(kind=r.kind, guild_id=r.guild_id, channel_id=r.channel_id))
        else:
            items.append(RecipientSummary(kind=r.kind, user_id=r.user_id))
    return {"recipients": items, "counts": counts}


@router.post("/guilds/{guild_id}", status_code=status.HTTP_201_CREATED)
async def register_guild(
    guild_id: str,
    registration: GuildRegistration,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    await _run(session_factory, lambda repo: repo.register_guild(guild_id, registration.channel_id))
    return {"guild_id": guild_id, "channel_id": registration.channel_id, "enabled": True}


@router.delete("/guilds/{guild_id}")
async def disable_guild(
    guild_id: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    if not await _run(session_factory, lambda repo: repo.disable_guild(guild_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Guild {guild_id} not registered")
    return {"guild_id": guild_id, "enabled": False}


@router.post("/users/{user_id}", status_code=status.HTTP_201_CREATED)
async def register_user(
    user_id: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    await _run(session_factory, lambda repo: repo.register_user(user_id))
    return {"user_id": user_id, "enabled": True}


@router.delete("/users/{user_id}")
async def disable_user(
    user_id: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    if not await _run(session_factory, lambda repo: repo.disable_user(user_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not registered")
    return {"user_id": user_id, "enabled": False}
