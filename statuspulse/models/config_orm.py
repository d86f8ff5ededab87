"""
ORM Models for runtime configuration and notification recipients.
"""
from sqlalchemy import Boolean, Column, String, Text

from statuspulse.core.database import Base, UTCDateTime, utcnow


class BotConfigORM(Base):
    """Flat key/value store for hot-reloadable settings (poll intervals, report thresholds)."""
    __tablename__ = "bot_config"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class GuildConfigORM(Base):
    """A guild that receives alerts in one of its channels."""
    __tablename__ = "guild_configs"

    guild_id = Column(String(32), primary_key=True)
    channel_id = Column(String(32), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class UserConfigORM(Base):
    """A user who receives alerts by direct message."""
    __tablename__ = "user_configs"

    user_id = Column(String(32), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
