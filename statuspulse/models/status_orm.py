"""
ORM Models for status snapshots.

One row per distinct source timestamp published by the status feed.
Re-fetching an unchanged summary hits the unique constraint and writes nothing.
"""
from sqlalchemy import Column, Integer, String, Text, Index, UniqueConstraint

from statuspulse.core.database import Base, UTCDateTime, utcnow


class StatusLogORM(Base):
    __tablename__ = "status_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    indicator = Column(String(20), nullable=False)  # StatusIndicator values
    description = Column(Text, nullable=False)

    # Assigned by the feed (page.updated_at), never by the local clock
    source_timestamp = Column(UTCDateTime, nullable=False, unique=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"StatusLogORM(indicator={self.indicator}, ts={self.source_timestamp})"


class ComponentLogORM(Base):
    __tablename__ = "component_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    component_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    status = Column(String(40), nullable=False)  # ComponentStatus values

    source_timestamp = Column(UTCDateTime, nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("component_id", "source_timestamp", name="uq_component_logs_component_ts"),
        Index("ix_component_logs_ts", "source_timestamp"),
    )
