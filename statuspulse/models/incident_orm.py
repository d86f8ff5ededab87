"""
ORM Models for mirrored incidents.

Incidents are owned by the incident reconciler: they change only when the
feed is reconciled, never when notifications are delivered.
Incident updates are immutable once stored.
"""
from sqlalchemy import Column, ForeignKey, Integer, String, Text

from statuspulse.core.database import Base, UTCDateTime, utcnow


class IncidentORM(Base):
    __tablename__ = "incidents"

    # External, stable identifier from the feed
    id = Column(String(64), primary_key=True)

    title = Column(String(500), nullable=False)
    impact = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, index=True)  # IncidentStatus values

    started_at = Column(UTCDateTime, nullable=False)
    # Set exactly once, by whichever pass first observes the resolution
    resolved_at = Column(UTCDateTime, nullable=True)

    # Consecutive passes in which the incident was absent from the unresolved feed
    missing_count = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    # Source updated_at as reported by the feed
    updated_at = Column(UTCDateTime, nullable=False)


class IncidentUpdateORM(Base):
    __tablename__ = "incident_updates"

    id = Column(String(64), primary_key=True)
    incident_id = Column(
        String(64),
        ForeignKey("incidents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    body = Column(Text, nullable=False)
    status = Column(String(20), nullable=False)  # status of the incident at the time of the update
    published_at = Column(UTCDateTime, nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
