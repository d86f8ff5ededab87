"""
ORM Model for scheduled maintenances.

Rewritten only when status, scheduled_for or scheduled_until change.
"""
from sqlalchemy import Column, String

from statuspulse.core.database import Base, UTCDateTime, utcnow


class MaintenanceORM(Base):
    __tablename__ = "maintenances"

    id = Column(String(64), primary_key=True)

    title = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, index=True)  # MaintenanceStatus values

    scheduled_for = Column(UTCDateTime, nullable=False)
    scheduled_until = Column(UTCDateTime, nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"MaintenanceORM(id={self.id}, status={self.status})"
