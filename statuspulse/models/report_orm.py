"""
ORM Model for user-submitted outage reports.

Append-only: reports are inserted and counted, never updated.
"""
from sqlalchemy import Column, Index, Integer, String, Text

from statuspulse.core.database import Base, UTCDateTime, utcnow


class UserReportORM(Base):
    __tablename__ = "user_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)

    guild_id = Column(String(32), nullable=True)
    user_id = Column(String(32), nullable=False)

    incident_type = Column(String(40), nullable=False)  # report category
    content = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active")

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        # Threshold counting: (category, window)
        Index("ix_user_reports_type_created", "incident_type", "created_at"),
        # Cooldown lookup: latest report per submitter
        Index("ix_user_reports_user_created", "user_id", "created_at"),
    )


class ReportCooldownORM(Base):
    """
    Latest accepted report per submitter.

    The row is claimed with a conditional upsert, so the database serialises
    concurrent submissions from the same user.
    """
    __tablename__ = "report_cooldowns"

    user_id = Column(String(32), primary_key=True)
    last_report_at = Column(UTCDateTime, nullable=False)
