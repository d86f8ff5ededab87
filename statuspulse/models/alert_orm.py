"""
ORM Model for the notification dedup ledger.

A row means "this recipient has been notified about this reference".
The unique constraint on (recipient_key, alert_type, reference_id) is the
at-most-once guarantee; recipient_key folds the guild/user split into one
non-null column so the constraint never depends on NULL semantics.
"""
from sqlalchemy import CheckConstraint, Column, Integer, String, UniqueConstraint

from statuspulse.core.database import Base, UTCDateTime, utcnow


class SentAlertORM(Base):
    __tablename__ = "sent_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)

    recipient_key = Column(String(100), nullable=False)  # "guild:<id>" or "user:<id>"
    guild_id = Column(String(32), nullable=True, index=True)
    user_id = Column(String(32), nullable=True, index=True)

    alert_type = Column(String(40), nullable=False)  # AlertType values
    reference_id = Column(String(255), nullable=False)

    notified_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("recipient_key", "alert_type", "reference_id", name="uq_sent_alerts_recipient_ref"),
        CheckConstraint(
            "(guild_id IS NULL) <> (user_id IS NULL)",
            name="ck_sent_alerts_single_recipient",
        ),
    )
