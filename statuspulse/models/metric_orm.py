"""
ORM Model for metric samples.

Stores the time-series points published by the metrics feed.
One row per (metric_name, timestamp); the timestamp comes from the feed.
"""
from sqlalchemy import Column, Float, Integer, String, UniqueConstraint

from statuspulse.core.database import Base, UTCDateTime, utcnow


class MetricLogORM(Base):
    """
    A single metric sample.

    Consumed by the dashboard read path, never by alerting.
    """
    __tablename__ = "metric_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    metric_name = Column(String(100), nullable=False, index=True)

    value = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False)  # "ms" or "count"
    interval_sec = Column(Integer, nullable=False)

    timestamp = Column(UTCDateTime, nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("metric_name", "timestamp", name="uq_metric_logs_name_ts"),
    )

    def __repr__(self) -> str:
        return f"MetricLogORM(metric={self.metric_name}, value={self.value}, ts={self.timestamp})"
