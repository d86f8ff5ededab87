"""
Metric Reconciler.

Copies every sample from the metrics feed into metric_logs. Samples are
identified by (metric_name, timestamp); a re-poll rewrites nothing.
Metrics never produce notifications.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.database import insert_ignore, utcnow
from statuspulse.core.exceptions import FeedFetchError
from statuspulse.models.metric_orm import MetricLogORM
from statuspulse.schemas.metrics import (
    METRIC_DEFINITIONS,
    METRIC_INTERVAL_SECONDS,
    MetricDataPoint,
    MetricDefinition,
)
from statuspulse.services.feed_client import FeedClient

logger = logging.getLogger(__name__)


def _to_datetime(unix_ts: int) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(unix_ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class MetricReconciler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: FeedClient,
        metrics: Optional[Sequence[MetricDefinition]] = None,
    ):
        self.session_factory = session_factory
        self.feed = feed
        self.metrics = list(metrics) if metrics is not None else list(METRIC_DEFINITIONS)

    async def poll(self) -> List:
        """
        Fetch and store every metric.

        A failing endpoint is skipped; the remaining metrics are still
        collected. Returns an empty event list.
        """
        inserted: Dict[str, int] = {}
        for metric in self.metrics:
            try:
                points = await self.feed.fetch_metric(metric)
            except FeedFetchError as e:
                logger.warning(f"Failed to fetch metric {metric.name}: {e}")
                continue
            inserted[metric.name] = await self.reconcile(metric, points)

        total = sum(inserted.values())
        if total:
            logger.info(f"Inserted {total} metric samples", extra={"extra_data": inserted})
        return []

    async def reconcile(self, metric: MetricDefinition, points: List[MetricDataPoint]) -> int:
        """Insert unseen samples for one metric. Returns the number of new rows."""
        count = 0
        async with self.session_factory() as session:
            try:
                for unix_ts, value in points:
                    ts = _to_datetime(unix_ts)
                    if ts is None:
                        logger.warning(f"Skipping {metric.name} sample with invalid timestamp {unix_ts}")
                        continue
                    result = await session.execute(
                        insert_ignore(
                            session,
                            MetricLogORM.__table__,
                            {
                                "metric_name": metric.name,
                                "value": value,
                                "unit": metric.unit,
                                "interval_sec": METRIC_INTERVAL_SECONDS,
                                "timestamp": ts,
                                "created_at": utcnow(),
                            },
                            ["metric_name", "timestamp"],
                        )
                    )
                    count += result.rowcount or 0
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return count
