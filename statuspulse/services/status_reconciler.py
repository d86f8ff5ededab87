"""
Status Reconciler.

Mirrors /summary.json into status_logs and component_logs. A summary is
identified by its source timestamp: a re-poll that returns a timestamp
already stored writes nothing and emits nothing.
"""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.database import insert_ignore, utcnow
from statuspulse.events.schemas import StatusChangedEvent
from statuspulse.models.status_orm import ComponentLogORM, StatusLogORM
from statuspulse.schemas.statuspage import SummaryResponse
from statuspulse.services.feed_client import FeedClient

logger = logging.getLogger(__name__)


def status_reference(indicator: str, source_timestamp) -> str:
    return f"{indicator}_{source_timestamp.isoformat()}"


class StatusReconciler:
    """Aggregate status + per-component status snapshots."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], feed: FeedClient):
        self.session_factory = session_factory
        self.feed = feed

    async def poll(self) -> List[StatusChangedEvent]:
        """Fetch the summary and reconcile it. Fetch errors propagate before any write."""
        summary = await self.feed.fetch_summary()
        return await self.reconcile(summary)

    async def reconcile(self, summary: SummaryResponse) -> List[StatusChangedEvent]:
        source_ts = summary.page.updated_at
        indicator = summary.status.indicator
        events: List[StatusChangedEvent] = []

        async with self.session_factory() as session:
            try:
                previous = await self._latest_indicator(session)

                result = await session.execute(
                    insert_ignore(
                        session,
                        StatusLogORM.__table__,
                        {
                            "indicator": indicator,
                            "description": summary.status.description,
                            "source_timestamp": source_ts,
                            "created_at": utcnow(),
                        },
                        ["source_timestamp"],
                    )
                )
                inserted = bool(result.rowcount)

                if inserted:
                    logger.info(f"Inserted new status log (indicator={indicator}, source_ts={source_ts.isoformat()})")
                    if previous != indicator:
                        events.append(StatusChangedEvent(
                            reference=status_reference(indicator, source_ts),
                            indicator=indicator,
                            previous_indicator=previous,
                            description=summary.status.description,
                            source_timestamp=source_ts,
                        ))
                else:
                    logger.debug("Status log already exists for source timestamp, skipping")

                new_components = 0
                for component in summary.components:
                    res = await session.execute(
                        insert_ignore(
                            session,
                            ComponentLogORM.__table__,
                            {
                                "component_id": component.id,
                                "name": component.name,
                                "status": component.status,
                                "source_timestamp": source_ts,
                                "created_at": utcnow(),
                            },
                            ["component_id", "source_timestamp"],
                        )
                    )
                    new_components += res.rowcount or 0
                if new_components:
                    logger.debug(f"Inserted {new_components} component logs")

                await session.commit()
            except Exception:
                await session.rollback()
                raise

        return events

    async def _latest_indicator(self, session: AsyncSession):
        result = await session.execute(
            select(StatusLogORM.indicator)
            .order_by(StatusLogORM.source_timestamp.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
