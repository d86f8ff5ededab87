"""
Maintenance Reconciler.

Two feeds describe maintenances: "upcoming" (scheduled) and "active"
(in_progress). Neither reports completion, so completion is inferred:

- scheduled -> in_progress: the id appears in the active feed.
- in_progress -> completed: absent from the active feed AND now is past
  scheduled_until. Absence alone is not enough (feed jitter).
- scheduled -> completed: scheduled_until passed without the maintenance
  ever showing up as active. No started event is emitted.

The per-maintenance decision is the pure function ``decide_maintenance``;
``MaintenanceReconciler`` only loads rows, applies decisions and commits.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.database import utcnow
from statuspulse.events.schemas import AlertType, MaintenanceEvent
from statuspulse.models.maintenance_orm import MaintenanceORM
from statuspulse.schemas.statuspage import FeedMaintenance, MaintenanceStatus
from statuspulse.services.feed_client import FeedClient

logger = logging.getLogger(__name__)

SCHEDULED = MaintenanceStatus.SCHEDULED.value
IN_PROGRESS = MaintenanceStatus.IN_PROGRESS.value
COMPLETED = MaintenanceStatus.COMPLETED.value

# Status only moves forward along this order
_RANK = {SCHEDULED: 0, IN_PROGRESS: 1, COMPLETED: 2}


@dataclass(frozen=True)
class MaintenanceRow:
    id: str
    title: str
    status: str
    scheduled_for: datetime
    scheduled_until: datetime

    @classmethod
    def from_orm(cls, row: MaintenanceORM) -> "MaintenanceRow":
        return cls(row.id, row.title, row.status, row.scheduled_for, row.scheduled_until)


@dataclass(frozen=True)
class MaintenanceDecision:
    row: Optional[MaintenanceRow] = None  # row to write; None means leave the store alone
    events: List[AlertType] = field(default_factory=list)
    is_insert: bool = False


def _rank(status: str) -> int:
    # Unknown upstream statuses (e.g. "verifying") are treated as scheduled
    return _RANK.get(status, 0)


def decide_maintenance(
    stored: Optional[MaintenanceRow],
    upcoming: Optional[FeedMaintenance],
    active: Optional[FeedMaintenance],
    now: datetime,
) -> MaintenanceDecision:
    """Compute the write and lifecycle events for one maintenance id."""
    entry = active or upcoming

    if stored is None:
        if entry is None:
            return MaintenanceDecision()
        if active is not None:
            status, events = IN_PROGRESS, [AlertType.MAINTENANCE_STARTED]
        elif entry.status == COMPLETED:
            # Already over by the time we first saw it: store, announce nothing
            status, events = COMPLETED, []
        else:
            status, events = SCHEDULED, [AlertType.MAINTENANCE_SCHEDULED]
        row = MaintenanceRow(entry.id, entry.name, status, entry.scheduled_for, entry.scheduled_until)
        return MaintenanceDecision(row=row, events=events, is_insert=True)

    status = stored.status
    scheduled_for = entry.scheduled_for if entry else stored.scheduled_for
    scheduled_until = entry.scheduled_until if entry else stored.scheduled_until
    events: List[AlertType] = []

    if active is not None:
        if _rank(status) < _rank(IN_PROGRESS):
            status = IN_PROGRESS
            events.append(AlertType.MAINTENANCE_STARTED)
    elif status != COMPLETED and now > scheduled_until:
        # in_progress that left the active feed, or scheduled that never started
        status = COMPLETED
        events.append(AlertType.MAINTENANCE_COMPLETED)
    elif upcoming is not None and upcoming.status == COMPLETED and status != COMPLETED:
        # Only the active feed starts a maintenance; upcoming may only finish it
        status = COMPLETED
        events.append(AlertType.MAINTENANCE_COMPLETED)

    changed = (
        status != stored.status
        or scheduled_for != stored.scheduled_for
        or scheduled_until != stored.scheduled_until
    )
    if not changed:
        return MaintenanceDecision()

    row = replace(
        stored,
        title=entry.name if entry else stored.title,
        status=status,
        scheduled_for=scheduled_for,
        scheduled_until=scheduled_until,
    )
    return MaintenanceDecision(row=row, events=events)


class MaintenanceReconciler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: FeedClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.feed = feed
        self.clock = clock

    async def poll(self) -> List[MaintenanceEvent]:
        upcoming = await self.feed.fetch_upcoming_maintenances()
        active = await self.feed.fetch_active_maintenances()
        return await self.reconcile(upcoming, active)

    async def reconcile(
        self,
        upcoming: List[FeedMaintenance],
        active: List[FeedMaintenance],
        now: Optional[datetime] = None,
    ) -> List[MaintenanceEvent]:
        now = now or self.clock()
        upcoming_by_id: Dict[str, FeedMaintenance] = {m.id: m for m in upcoming}
        active_by_id: Dict[str, FeedMaintenance] = {m.id: m for m in active}
        events: List[MaintenanceEvent] = []

        async with self.session_factory() as session:
            try:
                feed_ids = set(upcoming_by_id) | set(active_by_id)
                stored_rows = await self._load(session, feed_ids)

                for maintenance_id in sorted(feed_ids | set(stored_rows)):
                    orm_row = stored_rows.get(maintenance_id)
                    decision = decide_maintenance(
                        MaintenanceRow.from_orm(orm_row) if orm_row else None,
                        upcoming_by_id.get(maintenance_id),
                        active_by_id.get(maintenance_id),
                        now,
                    )
                    if decision.row is None:
                        continue

                    source_updated = (active_by_id.get(maintenance_id) or upcoming_by_id.get(maintenance_id))
                    updated_at = source_updated.updated_at if source_updated else now
                    self._apply(session, orm_row, decision, updated_at)

                    for event_type in decision.events:
                        events.append(MaintenanceEvent(
                            event_type=event_type,
                            reference=maintenance_id,
                            maintenance_id=maintenance_id,
                            title=decision.row.title,
                            status=decision.row.status,
                            scheduled_for=decision.row.scheduled_for,
                            scheduled_until=decision.row.scheduled_until,
                        ))

                await session.commit()
            except Exception:
                await session.rollback()
                raise

        return events

    async def _load(self, session: AsyncSession, feed_ids) -> Dict[str, MaintenanceORM]:
        """Stored rows that appear in either feed or are not yet completed."""
        stmt = select(MaintenanceORM).where(MaintenanceORM.status != COMPLETED)
        if feed_ids:
            stmt = select(MaintenanceORM).where(
                (MaintenanceORM.status != COMPLETED) | (MaintenanceORM.id.in_(feed_ids))
            )
        result = await session.execute(stmt)
        return {row.id: row for row in result.scalars().all()}

    def _apply(
        self,
        session: AsyncSession,
        orm_row: Optional[MaintenanceORM],
        decision: MaintenanceDecision,
        updated_at: datetime,
    ) -> None:
        row = decision.row
        if orm_row is None:
            session.add(MaintenanceORM(
                id=row.id,
                title=row.title,
                status=row.status,
                scheduled_for=row.scheduled_for,
                scheduled_until=row.scheduled_until,
                created_at=utcnow(),
                updated_at=updated_at,
            ))
            logger.info(f"Inserted new maintenance {row.id} ({row.title}, status={row.status})")
            return

        previous = orm_row.status
        orm_row.title = row.title
        orm_row.status = row.status
        orm_row.scheduled_for = row.scheduled_for
        orm_row.scheduled_until = row.scheduled_until
        orm_row.updated_at = updated_at
        if previous != row.status:
            logger.info(f"Maintenance {row.id} moved {previous} -> {row.status}")
        else:
            logger.debug(f"Updated maintenance {row.id} schedule")
