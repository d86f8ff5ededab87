"""
Incident Reconciler.

The unresolved-incidents feed drops an incident once it is resolved instead
of flagging it, so resolution has to be inferred from absence:

1. Fetch. On failure, abort; absence is never inferred from a failed call.
2. Load stored incidents whose status is not resolved.
3. Any of those missing from the feed is resolved (after
   ``resolve_after_missing`` consecutive absent passes).
4. Upsert every feed incident and insert its unseen updates.
5. An empty feed is valid and resolves everything still open.

Events are returned only after the pass has been committed.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.config import get_settings
from statuspulse.core.database import insert_ignore, utcnow
from statuspulse.events.schemas import AlertType, IncidentEvent
from statuspulse.models.incident_orm import IncidentORM, IncidentUpdateORM
from statuspulse.schemas.statuspage import FeedIncident, IncidentStatus
from statuspulse.services.feed_client import FeedClient

logger = logging.getLogger(__name__)

RESOLVED = IncidentStatus.RESOLVED.value


def _incident_event(event_type: AlertType, incident: IncidentORM, reference: str, body: Optional[str] = None) -> IncidentEvent:
    return IncidentEvent(
        event_type=event_type,
        reference=reference,
        incident_id=incident.id,
        title=incident.title,
        status=incident.status,
        impact=incident.impact,
        body=body,
    )


class IncidentReconciler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: FeedClient,
        resolve_after_missing: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.feed = feed
        if resolve_after_missing is None:
            resolve_after_missing = get_settings().incident_resolve_after_missing
        self.resolve_after_missing = max(1, resolve_after_missing)
        self.clock = clock

    async def poll(self) -> List[IncidentEvent]:
        try:
            incidents = await self.feed.fetch_unresolved_incidents()
        except Exception as e:
            logger.warning(f"Incident feed fetch failed, skipping resolution detection: {e}")
            raise
        return await self.reconcile(incidents)

    async def reconcile(self, feed_incidents: List[FeedIncident], now: Optional[datetime] = None) -> List[IncidentEvent]:
        now = now or self.clock()
        feed_ids = {i.id for i in feed_incidents}
        events: List[IncidentEvent] = []

        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(IncidentORM).where(IncidentORM.status != RESOLVED)
                )
                for incident in result.scalars().all():
                    if incident.id in feed_ids:
                        continue
                    event = self._observe_missing(incident, now)
                    if event:
                        events.append(event)

                for feed_incident in feed_incidents:
                    events.extend(await self._upsert(session, feed_incident, now))

                await session.commit()
            except Exception:
                await session.rollback()
                raise

        return events

    def _observe_missing(self, incident: IncidentORM, now: datetime) -> Optional[IncidentEvent]:
        incident.missing_count = (incident.missing_count or 0) + 1
        if incident.missing_count < self.resolve_after_missing:
            logger.info(
                f"Incident {incident.id} absent from feed "
                f"({incident.missing_count}/{self.resolve_after_missing}), not resolving yet"
            )
            return None

        incident.status = RESOLVED
        if incident.resolved_at is None:
            incident.resolved_at = now
        logger.info(f"Marked incident {incident.id} as resolved")
        return _incident_event(AlertType.INCIDENT_RESOLVED, incident, reference=incident.id)

    async def _upsert(self, session: AsyncSession, fi: FeedIncident, now: datetime) -> List[IncidentEvent]:
        events: List[IncidentEvent] = []
        existing = await session.get(IncidentORM, fi.id)

        if existing is None:
            incident = IncidentORM(
                id=fi.id,
                title=fi.name,
                impact=fi.impact,
                status=fi.status,
                started_at=fi.created_at,
                resolved_at=now if fi.status == RESOLVED else None,
                missing_count=0,
                created_at=utcnow(),
                updated_at=fi.updated_at,
            )
            session.add(incident)
            await session.flush()
            logger.info(f"Inserted new incident {fi.id} ({fi.name})")
            events.append(_incident_event(AlertType.INCIDENT_NEW, incident, reference=incident.id))
        else:
            incident = existing
            incident.missing_count = 0
            status_changed = incident.status != fi.status
            title_changed = incident.title != fi.name
            becomes_resolved = status_changed and fi.status == RESOLVED

            if status_changed or title_changed or incident.impact != fi.impact or incident.updated_at != fi.updated_at:
                incident.title = fi.name
                incident.impact = fi.impact
                incident.status = fi.status
                incident.updated_at = fi.updated_at
                logger.debug(f"Updated incident {fi.id}")

            if becomes_resolved:
                if incident.resolved_at is None:
                    incident.resolved_at = now
                events.append(_incident_event(AlertType.INCIDENT_RESOLVED, incident, reference=incident.id))
            elif status_changed or title_changed:
                events.append(_incident_event(
                    AlertType.INCIDENT_UPDATE,
                    incident,
                    reference=f"{incident.id}:{fi.status}:{fi.updated_at.isoformat()}",
                ))
            await session.flush()

        # Updates are immutable: insert if unseen, never revise
        for update in fi.incident_updates:
            result = await session.execute(
                insert_ignore(
                    session,
                    IncidentUpdateORM.__table__,
                    {
                        "id": update.id,
                        "incident_id": fi.id,
                        "body": update.body,
                        "status": update.status,
                        "published_at": update.created_at,
                        "created_at": utcnow(),
                    },
                    ["id"],
                )
            )
            if result.rowcount:
                logger.debug(f"Inserted incident update {update.id} for incident {fi.id}")
                events.append(IncidentEvent(
                    event_type=AlertType.INCIDENT_UPDATE,
                    reference=update.id,
                    incident_id=incident.id,
                    title=incident.title,
                    status=update.status,
                    impact=incident.impact,
                    body=update.body,
                ))

        return events
