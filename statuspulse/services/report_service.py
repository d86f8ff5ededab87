"""
Report Threshold Engine.

Users report outages by category. Each submitter may report once per
cooldown window (across all categories). When the number of distinct
submitters reporting a category within the report interval reaches the
configured threshold, every enabled recipient is alerted, at most once per
category per 15-minute bucket.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.config import get_settings
from statuspulse.core.database import upsert, utcnow
from statuspulse.events.schemas import ReportThresholdEvent
from statuspulse.models.report_orm import ReportCooldownORM, UserReportORM
from statuspulse.services.bot_config import BotConfigRepository, ConfigKeys
from statuspulse.services.notifier import Notifier, NotifyOutcome

logger = logging.getLogger(__name__)

ACTIVE = "active"
RECENT_REPORTS_SHOWN = 5


@dataclass(frozen=True)
class Submitter:
    user_id: str
    guild_id: Optional[str] = None


@dataclass(frozen=True)
class Accepted:
    report_id: int
    similar_count: int
    notified: int = 0
    threshold_reached: bool = False


@dataclass(frozen=True)
class Cooldown:
    retry_at: datetime


@dataclass(frozen=True)
class Invalid:
    reason: str


ReportOutcome = Union[Accepted, Cooldown, Invalid]


@dataclass
class ThresholdConfig:
    threshold: int
    interval_minutes: int


def alert_bucket_reference(category: str, now: datetime, bucket_minutes: int = 15) -> str:
    """Dedup reference for a threshold alert: one per category per bucket."""
    block = now.minute // bucket_minutes * bucket_minutes
    return f"{category}_{now:%Y-%m-%dT%H}:{block:02d}"


class ReportService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self.settings = get_settings()

    def _validate(self, category: str, details: Optional[str], submitter: Submitter) -> Optional[str]:
        if not submitter.user_id or not submitter.user_id.strip():
            return "submitter id is required"
        if category not in self.settings.report_categories:
            return f"unknown category '{category}'"
        if details is not None and len(details) > self.settings.report_details_max_length:
            return f"details exceed {self.settings.report_details_max_length} characters"
        return None

    async def load_thresholds(self, session: AsyncSession) -> ThresholdConfig:
        repo = BotConfigRepository(session)
        threshold = await repo.get_int(ConfigKeys.REPORT_THRESHOLD, self.settings.default_report_threshold)
        interval = await repo.get_int(ConfigKeys.REPORT_INTERVAL, self.settings.default_report_interval_minutes)
        return ThresholdConfig(
            threshold=max(1, threshold),
            interval_minutes=max(1, interval),
        )

    async def submit_report(
        self,
        category: str,
        details: Optional[str],
        submitter: Submitter,
    ) -> ReportOutcome:
        reason = self._validate(category, details, submitter)
        if reason:
            logger.info(f"Rejected report from {submitter.user_id!r}: {reason}")
            return Invalid(reason)

        now = self.clock()
        cooldown = timedelta(minutes=self.settings.report_cooldown_minutes)

        async with self.session_factory() as session:
            try:
                report_id = await self._insert_unless_cooling_down(session, category, details, submitter, now, cooldown)
                if report_id is None:
                    retry_at = await self._retry_at(session, submitter.user_id, cooldown)
                    await session.rollback()
                    logger.info(f"User {submitter.user_id} is on report cooldown until {retry_at.isoformat()}")
                    return Cooldown(retry_at=retry_at)

                await session.commit()
                logger.info(f"Accepted {category} report {report_id} from user {submitter.user_id}")

                config = await self.load_thresholds(session)
                window_start = now - timedelta(minutes=config.interval_minutes)
                count = await self._distinct_submitters(session, category, window_start)
                similar = await self._distinct_submitters(session, category, window_start, exclude=submitter.user_id)
                recent = await self._recent_timestamps(session, category, window_start) if count >= config.threshold else []
            except Exception:
                await session.rollback()
                raise

        if count < config.threshold:
            return Accepted(report_id=report_id, similar_count=similar)

        event = ReportThresholdEvent(
            reference=alert_bucket_reference(category, now, self.settings.alert_bucket_minutes),
            category=category,
            count=count,
            interval_minutes=config.interval_minutes,
            recent_reports=recent,
        )
        logger.info(
            f"Report threshold reached for {category}: {count} users in {config.interval_minutes}m "
            f"(threshold {config.threshold})"
        )
        results = await self.notifier.broadcast([event])
        notified = sum(1 for r in results if r.outcome == NotifyOutcome.SENT)
        return Accepted(report_id=report_id, similar_count=similar, notified=notified, threshold_reached=True)

    async def _insert_unless_cooling_down(
        self,
        session: AsyncSession,
        category: str,
        details: Optional[str],
        submitter: Submitter,
        now: datetime,
        cooldown: timedelta,
    ) -> Optional[int]:
        """
        Claim the submitter's cooldown row, then insert the report.

        The claim is one upsert: insert the row, or move last_report_at to now
        only if the previous report is at least ``cooldown`` old. A concurrent
        claim for the same user blocks on the row and then sees the new
        timestamp, so at most one of them gets a rowcount.
        """
        table = ReportCooldownORM.__table__
        claim = await session.execute(
            upsert(
                session,
                table,
                {"user_id": submitter.user_id, "last_report_at": now},
                ["user_id"],
                where=table.c.last_report_at <= now - cooldown,
            )
        )
        if not claim.rowcount:
            return None

        report = UserReportORM(
            guild_id=submitter.guild_id,
            user_id=submitter.user_id,
            incident_type=category,
            content=details,
            status=ACTIVE,
            created_at=now,
        )
        session.add(report)
        await session.flush()
        return report.id

    async def _retry_at(self, session: AsyncSession, user_id: str, cooldown: timedelta) -> datetime:
        last = await session.scalar(
            select(ReportCooldownORM.last_report_at).where(ReportCooldownORM.user_id == user_id)
        )
        if last is None:
            return self.clock()
        return last + cooldown

    async def _distinct_submitters(
        self,
        session: AsyncSession,
        category: str,
        since: datetime,
        exclude: Optional[str] = None,
    ) -> int:
        stmt = (
            select(func.count(func.distinct(UserReportORM.user_id)))
            .where(UserReportORM.incident_type == category)
            .where(UserReportORM.status == ACTIVE)
            .where(UserReportORM.created_at >= since)
        )
        if exclude is not None:
            stmt = stmt.where(UserReportORM.user_id != exclude)
        return await session.scalar(stmt) or 0

    async def _recent_timestamps(self, session: AsyncSession, category: str, since: datetime) -> List[datetime]:
        result = await session.execute(
            select(UserReportORM.created_at)
            .where(UserReportORM.incident_type == category)
            .where(UserReportORM.status == ACTIVE)
            .where(UserReportORM.created_at >= since)
            .order_by(UserReportORM.created_at.desc())
            .limit(RECENT_REPORTS_SHOWN)
        )
        return list(result.scalars())
