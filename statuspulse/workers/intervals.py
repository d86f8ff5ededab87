"""
Poll Interval Registry.

Each poller reads its interval from an IntervalCell: a latest-value cell
that an operator update can overwrite at any time. The poll loop waits on
the cell, so a new value takes effect during the current wait instead of
after it.
"""
import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.config import get_settings
from statuspulse.core.exceptions import InvalidIntervalError, UnknownPollerError
from statuspulse.services.bot_config import BotConfigRepository

logger = logging.getLogger(__name__)


class PollerType(str, Enum):
    STATUS = "status"
    INCIDENT = "incident"
    MAINTENANCE = "maintenance"
    METRICS = "metrics"

    @property
    def db_key(self) -> str:
        return f"polling.{self.value}"

    @classmethod
    def parse(cls, name: str) -> "PollerType":
        try:
            return cls(name)
        except ValueError:
            raise UnknownPollerError(f"Unknown poller '{name}', expected one of {[p.value for p in cls]}") from None


class IntervalCell:
    """
    Latest-value cell with change notification.

    ``set`` never blocks the producer; readers that care about changes keep
    the version they last saw and wait for it to move.
    """

    def __init__(self, seconds: int):
        self._seconds = seconds
        self._version = 0
        self._changed = asyncio.Event()

    @property
    def version(self) -> int:
        return self._version

    def get(self) -> int:
        return self._seconds

    def set(self, seconds: int) -> bool:
        """Publish a new value. Returns False when the value is unchanged."""
        if seconds == self._seconds:
            return False
        self._seconds = seconds
        self._version += 1
        # Wake current waiters; later waiters get a fresh event
        self._changed.set()
        self._changed = asyncio.Event()
        return True

    async def wait_changed(self, version: int, timeout: float) -> bool:
        """
        Wait until the version differs from ``version`` or the timeout expires.

        Returns True when a change was observed.
        """
        if self._version != version:
            return True
        try:
            await asyncio.wait_for(self._changed.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


class IntervalRegistry:
    """One IntervalCell per poller, backed by the bot_config table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        minimum: Optional[int] = None,
        maximum: Optional[int] = None,
        default: Optional[int] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.minimum = minimum if minimum is not None else settings.poll_interval_min_seconds
        self.maximum = maximum if maximum is not None else settings.poll_interval_max_seconds
        self.default = default if default is not None else settings.poll_interval_default_seconds
        self._cells: Dict[PollerType, IntervalCell] = {p: IntervalCell(self.default) for p in PollerType}

    def cell(self, poller: PollerType) -> IntervalCell:
        return self._cells[poller]

    def _clamp(self, seconds: int) -> int:
        return max(self.minimum, min(self.maximum, seconds))

    def validate(self, seconds: int) -> int:
        if seconds < self.minimum or seconds > self.maximum:
            raise InvalidIntervalError(seconds, self.minimum, self.maximum)
        return seconds

    async def _read_all(self) -> Dict[PollerType, int]:
        async with self.session_factory() as session:
            repo = BotConfigRepository(session)
            values = {}
            for poller in PollerType:
                raw = await repo.get_int(poller.db_key, self.default)
                clamped = self._clamp(raw)
                if clamped != raw:
                    logger.warning(f"Stored interval for {poller.value} ({raw}s) out of range, clamped to {clamped}s")
                values[poller] = clamped
        return values

    async def load(self) -> Dict[str, int]:
        """Populate every cell from bot_config (missing keys fall back to the default)."""
        for poller, seconds in (await self._read_all()).items():
            self._cells[poller].set(seconds)
        logger.info(f"Loaded poll intervals: {self.snapshot()}")
        return self.snapshot()

    async def reload(self) -> Dict[str, int]:
        """Re-read bot_config and publish values that changed since the last load."""
        changed = {}
        for poller, seconds in (await self._read_all()).items():
            if self._cells[poller].set(seconds):
                changed[poller.value] = seconds
        if changed:
            logger.info(f"Reloaded poll intervals, changed: {changed}")
        return changed

    async def update(self, poller: PollerType, seconds: int) -> int:
        """Validate, publish to the running poller and persist."""
        self.validate(seconds)
        async with self.session_factory() as session:
            try:
                await BotConfigRepository(session).set(poller.db_key, seconds)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        self._cells[poller].set(seconds)
        logger.info(f"Poll interval for {poller.value} set to {seconds}s")
        return seconds

    async def reset_all(self) -> Dict[str, int]:
        async with self.session_factory() as session:
            try:
                repo = BotConfigRepository(session)
                for poller in PollerType:
                    await repo.set(poller.db_key, self.default)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        for cell in self._cells.values():
            cell.set(self.default)
        logger.info(f"Reset all poll intervals to {self.default}s")
        return self.snapshot()

    def snapshot(self) -> Dict[str, int]:
        return {poller.value: cell.get() for poller, cell in self._cells.items()}

