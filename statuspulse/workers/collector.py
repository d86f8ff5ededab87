"""
Collector.

Wires each feed to its reconciler and the notifier, and runs one
perpetual poll loop per poller. Events are broadcast only after the
reconciler has committed the pass that produced them.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.services.feed_client import FeedClient, create_http_client
from statuspulse.services.incident_reconciler import IncidentReconciler
from statuspulse.services.maintenance_reconciler import MaintenanceReconciler
from statuspulse.services.metric_reconciler import MetricReconciler
from statuspulse.services.notifier import Notifier
from statuspulse.services.status_reconciler import StatusReconciler
from statuspulse.workers.intervals import IntervalRegistry, PollerType
from statuspulse.workers.scheduled import start_scheduler

logger = logging.getLogger(__name__)


class Collector:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: IntervalRegistry,
        notifier: Notifier,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = http_client is None
        self.http_client = http_client or create_http_client()
        self.registry = registry
        self.notifier = notifier

        feed = FeedClient(self.http_client)
        self.status = StatusReconciler(session_factory, feed)
        self.incidents = IncidentReconciler(session_factory, feed)
        self.maintenances = MaintenanceReconciler(session_factory, feed)
        self.metrics = MetricReconciler(session_factory, feed)

        self._stop_event = asyncio.Event()
        self._tasks: List[asyncio.Task] = []
        # Passes of one poller never overlap, whether scheduled or run_once
        self._locks: Dict[PollerType, asyncio.Lock] = {p: asyncio.Lock() for p in PollerType}

    def _passes(self) -> Dict[PollerType, Callable[[], Awaitable[object]]]:
        return {
            PollerType.STATUS: self._pass(PollerType.STATUS, self.status.poll),
            PollerType.INCIDENT: self._pass(PollerType.INCIDENT, self.incidents.poll),
            PollerType.MAINTENANCE: self._pass(PollerType.MAINTENANCE, self.maintenances.poll),
            PollerType.METRICS: self._pass(PollerType.METRICS, self.metrics.poll),
        }

    def _pass(self, poller: PollerType, poll: Callable[[], Awaitable[list]]) -> Callable[[], Awaitable[object]]:
        async def run():
            async with self._locks[poller]:
                events = await poll()
                if events:
                    logger.info(f"Pass produced {len(events)} events")
                    await self.notifier.broadcast(events)
            return events
        return run

    async def run_once(self, poller: PollerType) -> list:
        """Run a single pass of one poller outside its loop."""
        return await self._passes()[poller]()

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            logger.warning("Collector already running")
            return
        self._stop_event = asyncio.Event()
        self._tasks = [
            start_scheduler(poller.value, self.registry.cell(poller), pass_fn, self._stop_event)
            for poller, pass_fn in self._passes().items()
        ]
        logger.info(f"Collector started {len(self._tasks)} pollers")

    async def stop(self) -> None:
        """Signal every poller to stop and wait for in-flight passes to finish."""
        self._stop_event.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []
        if self._owns_client:
            await self.http_client.aclose()
        logger.info("Collector stopped")
