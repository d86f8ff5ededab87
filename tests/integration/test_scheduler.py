"""
Tests for the poll loop, the interval registry and the collector.
"""
import asyncio

import httpx
import pytest

from statuspulse.core.exceptions import InvalidIntervalError
from statuspulse.services.bot_config import BotConfigRepository
from statuspulse.services.recipients import RecipientRepository
from statuspulse.workers.collector import Collector
from statuspulse.workers.intervals import IntervalCell, IntervalRegistry, PollerType
from statuspulse.workers.scheduled import poll_loop, start_scheduler


async def wait_until(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.mark.asyncio
async def test_first_pass_runs_immediately():
    calls = []
    stop = asyncio.Event()

    async def pass_fn():
        calls.append(1)

    task = start_scheduler("status", IntervalCell(3600), pass_fn, stop)
    await wait_until(lambda: len(calls) == 1)
    stop.set()
    await asyncio.wait_for(task, timeout=1)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_interval_change_applies_mid_wait():
    """A shorter interval published during a long wait triggers the next pass promptly."""
    calls = []
    stop = asyncio.Event()
    cell = IntervalCell(3600)

    async def pass_fn():
        calls.append(1)

    task = asyncio.create_task(poll_loop("incident", cell, pass_fn, stop))
    await wait_until(lambda: len(calls) == 1)

    cell.set(0.05)
    await wait_until(lambda: len(calls) >= 2)

    stop.set()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_failing_pass_does_not_stop_loop():
    calls = []
    stop = asyncio.Event()

    async def pass_fn():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("feed exploded")

    task = asyncio.create_task(poll_loop("metrics", IntervalCell(0.01), pass_fn, stop))
    await wait_until(lambda: len(calls) >= 3)
    stop.set()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_stop_lets_inflight_pass_finish():
    started = asyncio.Event()
    finished = []
    stop = asyncio.Event()

    async def pass_fn():
        started.set()
        await asyncio.sleep(0.1)
        finished.append(1)

    task = asyncio.create_task(poll_loop("maintenance", IntervalCell(3600), pass_fn, stop))
    await started.wait()
    stop.set()
    await asyncio.wait_for(task, timeout=1)

    assert finished == [1]


@pytest.mark.asyncio
async def test_registry_load_clamps_and_defaults(session_factory):
    async with session_factory() as session:
        repo = BotConfigRepository(session)
        await repo.set(PollerType.STATUS.db_key, 5)
        await repo.set(PollerType.INCIDENT.db_key, 120)
        await repo.set(PollerType.MAINTENANCE.db_key, "soon")
        await session.commit()

    registry = IntervalRegistry(session_factory, minimum=60, maximum=3600, default=60)
    snapshot = await registry.load()

    assert snapshot == {"status": 60, "incident": 120, "maintenance": 60, "metrics": 60}


@pytest.mark.asyncio
async def test_registry_update_validates_publishes_and_persists(session_factory):
    registry = IntervalRegistry(session_factory, minimum=60, maximum=3600, default=60)
    await registry.load()
    cell = registry.cell(PollerType.STATUS)
    version = cell.version

    with pytest.raises(InvalidIntervalError):
        await registry.update(PollerType.STATUS, 30)
    with pytest.raises(InvalidIntervalError):
        await registry.update(PollerType.STATUS, 7200)
    assert cell.get() == 60

    await registry.update(PollerType.STATUS, 300)
    assert cell.get() == 300
    assert cell.version == version + 1

    async with session_factory() as session:
        assert await BotConfigRepository(session).get("polling.status") == "300"


@pytest.mark.asyncio
async def test_registry_reset_and_reload(session_factory):
    registry = IntervalRegistry(session_factory, minimum=60, maximum=3600, default=60)
    await registry.load()
    await registry.update(PollerType.METRICS, 600)

    await registry.reset_all()
    assert registry.snapshot()["metrics"] == 60

    # An operator edits bot_config directly; reload picks it up
    async with session_factory() as session:
        await BotConfigRepository(session).set("polling.incident", 900)
        await session.commit()

    changed = await registry.reload()
    assert changed == {"incident": 900}
    assert registry.cell(PollerType.INCIDENT).get() == 900


SUMMARY = {
    "page": {"updated_at": "2024-06-01T10:00:00Z"},
    "status": {"indicator": "major", "description": "Major Outage"},
    "components": [],
}


def feed_transport():
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/summary.json"):
            return httpx.Response(200, json=SUMMARY)
        if path.endswith("/incidents/unresolved.json"):
            return httpx.Response(200, json={"incidents": []})
        if path.endswith("upcoming.json") or path.endswith("active.json"):
            return httpx.Response(200, json={"scheduled_maintenances": []})
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_collector_pass_notifies_recipients(session_factory, notifier, channel):
    async with session_factory() as session:
        await RecipientRepository(session).register_user("u1")
        await session.commit()

    async with httpx.AsyncClient(transport=feed_transport()) as http:
        collector = Collector(session_factory, IntervalRegistry(session_factory), notifier, http_client=http)
        events = await collector.run_once(PollerType.STATUS)
        again = await collector.run_once(PollerType.STATUS)

    assert [e.alert_type for e in events] == ["status_changed"]
    assert again == []
    assert channel.keys() == ["user:u1"]


@pytest.mark.asyncio
async def test_collector_start_and_stop(session_factory, notifier, channel):
    async with session_factory() as session:
        await RecipientRepository(session).register_guild("g1", "ch1")
        await session.commit()

    registry = IntervalRegistry(session_factory)
    await registry.load()

    async with httpx.AsyncClient(transport=feed_transport()) as http:
        collector = Collector(session_factory, registry, notifier, http_client=http)
        collector.start()
        assert collector.running
        await wait_until(lambda: len(channel.delivered) == 1)
        await collector.stop()

    assert not collector.running
    assert channel.keys() == ["guild:g1"]


@pytest.mark.asyncio
async def test_passes_of_one_poller_never_overlap(session_factory, notifier):
    in_flight = 0
    peak = 0

    async def slow_poll():
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.05)
        in_flight -= 1
        return []

    async with httpx.AsyncClient(transport=feed_transport()) as http:
        collector = Collector(session_factory, IntervalRegistry(session_factory), notifier, http_client=http)
        collector.status.poll = slow_poll
        collector.incidents.poll = slow_poll
        await asyncio.gather(
            collector.run_once(PollerType.STATUS),
            collector.run_once(PollerType.STATUS),
            collector.run_once(PollerType.STATUS),
        )
        assert peak == 1

        # Different pollers are independent
        peak = 0
        await asyncio.gather(
            collector.run_once(PollerType.STATUS),
            collector.run_once(PollerType.INCIDENT),
        )
        assert peak == 2
