"""
Unit tests for the interval cell and poller names.
"""
import asyncio

import pytest

from statuspulse.core.exceptions import UnknownPollerError
from statuspulse.workers.intervals import IntervalCell, PollerType


def test_set_bumps_version_only_on_change():
    cell = IntervalCell(60)
    assert cell.set(60) is False
    assert cell.version == 0
    assert cell.set(120) is True
    assert cell.version == 1
    assert cell.get() == 120


@pytest.mark.asyncio
async def test_wait_changed_times_out():
    cell = IntervalCell(60)
    assert await cell.wait_changed(cell.version, timeout=0.01) is False


@pytest.mark.asyncio
async def test_wait_changed_wakes_on_set():
    cell = IntervalCell(60)
    version = cell.version
    waiter = asyncio.create_task(cell.wait_changed(version, timeout=5))
    await asyncio.sleep(0)
    cell.set(90)
    assert await asyncio.wait_for(waiter, timeout=1) is True


@pytest.mark.asyncio
async def test_wait_changed_returns_immediately_for_stale_version():
    cell = IntervalCell(60)
    cell.set(70)
    assert await cell.wait_changed(0, timeout=5) is True


def test_poller_db_keys():
    assert PollerType.STATUS.db_key == "polling.status"
    assert PollerType.METRICS.db_key == "polling.metrics"


def test_poller_parse_rejects_unknown():
    assert PollerType.parse("incident") is PollerType.INCIDENT
    with pytest.raises(UnknownPollerError):
        PollerType.parse("weather")
