"""
Integration tests for the status reconciler.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from statuspulse.models.status_orm import ComponentLogORM, StatusLogORM
from statuspulse.schemas.statuspage import SummaryResponse
from statuspulse.services.status_reconciler import StatusReconciler

T0 = "2024-06-01T10:00:00Z"
T1 = "2024-06-01T10:05:00Z"
T2 = "2024-06-01T10:10:00Z"


def summary(indicator, ts, component_status="operational"):
    return SummaryResponse.model_validate({
        "page": {"id": "page", "updated_at": ts},
        "status": {"indicator": indicator, "description": f"indicator {indicator}"},
        "components": [
            {"id": "c-api", "name": "API", "status": component_status},
            {"id": "c-web", "name": "Website", "status": "operational"},
        ],
    })


async def count(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


@pytest.mark.asyncio
async def test_first_summary_emits_status_changed(session_factory):
    reconciler = StatusReconciler(session_factory, feed=None)
    events = await reconciler.reconcile(summary("none", T0))

    assert len(events) == 1
    assert events[0].indicator == "none"
    assert events[0].previous_indicator is None
    assert events[0].reference == "none_2024-06-01T10:00:00+00:00"
    assert await count(session_factory, StatusLogORM) == 1
    assert await count(session_factory, ComponentLogORM) == 2


@pytest.mark.asyncio
async def test_repoll_same_timestamp_is_idempotent(session_factory):
    reconciler = StatusReconciler(session_factory, feed=None)
    await reconciler.reconcile(summary("none", T0))

    events = await reconciler.reconcile(summary("none", T0))

    assert events == []
    assert await count(session_factory, StatusLogORM) == 1
    assert await count(session_factory, ComponentLogORM) == 2


@pytest.mark.asyncio
async def test_status_scenario_none_none_major(session_factory):
    """none@T0 fires, none@T0 again is silent, major@T1 fires."""
    reconciler = StatusReconciler(session_factory, feed=None)

    first = await reconciler.reconcile(summary("none", T0))
    again = await reconciler.reconcile(summary("none", T0))
    major = await reconciler.reconcile(summary("major", T1, component_status="major_outage"))

    assert len(first) == 1
    assert again == []
    assert len(major) == 1
    assert major[0].indicator == "major"
    assert major[0].previous_indicator == "none"
    assert await count(session_factory, StatusLogORM) == 2
    assert await count(session_factory, ComponentLogORM) == 4


@pytest.mark.asyncio
async def test_new_timestamp_same_indicator_is_stored_silently(session_factory):
    reconciler = StatusReconciler(session_factory, feed=None)
    await reconciler.reconcile(summary("minor", T0))

    events = await reconciler.reconcile(summary("minor", T2))

    assert events == []
    assert await count(session_factory, StatusLogORM) == 2


@pytest.mark.asyncio
async def test_source_timestamp_stored_verbatim(session_factory):
    reconciler = StatusReconciler(session_factory, feed=None)
    await reconciler.reconcile(summary("none", T0))

    async with session_factory() as session:
        row = (await session.execute(select(StatusLogORM))).scalar_one()
    assert row.source_timestamp == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
