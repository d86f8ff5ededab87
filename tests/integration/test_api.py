"""
API tests through the ASGI app with collaborators overridden.
"""
import pytest
from httpx import AsyncClient

from statuspulse.services.bot_config import BotConfigRepository, ConfigKeys


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}
    assert "X-Correlation-ID" in resp.headers


@pytest.mark.asyncio
async def test_ready_checks_database(client: AsyncClient):
    resp = await client.get("/ready")
    assert resp.status_code == 200
    assert resp.json()["checks"]["database"] == "ok"


@pytest.mark.asyncio
async def test_submit_report_accepted(client: AsyncClient):
    resp = await client.post("/api/v1/reports", json={"category": "login", "user_id": "a", "details": "stuck"})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["report_id"] >= 1
    assert body["similar_count"] == 0


@pytest.mark.asyncio
async def test_submit_report_cooldown(client: AsyncClient):
    await client.post("/api/v1/reports", json={"category": "login", "user_id": "a"})
    resp = await client.post("/api/v1/reports", json={"category": "api", "user_id": "a"})

    assert resp.status_code == 429
    assert resp.json()["retry_at"].startswith("2024-06-01T12:10:00")


@pytest.mark.asyncio
async def test_submit_report_invalid(client: AsyncClient):
    resp = await client.post("/api/v1/reports", json={"category": "weather", "user_id": "a"})
    assert resp.status_code == 422
    assert "weather" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_threshold_alert_through_api(client: AsyncClient, session_factory, channel):
    async with session_factory() as session:
        await BotConfigRepository(session).set(ConfigKeys.REPORT_THRESHOLD, 2)
        await session.commit()
    await client.post("/api/v1/recipients/users/admin")

    first = await client.post("/api/v1/reports", json={"category": "instance", "user_id": "a"})
    second = await client.post("/api/v1/reports", json={"category": "instance", "user_id": "b"})

    assert first.json()["threshold_reached"] is False
    assert second.json()["threshold_reached"] is True
    assert second.json()["notified"] == 1
    assert channel.keys() == ["user:admin"]


@pytest.mark.asyncio
async def test_polling_intervals(client: AsyncClient):
    resp = await client.get("/api/v1/polling")
    assert resp.status_code == 200
    assert set(resp.json()["intervals"]) == {"status", "incident", "maintenance", "metrics"}

    resp = await client.put("/api/v1/polling/incident", json={"seconds": 300})
    assert resp.status_code == 200
    assert resp.json()["intervals"]["incident"] == 300

    resp = await client.put("/api/v1/polling/incident", json={"seconds": 5})
    assert resp.status_code == 422

    resp = await client.put("/api/v1/polling/weather", json={"seconds": 300})
    assert resp.status_code == 404

    resp = await client.post("/api/v1/polling/reset")
    assert resp.json()["intervals"]["incident"] == 60


@pytest.mark.asyncio
async def test_polling_reload(client: AsyncClient, session_factory):
    async with session_factory() as session:
        await BotConfigRepository(session).set("polling.metrics", 1200)
        await session.commit()

    resp = await client.post("/api/v1/polling/reload")

    assert resp.status_code == 200
    assert resp.json()["changed"] == {"metrics": 1200}


@pytest.mark.asyncio
async def test_recipient_registration(client: AsyncClient):
    assert (await client.post("/api/v1/recipients/guilds/g1", json={"channel_id": "ch1"})).status_code == 201
    assert (await client.post("/api/v1/recipients/users/u1")).status_code == 201

    listing = (await client.get("/api/v1/recipients")).json()
    assert listing["counts"] == {"guilds": 1, "users": 1}

    assert (await client.delete("/api/v1/recipients/guilds/g1")).status_code == 200
    assert (await client.delete("/api/v1/recipients/guilds/missing")).status_code == 404

    listing = (await client.get("/api/v1/recipients")).json()
    assert [r["kind"] for r in listing["recipients"]] == ["user"]

    # Re-registering re-enables with the new channel
    await client.post("/api/v1/recipients/guilds/g1", json={"channel_id": "ch9"})
    listing = (await client.get("/api/v1/recipients")).json()
    guild = next(r for r in listing["recipients"] if r["kind"] == "guild")
    assert guild["channel_id"] == "ch9"
