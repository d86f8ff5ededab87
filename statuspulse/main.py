"""
StatusPulse - service health mirror and outage alerting.

FastAPI application entry point.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from statuspulse.api import health, polling, recipients, reports
from statuspulse.core.config import get_settings
from statuspulse.core.database import async_session_maker, engine
from statuspulse.core.init_db import init_database
from statuspulse.core.logging import get_logger, setup_logging
from statuspulse.middleware.trace import TracingMiddleware
from statuspulse.services.notifier import LogDeliveryChannel, Notifier, WebhookDeliveryChannel
from statuspulse.services.report_service import ReportService
from statuspulse.workers.collector import Collector
from statuspulse.workers.intervals import IntervalRegistry

settings = get_settings()

# Initialize logging
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    await init_database(engine)

    delivery_client = None
    if settings.delivery_webhook_url:
        delivery_client = httpx.AsyncClient(timeout=settings.delivery_timeout_seconds)
        channel = WebhookDeliveryChannel(delivery_client, settings.delivery_webhook_url)
    else:
        channel = LogDeliveryChannel()

    notifier = Notifier(async_session_maker, channel)
    registry = IntervalRegistry(async_session_maker)
    await registry.load()

    app.state.notifier = notifier
    app.state.registry = registry
    app.state.report_service = ReportService(async_session_maker, notifier)

    collector = None
    if settings.collector_enabled:
        collector = Collector(async_session_maker, registry, notifier)
        collector.start()
    else:
        logger.info("Collector disabled, running API only")

    yield

    logger.info(f"Shutting down {settings.app_name}")
    # In-flight passes finish before the engine goes away
    if collector:
        await collector.stop()
    if delivery_client:
        await delivery_client.aclose()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Mirrors a service status feed and alerts subscribers of changes and user-reported outages",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(TracingMiddleware)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    reports.router,
    prefix=f"{settings.api_prefix}/reports",
    tags=["Reports"],
)
app.include_router(
    polling.router,
    prefix=f"{settings.api_prefix}/polling",
    tags=["Polling"],
)
app.include_router(
    recipients.router,
    prefix=f"{settings.api_prefix}/recipients",
    tags=["Recipients"],
)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
