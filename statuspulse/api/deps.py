"""
Request dependencies.

Long-lived collaborators (interval registry, notifier) are created in the
application lifespan and stored on ``app.state``. Tests override these
functions through ``app.dependency_overrides``.
"""
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from statuspulse.core.database import async_session_maker
from statuspulse.services.notifier import Notifier
from statuspulse.services.report_service import ReportService
from statuspulse.workers.intervals import IntervalRegistry


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_maker


def get_registry(request: Request) -> IntervalRegistry:
    return request.app.state.registry


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service
