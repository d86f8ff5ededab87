"""Services package."""

from statuspulse.services.notifier import Notifier
from statuspulse.services.report_service import ReportService

__all__ = [
    "Notifier",
    "ReportService",
]
