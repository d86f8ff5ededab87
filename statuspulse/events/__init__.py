"""
Lifecycle events.

Reconcilers and the report threshold engine emit these after committing the
state that justifies them; the notifier fans them out to recipients.
"""

from statuspulse.events.schemas import (
    AlertType,
    BaseEvent,
    StatusChangedEvent,
    IncidentEvent,
    MaintenanceEvent,
    ReportThresholdEvent,
)

__all__ = [
    "AlertType",
    "BaseEvent",
    "StatusChangedEvent",
    "IncidentEvent",
    "MaintenanceEvent",
    "ReportThresholdEvent",
]
