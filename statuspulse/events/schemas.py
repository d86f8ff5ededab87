"""
Lifecycle Event Schemas.

Events are produced by the reconcilers and the report threshold engine and
consumed by the notifier. Every event carries an ``event_type`` and a
``reference``; the pair (recipient, event_type, reference) is what the
dedup ledger records, so a reference must identify the state change the
event announces and nothing broader.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AlertType(str, Enum):
    STATUS_CHANGED = "status_changed"
    INCIDENT_NEW = "incident_new"
    INCIDENT_UPDATE = "incident_update"
    INCIDENT_RESOLVED = "incident_resolved"
    MAINTENANCE_SCHEDULED = "maintenance_scheduled"
    MAINTENANCE_STARTED = "maintenance_started"
    MAINTENANCE_COMPLETED = "maintenance_completed"
    THRESHOLD = "threshold"


class BaseEvent(BaseModel):
    """
    Base event schema.

    - event_id: unique per emitted event, for log correlation only
    - event_type: discriminator and dedup ledger alert type
    - reference: dedup ledger reference id
    - timestamp: when the event was produced (local clock)
    """

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    event_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique event identifier (UUID)"
    )

    event_type: AlertType

    reference: str = Field(
        description="Stable identifier of the state change, used for deduplication"
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when event was created"
    )

    @property
    def alert_type(self) -> str:
        """Ledger value of event_type."""
        return AlertType(self.event_type).value


class StatusChangedEvent(BaseEvent):
    """The aggregate indicator differs from the previously stored one."""

    event_type: AlertType = Field(default=AlertType.STATUS_CHANGED, frozen=True)

    indicator: str
    previous_indicator: Optional[str] = None
    description: str
    source_timestamp: datetime


class IncidentEvent(BaseEvent):
    """incident_new, incident_update or incident_resolved."""

    incident_id: str
    title: str
    status: str
    impact: str
    body: Optional[str] = Field(
        default=None,
        description="Text of the incident update, when the event comes from one"
    )


class MaintenanceEvent(BaseEvent):
    """maintenance_scheduled, maintenance_started or maintenance_completed."""

    maintenance_id: str
    title: str
    status: str
    scheduled_for: datetime
    scheduled_until: datetime


class ReportThresholdEvent(BaseEvent):
    """Enough users reported the same category within the report interval."""

    event_type: AlertType = Field(default=AlertType.THRESHOLD, frozen=True)

    category: str
    count: int
    interval_minutes: int
    recent_reports: List[datetime] = Field(default_factory=list)
