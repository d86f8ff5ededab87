"""
Status feed schemas and enums.

Pydantic models for the Statuspage v2 JSON endpoints the collector reads:
  /summary.json
  /incidents/unresolved.json
  /scheduled-maintenances/upcoming.json
  /scheduled-maintenances/active.json

Only the fields the reconcilers depend on are declared; anything else in
the payload is ignored. Status fields are kept as plain strings so a value
the feed adds later is stored rather than rejected.
"""
from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class StatusIndicator(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class ComponentStatus(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED_PERFORMANCE = "degraded_performance"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"


class IncidentStatus(str, Enum):
    """investigating -> identified -> monitoring -> resolved; any open stage may jump to resolved."""
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"


class MaintenanceStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class FeedModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PageInfo(FeedModel):
    updated_at: datetime


class StatusInfo(FeedModel):
    indicator: str
    description: str


class FeedComponent(FeedModel):
    id: str
    name: str
    status: str


class SummaryResponse(FeedModel):
    """Response from /summary.json"""
    page: PageInfo
    status: StatusInfo
    components: List[FeedComponent] = Field(default_factory=list)


class FeedIncidentUpdate(FeedModel):
    id: str
    status: str
    body: str
    created_at: datetime


class FeedIncident(FeedModel):
    id: str
    name: str
    status: str
    impact: str
    created_at: datetime
    updated_at: datetime
    incident_updates: List[FeedIncidentUpdate] = Field(default_factory=list)


class UnresolvedIncidentsResponse(FeedModel):
    """Response from /incidents/unresolved.json"""
    incidents: List[FeedIncident]


class FeedMaintenance(FeedModel):
    id: str
    name: str
    status: str
    scheduled_for: datetime
    scheduled_until: datetime
    created_at: datetime
    updated_at: datetime


class MaintenancesResponse(FeedModel):
    """Response from /scheduled-maintenances/upcoming.json and /active.json"""
    scheduled_maintenances: List[FeedMaintenance]
