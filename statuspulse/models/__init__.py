"""Models package."""

from statuspulse.models.status_orm import StatusLogORM, ComponentLogORM
from statuspulse.models.incident_orm import IncidentORM, IncidentUpdateORM
from statuspulse.models.maintenance_orm import MaintenanceORM
from statuspulse.models.metric_orm import MetricLogORM
from statuspulse.models.alert_orm import SentAlertORM
from statuspulse.models.report_orm import ReportCooldownORM, UserReportORM
from statuspulse.models.config_orm import BotConfigORM, GuildConfigORM, UserConfigORM

__all__ = [
    "StatusLogORM",
    "ComponentLogORM",
    "IncidentORM",
    "IncidentUpdateORM",
    "MaintenanceORM",
    "MetricLogORM",
    "SentAlertORM",
    "UserReportORM",
    "ReportCooldownORM",
    "BotConfigORM",
    "GuildConfigORM",
    "UserConfigORM",
]
