"""Metrics feed catalogue."""
from dataclasses import dataclass
from typing import List, Tuple

# Each endpoint returns an array of [unix_timestamp, value] pairs
MetricDataPoint = Tuple[int, float]

# Sampling interval of every metric endpoint
METRIC_INTERVAL_SECONDS = 60


@dataclass(frozen=True)
class MetricDefinition:
    endpoint: str
    name: str
    unit: str


METRIC_DEFINITIONS: List[MetricDefinition] = [
    MetricDefinition("/apilatency.json", "api_latency", "ms"),
    MetricDefinition("/visits.json", "visits", "count"),
    MetricDefinition("/apirequests.json", "api_requests", "count"),
    MetricDefinition("/apierrors.json", "api_errors", "count"),
    MetricDefinition("/extauth_steam.json", "extauth_steam", "ms"),
    MetricDefinition("/extauth_oculus.json", "extauth_oculus", "ms"),
    MetricDefinition("/extauth_steam_count.json", "extauth_steam_count", "count"),
    MetricDefinition("/extauth_oculus_count.json", "extauth_oculus_count", "count"),
]
