"""
Feed Client.

Stateless fetchers for the status feed and the metrics feed. Each call maps
one endpoint to a typed snapshot or raises FeedFetchError; nothing here
touches the store.
"""
import logging
from typing import Any, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from statuspulse.core.config import get_settings
from statuspulse.core.exceptions import FeedFetchError, FeedPayloadError
from statuspulse.schemas.metrics import MetricDataPoint, MetricDefinition
from statuspulse.schemas.statuspage import (
    FeedIncident,
    FeedMaintenance,
    MaintenancesResponse,
    SummaryResponse,
    UnresolvedIncidentsResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_metric_points = TypeAdapter(List[MetricDataPoint])


def create_http_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Shared AsyncClient for all fetchers, owned by the collector."""
    settings = get_settings()
    return httpx.AsyncClient(
        timeout=timeout or settings.http_timeout_seconds,
        headers={"User-Agent": settings.http_user_agent},
        follow_redirects=True,
    )


class FeedClient:
    """Fetches the Statuspage v2 endpoints and the metrics endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        status_base: Optional[str] = None,
        metrics_base: Optional[str] = None,
    ):
        settings = get_settings()
        self.http_client = http_client
        self.status_base = (status_base or settings.status_api_base).rstrip("/")
        self.metrics_base = (metrics_base or settings.metrics_api_base).rstrip("/")

    async def _get_json(self, url: str) -> Any:
        try:
            resp = await self.http_client.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedFetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FeedFetchError(url, f"{type(e).__name__}: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise FeedPayloadError(url, f"invalid JSON: {e}") from e

    async def _get_model(self, endpoint: str, model: Type[T]) -> T:
        url = f"{self.status_base}{endpoint}"
        data = await self._get_json(url)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise FeedPayloadError(url, f"unexpected payload: {e.error_count()} validation errors") from e

    async def fetch_summary(self) -> SummaryResponse:
        return await self._get_model("/summary.json", SummaryResponse)

    async def fetch_unresolved_incidents(self) -> List[FeedIncident]:
        response = await self._get_model("/incidents/unresolved.json", UnresolvedIncidentsResponse)
        return response.incidents

    async def fetch_upcoming_maintenances(self) -> List[FeedMaintenance]:
        response = await self._get_model("/scheduled-maintenances/upcoming.json", MaintenancesResponse)
        return response.scheduled_maintenances

    async def fetch_active_maintenances(self) -> List[FeedMaintenance]:
        response = await self._get_model("/scheduled-maintenances/active.json", MaintenancesResponse)
        return response.scheduled_maintenances

    async def fetch_metric(self, metric: MetricDefinition) -> List[MetricDataPoint]:
        url = f"{self.metrics_base}{metric.endpoint}"
        data = await self._get_json(url)
        try:
            return _metric_points.validate_python(data)
        except ValidationError as e:
            raise FeedPayloadError(url, f"unexpected payload: {e.error_count()} validation errors") from e
