"""
Outage Report Endpoint.

Accepts a user's outage report and runs it through the threshold engine.
Responds 201 on acceptance, 429 while the submitter is cooling down and
422 when the report is rejected.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from statuspulse.api.deps import get_report_service
from statuspulse.services.report_service import Accepted, Cooldown, ReportService, Submitter

logger = logging.getLogger(__name__)

router = APIRouter()


class ReportRequest(BaseModel):
    category: str = Field(description="Report category, e.g. login, instance, api")
    details: Optional[str] = Field(default=None, description="Free-text description")
    user_id: str = Field(description="Submitting user")
    guild_id: Optional[str] = Field(default=None, description="Guild the report was made from")


class ReportResponse(BaseModel):
    report_id: int
    similar_count: int = Field(description="Other users reporting this category in the current interval")
    threshold_reached: bool = False
    notified: int = Field(default=0, description="Recipients alerted by this report")


class CooldownResponse(BaseModel):
    detail: str
    retry_at: datetime


@router.post(
    "",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        429: {"model": CooldownResponse, "description": "Submitter is on cooldown"},
        422: {"description": "Invalid report"},
    },
)
async def submit_report(
    request: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    outcome = await service.submit_report(
        request.category,
        request.details,
        Submitter(user_id=request.user_id, guild_id=request.guild_id),
    )

    if isinstance(outcome, Accepted):
        return ReportResponse(
            report_id=outcome.report_id,
            similar_count=outcome.similar_count,
            threshold_reached=outcome.threshold_reached,
            notified=outcome.notified,
        )

    if isinstance(outcome, Cooldown):
        body = CooldownResponse(detail="Report cooldown active", retry_at=outcome.retry_at)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(mode="json"),
        )

    raise HTTPException(status_code=422, detail=outcome.reason)
