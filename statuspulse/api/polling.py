"""Poll interval administration."""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from statuspulse.api.deps import get_registry
from statuspulse.core.exceptions import InvalidIntervalError, UnknownPollerError
from statuspulse.workers.intervals import IntervalRegistry, PollerType

logger = logging.getLogger(__name__)

router = APIRouter()


class IntervalUpdate(BaseModel):
    seconds: int = Field(description="New poll interval in seconds")


class IntervalsResponse(BaseModel):
    intervals: Dict[str, int]
    min_seconds: int
    max_seconds: int


def _response(registry: IntervalRegistry) -> IntervalsResponse:
    return IntervalsResponse(
        intervals=registry.snapshot(),
        min_seconds=registry.minimum,
        max_seconds=registry.maximum,
    )


@router.get("", response_model=IntervalsResponse)
async def list_intervals(registry: IntervalRegistry = Depends(get_registry)):
    return _response(registry)


@router.put("/{poller}", response_model=IntervalsResponse)
async def update_interval(
    poller: str,
    update: IntervalUpdate,
    registry: IntervalRegistry = Depends(get_registry),
):
    try:
        await registry.update(PollerType.parse(poller), update.seconds)
    except UnknownPollerError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidIntervalError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _response(registry)


@router.post("/reset", response_model=IntervalsResponse)
async def reset_intervals(registry: IntervalRegistry = Depends(get_registry)):
    await registry.reset_all()
    return _response(registry)


@router.post("/reload")
async def reload_intervals(registry: IntervalRegistry = Depends(get_registry)):
    """Re-read bot_config and apply any changed intervals to the running pollers."""
    changed = await registry.reload()
    return {"changed": changed, "intervals": registry.snapshot()}
