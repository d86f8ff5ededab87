"""Health check endpoints."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from statuspulse.api.deps import get_session_factory

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(session_factory=Depends(get_session_factory)):
    """
    Readiness check - verify the database is reachable.
    """
    health_status = {
        "status": "ready",
        "checks": {"database": "unknown"},
    }

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["checks"]["database"] = f"failed: {str(e)}"
        health_status["status"] = "not_ready"

    if health_status["status"] != "ready":
        return JSONResponse(content=health_status, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

    return health_status
