from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
import time
import structlog

from ..models.schemas import HealthCheckResponse
from ..core.config import settings
from ..models.database import get_db
from ..utils.monitoring import get_prometheus_metrics

logger = structlog.get_logger()
router = APIRouter(prefix="/health", tags=["health"])
metrics_router = APIRouter(tags=["health"])

# Store service start time for uptime calculation
SERVICE_START_TIME = time.time()


@router.get("", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Comprehensive health check endpoint.

    Checks:
    - Service status
    - Database connectivity
    - Service uptime
    """
    database_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        database_status = f"unhealthy: {str(e)}"
        logger.error("Database health check failed", error=str(e))

    uptime_seconds = time.time() - SERVICE_START_TIME
    overall_status = "degraded" if "unhealthy" in database_status else "healthy"

    return HealthCheckResponse(
        status=overall_status,
        version=settings.APP_VERSION,
        database_status=database_status,
        uptime_seconds=uptime_seconds
    )


@router.get("/live")
async def liveness_probe():
    """
    Kubernetes liveness probe endpoint.
    Simple check to verify the service is running.
    """
    return {"status": "alive", "timestamp": datetime.now().isoformat()}


@router.get("/ready")
async def readiness_probe(db: AsyncSession = Depends(get_db)):
    """
    Kubernetes readiness probe endpoint.
    Checks if the service is ready to handle requests.
    """
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.now().isoformat()}
    except Exception as e:
        logger.error("Readiness probe failed", error=str(e))
        raise HTTPException(status_code=503, detail="Service not ready")


@router.get("/version")
async def get_version():
    """Get service version information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_version": settings.API_V1_STR,
        "build_time": datetime.now().isoformat()
    }


@metrics_router.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics in text exposition format."""
    if not settings.ENABLE_METRICS:
        raise HTTPException(status_code=404, detail="Metrics disabled")
    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
