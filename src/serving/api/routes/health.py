"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel
from datetime import datetime

from src.config import get_settings
from src.core.records import utcnow
from src.ingestion import DataSourceStatus

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Service container
    - Redis connectivity, when enabled
    - Realtime data sources in error
    """
    settings = get_settings()
    services = getattr(request.app.state, "services", None)
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    if services is None:
        checks["services"] = {"status": "unhealthy", "error": "not initialized"}
        overall_status = "unhealthy"
    else:
        checks["services"] = {"status": "healthy", "records": sum(len(r) for r in services.dataset.to_dict().values())}

        if services.uses_redis:
            try:
                from src.serving.cache import get_redis
                await get_redis().ping()
                checks["redis"] = {"status": "healthy"}
            except Exception as e:
                checks["redis"] = {"status": "unhealthy", "error": str(e)}
                overall_status = "degraded"

        sources = services.realtime.list_sources()
        failing = [s.id for s in sources if s.status == DataSourceStatus.ERROR]
        checks["realtime"] = {
            "status": "degraded" if failing else "healthy",
            "sources": len(sources),
            "failing": failing,
        }
        if failing and overall_status == "healthy":
            overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=utcnow(),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 once the service container is built.
    """
    if getattr(request.app.state, "services", None) is None:
        response.status_code = 503
        return {"status": "not_ready", "reason": "services_unavailable"}
    return {"status": "ready"}
