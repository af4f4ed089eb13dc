"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from marketplace.config import get_settings
from marketplace.data.stores import DataStore
from marketplace.reporting.assembler import utc_now
from marketplace.serving.api.dependencies import get_store

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(store: DataStore = Depends(get_store)) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Application status
    - Data store availability
    """
    settings = get_settings()
    store_health = await store.check_health()
    status = "healthy" if store_health.get("status") == "healthy" else "degraded"

    return HealthResponse(
        status=status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=utc_now(),
        checks={"store": store_health},
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response, store: DataStore = Depends(get_store)) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 if the data store can be read.
    """
    store_health = await store.check_health()
    if store_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": store_health.get("error", "store_unavailable")}
    return {"status": "ready"}
