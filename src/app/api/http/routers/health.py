"""Liveness and readiness probes.

Endpoint Summary:
    GET /health         - Process is up
    GET /health/ready   - Store, lease backend and cluster checks
    GET /health/cluster - Cluster check alone
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from starlette.responses import JSONResponse

from src.app.api.http.deps import get_app_dependencies
from src.app.api.http.schemas.health import (
    ClusterHealth,
    LivenessResponse,
    OverallStatus,
    ReadinessResponse,
    ServiceStatus,
)
from src.app.core.services.health_service import HealthCheckService
from src.app.runtime.context import get_config

router = APIRouter(prefix="/health", tags=["health"])


def get_health_service(request: Request) -> HealthCheckService:
    return HealthCheckService(get_app_dependencies(request), get_config())


def _unavailable(result: BaseModel) -> JSONResponse:
    return JSONResponse(status_code=503, content=result.model_dump(mode="json"))


@router.get("", response_model=LivenessResponse, summary="Liveness probe")
async def health() -> LivenessResponse:
    """Answer as long as the process serves requests; dependencies are not checked."""
    return LivenessResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "A critical component is down", "model": ReadinessResponse}},
    summary="Readiness probe",
)
async def readiness(
    health_service: HealthCheckService = Depends(get_health_service),
) -> ReadinessResponse | JSONResponse:
    """Check every dependency; 503 when a critical one is unhealthy.

    The store and the lease backend are always critical. The cluster is
    critical in production only, since reads keep working without it.
    """
    result = await health_service.check_all()
    if result.status == OverallStatus.NOT_READY:
        return _unavailable(result)
    return result


@router.get(
    "/cluster",
    response_model=ClusterHealth,
    responses={503: {"description": "Cluster API is unreachable", "model": ClusterHealth}},
    summary="Cluster check",
)
async def health_cluster(
    health_service: HealthCheckService = Depends(get_health_service),
) -> ClusterHealth | JSONResponse:
    result = await health_service.check_cluster()
    if result.status == ServiceStatus.UNHEALTHY:
        return _unavailable(result)
    return result
