"""Schemas of the health endpoints.

A component check reports ``healthy`` or ``unhealthy``; the readiness
response combines the store, lease backend and cluster checks into
``ready`` / ``not_ready``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class ServiceStatus(str, Enum):
    """Result of a single component check."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class OverallStatus(str, Enum):
    """Whether the service should receive traffic."""

    READY = "ready"
    NOT_READY = "not_ready"


# =============================================================================
# Component Checks
# =============================================================================


class ComponentHealth(BaseModel):
    """Fields shared by every component check."""

    model_config = ConfigDict(use_enum_values=True)

    status: ServiceStatus = Field(description="Outcome of the check")
    error: str | None = Field(
        default=None,
        description="Why the component is unhealthy",
    )


class StoreHealth(ComponentHealth):
    """Release store check."""

    type: Annotated[str, Field(description="Store backend (memory, redis)")]


class LeaseManagerHealth(ComponentHealth):
    """Per-release lease backend check."""

    type: Annotated[str, Field(description="Lease backend (memory, redis)")]


class ClusterHealth(ComponentHealth):
    """Cluster API check."""

    backend: str = Field(description="Cluster backend (kr8s, memory)")
    context: str | None = Field(
        default=None,
        description="Kubeconfig context the controller talks to",
    )


# =============================================================================
# Probe Responses
# =============================================================================


class AllServicesHealth(BaseModel):
    """Every component check of a readiness probe."""

    model_config = ConfigDict(use_enum_values=True)

    store: StoreHealth
    lease_manager: LeaseManagerHealth
    cluster: ClusterHealth


class ReadinessResponse(BaseModel):
    """Body of ``GET /health/ready``."""

    model_config = ConfigDict(use_enum_values=True)

    status: OverallStatus = Field(description="ready when every critical component is healthy")
    environment: str = Field(description="Value of app.environment")
    checks: AllServicesHealth = Field(description="Per-component results")


class LivenessResponse(BaseModel):
    """Body of ``GET /health``; answering at all means the process is alive."""

    status: Annotated[str, Field(description="Always 'healthy'")] = "healthy"
    service: Annotated[str, Field(description="Service name")] = "release-service"
