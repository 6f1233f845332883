"""API schema definitions for HTTP endpoints.

This package contains Pydantic models for request/response schemas
used by the HTTP API layer and by the ReleaseService.

Modules:
    health: Health check response models
    releases: Release operation request/response models
"""

from src.app.api.http.schemas.health import (
    AllServicesHealth,
    ClusterHealth,
    ComponentHealth,
    LeaseManagerHealth,
    LivenessResponse,
    OverallStatus,
    ReadinessResponse,
    ServiceStatus,
    StoreHealth,
)
from src.app.api.http.schemas.releases import (
    GetHistoryRequest,
    GetHistoryResponse,
    GetReleaseContentRequest,
    GetReleaseContentResponse,
    GetReleaseStatusRequest,
    GetReleaseStatusResponse,
    GetVersionResponse,
    InstallReleaseRequest,
    InstallReleaseResponse,
    ListReleasesRequest,
    ListReleasesResponse,
    OperationPlan,
    ReleaseErrorResponse,
    ResourceChange,
    RollbackReleaseOptions,
    RollbackReleaseRequest,
    RollbackReleaseResponse,
    SortBy,
    SortOrder,
    TestReleaseOptions,
    TestReleaseRequest,
    TestReleaseResponse,
    UninstallReleaseRequest,
    UninstallReleaseResponse,
    UpdateReleaseOptions,
    UpdateReleaseRequest,
    UpdateReleaseResponse,
)

__all__ = [
    # Health schemas
    "ServiceStatus",
    "OverallStatus",
    "ComponentHealth",
    "StoreHealth",
    "LeaseManagerHealth",
    "ClusterHealth",
    "AllServicesHealth",
    "ReadinessResponse",
    "LivenessResponse",
    # Release schemas
    "SortBy",
    "SortOrder",
    "ResourceChange",
    "OperationPlan",
    "ListReleasesRequest",
    "ListReleasesResponse",
    "GetReleaseStatusRequest",
    "GetReleaseStatusResponse",
    "GetReleaseContentRequest",
    "GetReleaseContentResponse",
    "GetHistoryRequest",
    "GetHistoryResponse",
    "GetVersionResponse",
    "InstallReleaseRequest",
    "InstallReleaseResponse",
    "UpdateReleaseOptions",
    "UpdateReleaseRequest",
    "UpdateReleaseResponse",
    "RollbackReleaseOptions",
    "RollbackReleaseRequest",
    "RollbackReleaseResponse",
    "UninstallReleaseRequest",
    "UninstallReleaseResponse",
    "TestReleaseOptions",
    "TestReleaseRequest",
    "TestReleaseResponse",
    "ReleaseErrorResponse",
]
