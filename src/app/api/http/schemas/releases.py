"""Pydantic schemas for the release service.

This module defines the request and response models of every release
operation. They are used both by the ReleaseService API and by the HTTP
routers that expose it.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from src.app.core.models import Chart, Config, Info, Release, Status, TestRunStatus

# =============================================================================
# Shared Models
# =============================================================================


class SortBy(str, Enum):
    """Sort key of a release listing."""

    NAME = "NAME"
    LAST_RELEASED = "LAST_RELEASED"
    CHART_NAME = "CHART_NAME"


class SortOrder(str, Enum):
    """Direction of a release listing."""

    ASC = "ASC"
    DESC = "DESC"


class ResourceChange(BaseModel):
    """One resource touched by an operation."""

    kind: str
    name: str
    namespace: str = ""


class OperationPlan(BaseModel):
    """What a mutating operation does (or, for a dry run, would do).

    Example:
        ```json
        {
            "creates": [{"kind": "Service", "name": "web", "namespace": "default"}],
            "updates": [],
            "deletes": [],
            "hooks": {"pre-install": ["web-db-init"], "post-install": []}
        }
        ```
    """

    creates: list[ResourceChange] = Field(default_factory=list)
    updates: list[ResourceChange] = Field(default_factory=list)
    deletes: list[ResourceChange] = Field(default_factory=list)
    hooks: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Ordered hook names per lifecycle phase",
    )


# =============================================================================
# Read Requests and Responses
# =============================================================================


class ListReleasesRequest(BaseModel):
    """Request for one page of releases.

    Only the latest revision of each release is considered.
    """

    limit: int = Field(default=0, description="Page size; <= 0 uses the configured default")
    offset: str = Field(default="", description="Name of the release to start after/at")
    sort_by: SortBy = SortBy.NAME
    sort_order: SortOrder = SortOrder.ASC
    filter: str = Field(default="", description="Regular expression matched against names")
    status_codes: list[Status] = Field(
        default_factory=list,
        description="Statuses to include; empty means DEPLOYED only",
    )
    namespace: str = Field(default="", description="Restrict to one namespace")


class ListReleasesResponse(BaseModel):
    """One page of releases."""

    count: int = Field(description="Number of releases in this page")
    next: str = Field(description="Offset of the next page, empty when exhausted")
    total: int = Field(description="Number of releases matching the request")
    releases: list[Release] = Field(default_factory=list)


class GetReleaseStatusRequest(BaseModel):
    name: str
    version: int = Field(default=0, ge=0, description="0 means the latest revision")


class GetReleaseStatusResponse(BaseModel):
    name: str
    namespace: str
    info: Info


class GetReleaseContentRequest(BaseModel):
    name: str
    version: int = Field(default=0, ge=0, description="0 means the latest revision")


class GetReleaseContentResponse(BaseModel):
    release: Release


class GetHistoryRequest(BaseModel):
    name: str
    max: int = Field(default=0, ge=0, description="Most recent revisions to return; 0 returns all")


class GetHistoryResponse(BaseModel):
    releases: list[Release] = Field(default_factory=list)


class GetVersionResponse(BaseModel):
    sem_ver: str
    git_commit: str = ""
    git_tree_state: str = ""


# =============================================================================
# Mutating Requests and Responses
# =============================================================================


class InstallReleaseRequest(BaseModel):
    """Request to install a chart as a new release.

    Example:
        ```json
        {
            "name": "web",
            "namespace": "default",
            "chart": {"metadata": {"name": "web"}, "templates": []},
            "values": {"raw": "replicas: 2"}
        }
        ```
    """

    chart: Chart
    values: Config = Field(default_factory=Config)
    dry_run: bool = False
    name: str = Field(default="", description="Release name; generated when empty")
    disable_hooks: bool = False
    namespace: str = Field(default="", description="Target namespace; configured default when empty")
    reuse_name: bool = Field(
        default=False,
        description="Allow installing over an uninstalled or failed release of the same name",
    )
    timeout: int = Field(default=0, ge=0, description="Seconds; 0 uses the configured default")
    wait: bool = False
    disable_crd_hook: bool = False
    description: str = ""


class InstallReleaseResponse(BaseModel):
    release: Release
    plan: OperationPlan


class UpdateReleaseOptions(BaseModel):
    """Upgrade options; the body of PUT /releases/{name}."""

    chart: Chart
    values: Config = Field(default_factory=Config)
    dry_run: bool = False
    disable_hooks: bool = False
    recreate: bool = Field(default=False, description="Delete and recreate updated workloads")
    timeout: int = Field(default=0, ge=0)
    reset_values: bool = Field(default=False, description="Ignore the values of the current revision")
    wait: bool = False
    reuse_values: bool = Field(
        default=False, description="Merge the new values over those of the current revision"
    )
    force: bool = Field(default=False, description="Replace resources whose update fails")
    description: str = ""
    cleanup_on_fail: bool = False


class UpdateReleaseRequest(UpdateReleaseOptions):
    """Request to upgrade an existing release to a new chart or values."""

    name: str


class UpdateReleaseResponse(BaseModel):
    release: Release
    plan: OperationPlan


class RollbackReleaseOptions(BaseModel):
    """Rollback options; the body of POST /releases/{name}/rollback."""

    dry_run: bool = False
    disable_hooks: bool = False
    version: int = Field(default=0, ge=0, description="Target revision; 0 means the previous one")
    recreate: bool = False
    timeout: int = Field(default=0, ge=0)
    wait: bool = False
    force: bool = False
    description: str = ""
    cleanup_on_fail: bool = False


class RollbackReleaseRequest(RollbackReleaseOptions):
    """Request to roll a release back to an earlier revision."""

    name: str


class RollbackReleaseResponse(BaseModel):
    release: Release
    plan: OperationPlan


class UninstallReleaseRequest(BaseModel):
    name: str
    disable_hooks: bool = False
    purge: bool = Field(default=False, description="Remove the release history as well")
    timeout: int = Field(default=0, ge=0)
    description: str = ""


class UninstallReleaseResponse(BaseModel):
    release: Release
    info: str = Field(default="", description="Resources that could not be deleted, if any")
    plan: OperationPlan = Field(default_factory=OperationPlan)


class TestReleaseOptions(BaseModel):
    """Test options; the body of POST /releases/{name}/tests."""

    __test__ = False

    timeout: int = Field(default=0, ge=0, description="Seconds per test; 0 uses the configured default")
    cleanup: bool = Field(default=False, description="Delete test resources after they report")
    parallel: bool = False


class TestReleaseRequest(TestReleaseOptions):
    """Request to run the test hooks of a release."""

    __test__ = False

    name: str


class TestReleaseResponse(BaseModel):
    """One message of a test run stream."""

    __test__ = False

    msg: str
    status: TestRunStatus = TestRunStatus.UNKNOWN


# =============================================================================
# Error Models
# =============================================================================


class ReleaseErrorResponse(BaseModel):
    """Error body returned by every release endpoint.

    Example:
        ```json
        {
            "error": "busy",
            "message": "another operation is in progress for release web",
            "details": null,
            "release": null
        }
        ```
    """

    error: str = Field(description="Machine readable error code")
    message: str
    details: str | None = None
    release: Release | None = Field(
        default=None, description="Revision recorded as FAILED, when one was created"
    )
