"""Release domain models.

A release is one revision of a named deployment: a chart plus the values it
was installed with, the manifest that was applied to the cluster, and the
hooks that bracket every lifecycle operation.

Status Terminology:
    - live: DEPLOYED or any PENDING_* status (at most one per release name)
    - terminal: SUPERSEDED, FAILED, UNINSTALLING, UNINSTALLED
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Status(str, Enum):
    """Status of a single release revision."""

    UNKNOWN = "UNKNOWN"
    DEPLOYED = "DEPLOYED"
    UNINSTALLED = "UNINSTALLED"
    SUPERSEDED = "SUPERSEDED"
    FAILED = "FAILED"
    UNINSTALLING = "UNINSTALLING"
    PENDING_INSTALL = "PENDING_INSTALL"
    PENDING_UPGRADE = "PENDING_UPGRADE"
    PENDING_ROLLBACK = "PENDING_ROLLBACK"
    PENDING_TEST = "PENDING_TEST"
    TESTED = "TESTED"

    @property
    def is_pending(self) -> bool:
        return self.value.startswith("PENDING_")

    @property
    def is_live(self) -> bool:
        """Whether this status marks the revision currently owning the name."""
        return self is Status.DEPLOYED or self.is_pending


class HookEvent(str, Enum):
    """Lifecycle phases a hook can be bound to."""

    CRD_INSTALL = "crd-install"
    PRE_INSTALL = "pre-install"
    POST_INSTALL = "post-install"
    PRE_DELETE = "pre-delete"
    POST_DELETE = "post-delete"
    PRE_UPGRADE = "pre-upgrade"
    POST_UPGRADE = "post-upgrade"
    PRE_ROLLBACK = "pre-rollback"
    POST_ROLLBACK = "post-rollback"
    TEST_SUCCESS = "test-success"
    TEST_FAILURE = "test-failure"


class HookDeletePolicy(str, Enum):
    """When a hook's resource is removed from the cluster."""

    BEFORE_HOOK_CREATION = "before-hook-creation"
    HOOK_SUCCEEDED = "hook-succeeded"
    HOOK_FAILED = "hook-failed"


class TestRunStatus(str, Enum):
    """Result of a single release test."""

    __test__ = False

    UNKNOWN = "UNKNOWN"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    RUNNING = "RUNNING"


# =============================================================================
# Chart Models
# =============================================================================


class ChartMetadata(BaseModel):
    """Descriptive metadata of a chart."""

    name: str = Field(description="Chart name")
    version: str = Field(default="", description="Chart version (SemVer)")
    app_version: str = Field(default="", description="Version of the packaged app")
    description: str = Field(default="")


class Template(BaseModel):
    """A rendered chart template.

    Rendering happens before the chart reaches the release service, so
    ``data`` holds plain Kubernetes YAML (possibly several documents).
    """

    name: str = Field(description="Template path, e.g. templates/deployment.yaml")
    data: str = Field(default="", description="Rendered YAML content")


class Chart(BaseModel):
    """A chart whose templates have already been rendered."""

    metadata: ChartMetadata
    templates: list[Template] = Field(default_factory=list)
    values: str = Field(default="", description="Default values as raw YAML")


class Config(BaseModel):
    """User supplied values, kept as unparsed YAML."""

    raw: str = ""


# =============================================================================
# Hook and Test Models
# =============================================================================


class Hook(BaseModel):
    """A manifest executed at a lifecycle phase, outside the main resource set."""

    name: str
    kind: str
    path: str = Field(default="", description="Template the hook was declared in")
    manifest: str
    events: list[HookEvent] = Field(default_factory=list)
    weight: int = 0
    delete_policies: list[HookDeletePolicy] = Field(default_factory=list)
    last_run: datetime | None = None


class TestRun(BaseModel):
    """Outcome of one test hook."""

    __test__ = False

    name: str
    status: TestRunStatus = TestRunStatus.UNKNOWN
    info: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None


class TestSuite(BaseModel):
    """Outcome of one run of all test hooks of a release."""

    __test__ = False

    started_at: datetime | None = None
    completed_at: datetime | None = None
    results: list[TestRun] = Field(default_factory=list)


# =============================================================================
# Release Models
# =============================================================================


class Info(BaseModel):
    """Status and bookkeeping of a release revision."""

    status: Status = Status.UNKNOWN
    description: str = ""
    first_deployed: datetime | None = None
    last_deployed: datetime | None = None
    deleted: datetime | None = None
    notes: str = ""
    test_status: Status | None = Field(
        default=None,
        description="Side-channel status of the latest test run (PENDING_TEST, TESTED, FAILED)",
    )
    last_test_suite_run: TestSuite | None = None


class Release(BaseModel):
    """One versioned revision of a named release."""

    name: str
    namespace: str = "default"
    version: int = Field(ge=1)
    chart: Chart
    config: Config = Field(default_factory=Config)
    manifest: str = ""
    info: Info = Field(default_factory=Info)
    hooks: list[Hook] = Field(default_factory=list)

    @property
    def status(self) -> Status:
        return self.info.status

    @property
    def key(self) -> str:
        return f"{self.name}.v{self.version}"
