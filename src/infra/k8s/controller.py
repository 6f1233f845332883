"""Abstract cluster controller interface.

Defines the contract for the cluster operations the release service needs.
It can be implemented by different backends (kr8s library, in-memory).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import yaml  # type: ignore[import-untyped]

# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CommandResult:
    """Result of a cluster operation."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


@dataclass(frozen=True, order=True)
class ResourceRef:
    """Identity of a resource in the cluster."""

    kind: str
    name: str
    namespace: str = ""
    api_version: str = field(default="v1", compare=False)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass
class Resource:
    """A single Kubernetes object parsed from a rendered manifest."""

    api_version: str
    kind: str
    name: str
    namespace: str
    body: dict[str, Any]

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.kind, self.name, self.namespace, self.api_version)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.body, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_document(cls, doc: dict[str, Any], namespace: str) -> Resource:
        """Build a resource from a parsed YAML document.

        Objects without an explicit namespace are placed in ``namespace``.
        """
        metadata = doc.get("metadata") or {}
        resource_namespace = metadata.get("namespace") or namespace
        body = dict(doc)
        body["metadata"] = {**metadata, "namespace": resource_namespace}
        return cls(
            api_version=str(doc.get("apiVersion", "v1")),
            kind=str(doc.get("kind", "")),
            name=str(metadata.get("name", "")),
            namespace=resource_namespace,
            body=body,
        )


# Return code reported when a wait exceeds its timeout
TIMEOUT_RETURNCODE = 124


class PodPhase:
    """Pod phases as reported by the Kubernetes API."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


# =============================================================================
# Abstract Controller
# =============================================================================


class ClusterController(ABC):
    """Abstract base class for cluster operations.

    All methods are async. Mutating methods report failures through
    ``CommandResult`` instead of raising, so callers decide how a failed
    cluster call maps onto the release lifecycle.

    Example:
        from src.infra.k8s import get_cluster_controller, run_sync

        controller = get_cluster_controller("memory")
        result = run_sync(controller.create(resource))
    """

    # =========================================================================
    # Cluster Context
    # =========================================================================

    @abstractmethod
    async def get_current_context(self) -> str:
        """Get the current kubeconfig context name.

        Returns:
            Context name, or "unknown" if detection fails
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the cluster API is reachable.

        Returns:
            True if the API server answered
        """
        ...

    # =========================================================================
    # Resource Operations
    # =========================================================================

    @abstractmethod
    async def create(self, resource: Resource) -> CommandResult:
        """Create a resource.

        Args:
            resource: Resource to create

        Returns:
            CommandResult with create status
        """
        ...

    @abstractmethod
    async def update(self, resource: Resource) -> CommandResult:
        """Update an existing resource in place.

        Args:
            resource: Desired state of the resource

        Returns:
            CommandResult with update status
        """
        ...

    @abstractmethod
    async def delete(self, ref: ResourceRef) -> CommandResult:
        """Delete a resource.

        Deleting a resource that does not exist succeeds.

        Args:
            ref: Resource to delete

        Returns:
            CommandResult with deletion status
        """
        ...

    @abstractmethod
    async def exists(self, ref: ResourceRef) -> bool:
        """Check if a resource exists.

        Args:
            ref: Resource to look up

        Returns:
            True if the resource exists
        """
        ...

    # =========================================================================
    # Status Operations
    # =========================================================================

    @abstractmethod
    async def is_ready(self, ref: ResourceRef) -> bool:
        """Check if a resource has reached its ready condition.

        Kinds without a readiness notion are ready once they exist.

        Args:
            ref: Resource to check

        Returns:
            True if the resource is ready
        """
        ...

    @abstractmethod
    async def wait_for_completion(
        self,
        ref: ResourceRef,
        *,
        timeout: float,
    ) -> CommandResult:
        """Wait for a run-to-completion resource (Job, Pod) to finish.

        Other kinds complete as soon as they exist.

        Args:
            ref: Resource to wait for
            timeout: Maximum time to wait in seconds

        Returns:
            CommandResult, successful if the resource completed successfully
        """
        ...
