"""In-memory implementation of ClusterController.

Keeps applied objects in a dictionary. Useful for local development without a
cluster and as a deterministic stand-in for tests: failures, unready
resources and pod outcomes can be scripted per resource name.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from typing_extensions import override

from .controller import (
    TIMEOUT_RETURNCODE,
    ClusterController,
    CommandResult,
    PodPhase,
    Resource,
    ResourceRef,
)


class InMemoryClusterController(ClusterController):
    """Cluster controller backed by a dictionary.

    Attributes:
        objects: Applied object bodies keyed by resource reference
        calls: Every operation performed, as (operation, reference) tuples
        fail_create: Names whose create fails
        fail_update: Names whose update fails
        fail_delete: Names whose delete fails
        never_ready: Names that never report ready
        pod_phases: Final phase of run-to-completion resources by name
            (defaults to Succeeded)
        hang: Names whose completion never arrives
        delay: Seconds every mutating call takes
    """

    def __init__(self, context: str = "in-memory") -> None:
        self.context = context
        self.objects: dict[ResourceRef, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_create: set[str] = set()
        self.fail_update: set[str] = set()
        self.fail_delete: set[str] = set()
        self.never_ready: set[str] = set()
        self.pod_phases: dict[str, str] = {}
        self.hang: set[str] = set()
        self.delay: float = 0.0

    async def _record(self, operation: str, ref: ResourceRef) -> None:
        self.calls.append((operation, str(ref)))
        if self.delay:
            await asyncio.sleep(self.delay)

    def mutations(self) -> list[tuple[str, str]]:
        """Calls that changed cluster state."""
        return [call for call in self.calls if call[0] in ("create", "update", "delete")]

    @override
    async def get_current_context(self) -> str:
        return self.context

    @override
    async def health_check(self) -> bool:
        return True

    @override
    async def create(self, resource: Resource) -> CommandResult:
        ref = resource.ref
        await self._record("create", ref)
        if resource.name in self.fail_create:
            return CommandResult(
                success=False, stderr=f"admission denied for {ref}", returncode=1
            )
        if ref in self.objects:
            return CommandResult(
                success=False, stderr=f"{ref} already exists", returncode=1
            )
        self.objects[ref] = copy.deepcopy(resource.body)
        return CommandResult(success=True, stdout=f"{ref} created")

    @override
    async def update(self, resource: Resource) -> CommandResult:
        ref = resource.ref
        await self._record("update", ref)
        if resource.name in self.fail_update:
            return CommandResult(
                success=False, stderr=f"field is immutable on {ref}", returncode=1
            )
        self.objects[ref] = copy.deepcopy(resource.body)
        return CommandResult(success=True, stdout=f"{ref} configured")

    @override
    async def delete(self, ref: ResourceRef) -> CommandResult:
        await self._record("delete", ref)
        if ref.name in self.fail_delete:
            return CommandResult(
                success=False, stderr=f"cannot delete {ref}", returncode=1
            )
        if self.objects.pop(ref, None) is None:
            return CommandResult(success=True, stdout=f"{ref} not found")
        return CommandResult(success=True, stdout=f"{ref} deleted")

    @override
    async def exists(self, ref: ResourceRef) -> bool:
        return ref in self.objects

    @override
    async def is_ready(self, ref: ResourceRef) -> bool:
        self.calls.append(("is_ready", str(ref)))
        return ref in self.objects and ref.name not in self.never_ready

    @override
    async def wait_for_completion(
        self,
        ref: ResourceRef,
        *,
        timeout: float,
    ) -> CommandResult:
        self.calls.append(("wait", str(ref)))
        if ref not in self.objects:
            return CommandResult(success=False, stderr=f"{ref} not found", returncode=1)
        if ref.name in self.hang:
            await asyncio.sleep(timeout)
            return CommandResult(
                success=False,
                stderr=f"timed out waiting for {ref} to complete",
                returncode=TIMEOUT_RETURNCODE,
            )
        phase = self.pod_phases.get(ref.name, PodPhase.SUCCEEDED)
        if phase == PodPhase.SUCCEEDED:
            return CommandResult(success=True, stdout=f"{ref} completed")
        return CommandResult(success=False, stderr=f"{ref} failed", returncode=1)
