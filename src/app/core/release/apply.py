"""Applying a release manifest to the cluster.

The engine diffs the manifest of the revision being replaced against the new
manifest, creates and updates resources in install order, deletes what is no
longer rendered in uninstall order, and optionally waits for the result to
become ready.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field

from loguru import logger

from src.app.core.errors import (
    ApplyFailureError,
    OperationTimeoutError,
    PartialFailureError,
)
from src.app.core.release.deadline import Deadline
from src.app.core.release.manifests import (
    install_order,
    install_rank,
    load_manifest,
    uninstall_order,
)
from src.infra.k8s import (
    WAITABLE_KINDS,
    ClusterController,
    CommandResult,
    Resource,
    ResourceRef,
)

# Kinds replaced by delete-then-create when an upgrade asks for recreation
RECREATE_KINDS: frozenset[str] = frozenset(
    {"Pod", "Deployment", "StatefulSet", "DaemonSet", "ReplicaSet", "Job"}
)

# Seconds allowed for removing resources after a failed apply
CLEANUP_TIMEOUT = 30.0


@dataclass
class ApplyPlan:
    """Difference between two manifests, keyed by (kind, namespace, name)."""

    creates: list[Resource] = field(default_factory=list)
    updates: list[Resource] = field(default_factory=list)
    deletes: list[Resource] = field(default_factory=list)
    unchanged: list[Resource] = field(default_factory=list)

    @property
    def desired(self) -> list[Resource]:
        """Every resource that exists once the plan is applied."""
        return install_order(self.creates + self.updates + self.unchanged)


def compute_plan(
    old_manifest: str,
    new_manifest: str,
    namespace: str,
    unsettled: Sequence[str] = (),
) -> ApplyPlan:
    """Diff two manifests.

    Args:
        old_manifest: Manifest of the last revision applied in full ("" for a
            fresh install)
        new_manifest: Manifest to apply
        namespace: Namespace for objects that do not name one
        unsettled: Manifests of failed or interrupted revisions since then.
            Their resources may exist in any state, so every one still
            rendered is updated and every one no longer rendered is deleted.

    Returns:
        ApplyPlan with creates and updates in install order, deletes in
        uninstall order
    """
    old = {r.ref: r for r in load_manifest(old_manifest, namespace)}
    for manifest in unsettled:
        for resource in load_manifest(manifest, namespace):
            old.setdefault(resource.ref, resource)
    new = {r.ref: r for r in load_manifest(new_manifest, namespace)}

    plan = ApplyPlan()
    for ref, resource in new.items():
        if ref not in old:
            plan.creates.append(resource)
        elif unsettled or old[ref].body != resource.body:
            plan.updates.append(resource)
        else:
            plan.unchanged.append(resource)
    plan.deletes = uninstall_order([r for ref, r in old.items() if ref not in new])
    plan.creates = install_order(plan.creates)
    plan.updates = install_order(plan.updates)
    plan.unchanged = install_order(plan.unchanged)
    return plan


async def cluster_call(
    call: Awaitable[CommandResult], deadline: Deadline, what: str
) -> CommandResult:
    """Run one cluster call within ``deadline``.

    A controller that raises is reported as a failed call.

    Raises:
        OperationTimeoutError: If the deadline passes first
    """
    try:
        return await deadline.bound(call, what)
    except OperationTimeoutError:
        raise
    except Exception as e:
        logger.warning(f"Cluster error during {what}: {e!r}")
        return CommandResult(success=False, stderr=f"{type(e).__name__}: {e}", returncode=1)


class ApplyEngine:
    """Applies ApplyPlans through a ClusterController."""

    def __init__(self, cluster: ClusterController, poll_interval: float = 2.0) -> None:
        self.cluster = cluster
        self.poll_interval = poll_interval

    async def _recreate(self, resource: Resource, deadline: Deadline) -> CommandResult:
        deleted = await cluster_call(
            self.cluster.delete(resource.ref), deadline, f"delete of {resource.ref}"
        )
        if not deleted.success:
            return deleted
        return await cluster_call(
            self.cluster.create(resource), deadline, f"create of {resource.ref}"
        )

    async def apply(
        self,
        plan: ApplyPlan,
        *,
        deadline: Deadline,
        recreate: bool = False,
        force: bool = False,
        cleanup_on_fail: bool = False,
        wait: bool = False,
    ) -> list[ResourceRef]:
        """Apply a plan to the cluster.

        Args:
            plan: What to create, update and delete
            deadline: Time budget shared with the rest of the operation
            recreate: Delete and recreate updated workload resources
            force: Replace resources whose in-place update fails
            cleanup_on_fail: Delete resources created by this call on failure
            wait: Wait until the applied resources are ready

        Returns:
            References of the resources that were created, updated or deleted

        Raises:
            ApplyFailureError: Nothing was applied before the failure
            PartialFailureError: Some resources were applied before the failure
            OperationTimeoutError: The deadline passed
        """
        created: list[Resource] = []
        applied: list[ResourceRef] = []

        try:
            steps = [(r, "create") for r in plan.creates] + [(r, "update") for r in plan.updates]
            for resource, action in sorted(steps, key=lambda s: install_rank(s[0])):
                if action == "create":
                    result = await cluster_call(
                        self.cluster.create(resource), deadline, f"create of {resource.ref}"
                    )
                elif recreate and resource.kind in RECREATE_KINDS:
                    result = await self._recreate(resource, deadline)
                else:
                    result = await cluster_call(
                        self.cluster.update(resource), deadline, f"update of {resource.ref}"
                    )
                    if not result.success and force:
                        logger.debug(f"Update of {resource.ref} failed, replacing it")
                        result = await self._recreate(resource, deadline)

                if not result.success:
                    raise _failure(f"failed to {action} {resource.ref}", result, applied, resource.ref)
                if action == "create":
                    created.append(resource)
                applied.append(resource.ref)
                logger.debug(f"{action.capitalize()}d {resource.ref}")

            for resource in plan.deletes:
                result = await cluster_call(
                    self.cluster.delete(resource.ref), deadline, f"delete of {resource.ref}"
                )
                if not result.success:
                    raise _failure(f"failed to delete {resource.ref}", result, applied, resource.ref)
                applied.append(resource.ref)
                logger.debug(f"Deleted {resource.ref}")

            if wait:
                await self.wait(plan.desired, deadline)
        except (ApplyFailureError, OperationTimeoutError):
            if force or cleanup_on_fail:
                await self._cleanup(created)
            raise
        except Exception as e:
            if force or cleanup_on_fail:
                await self._cleanup(created)
            details = f"{type(e).__name__}: {e}"
            if applied:
                raise PartialFailureError(
                    "cluster error while applying release",
                    details,
                    applied=[str(ref) for ref in applied],
                ) from e
            raise ApplyFailureError("cluster error while applying release", details) from e

        return applied

    async def wait(self, resources: list[Resource], deadline: Deadline) -> None:
        """Poll until every waitable resource is ready.

        Raises:
            OperationTimeoutError: If the deadline passes first
        """
        pending = [r.ref for r in resources if r.kind in WAITABLE_KINDS]
        logger.debug(f"Waiting for {len(pending)} resources to become ready")

        while pending:
            still_pending = []
            for ref in pending:
                if not await deadline.bound(
                    self.cluster.is_ready(ref), f"readiness check of {ref}"
                ):
                    still_pending.append(ref)
            pending = still_pending
            if not pending:
                break
            if deadline.remaining() < self.poll_interval:
                raise OperationTimeoutError(
                    "timed out waiting for resources to become ready",
                    details=", ".join(str(ref) for ref in pending),
                )
            await asyncio.sleep(self.poll_interval)

    async def delete_all(self, manifest: str, namespace: str, deadline: Deadline) -> list[str]:
        """Delete every resource of a manifest in uninstall order.

        Missing resources count as deleted. A resource listed more than once
        is deleted once.

        Returns:
            Descriptions of resources that could not be deleted
        """
        errors = []
        resources = {r.ref: r for r in load_manifest(manifest, namespace)}
        for resource in uninstall_order(list(resources.values())):
            result = await cluster_call(
                self.cluster.delete(resource.ref), deadline, f"delete of {resource.ref}"
            )
            if result.success:
                logger.debug(f"Deleted {resource.ref}")
            else:
                logger.warning(f"Failed to delete {resource.ref}: {result.stderr}")
                errors.append(f"{resource.ref}: {result.stderr}")
        return errors

    async def _cleanup(self, created: list[Resource]) -> None:
        """Best effort removal of resources created by a failed apply."""
        budget = Deadline(CLEANUP_TIMEOUT)
        for resource in uninstall_order(created):
            try:
                result = await budget.bound(
                    self.cluster.delete(resource.ref), f"cleanup of {resource.ref}"
                )
            except Exception as e:
                logger.warning(f"Cleanup of {resource.ref} failed: {e}")
                continue
            if result.success:
                logger.info(f"Cleaned up {resource.ref}")
            else:
                logger.warning(f"Cleanup of {resource.ref} failed: {result.stderr}")


def _failure(
    message: str,
    result: CommandResult,
    applied: list[ResourceRef],
    failed: ResourceRef,
) -> ApplyFailureError:
    details = result.stderr.strip() or None
    if not applied:
        return ApplyFailureError(message, details)
    return PartialFailureError(
        message,
        details,
        applied=[str(ref) for ref in applied],
        failed=[str(failed)],
    )
