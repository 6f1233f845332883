"""Kr8s-based implementation of ClusterController.

Uses the kr8s library for native async reads and deletes of the workload
kinds the release service watches, and kubectl for create/apply of arbitrary
manifests.
"""

from __future__ import annotations

import asyncio
import subprocess
from typing import Any

import kr8s
from kr8s.asyncio.objects import (
    DaemonSet,
    Deployment,
    Job,
    PersistentVolumeClaim,
    Pod,
    ReplicaSet,
    Service,
    StatefulSet,
)
from loguru import logger

from .controller import (
    TIMEOUT_RETURNCODE,
    ClusterController,
    CommandResult,
    PodPhase,
    Resource,
    ResourceRef,
)
from .readiness import completion_phase, is_object_ready

_TYPED_KINDS: dict[str, Any] = {
    "Pod": Pod,
    "Deployment": Deployment,
    "StatefulSet": StatefulSet,
    "DaemonSet": DaemonSet,
    "ReplicaSet": ReplicaSet,
    "PersistentVolumeClaim": PersistentVolumeClaim,
    "Service": Service,
    "Job": Job,
}


class Kr8sController(ClusterController):
    """Cluster controller using the kr8s library.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. CLI code goes through run_sync(), which
    may create a new event loop per call.
    """

    def __init__(self, poll_interval: float = 2.0, command_timeout: float = 60.0) -> None:
        """Initialize the kr8s controller.

        Args:
            poll_interval: Seconds between status polls while waiting
            command_timeout: Seconds one kubectl invocation may run before it
                is killed
        """
        self.poll_interval = poll_interval
        self.command_timeout = command_timeout

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Create a kr8s API client bound to the running event loop."""
        return await kr8s.asyncio.api()

    async def _get_object(self, ref: ResourceRef) -> Any | None:
        """Fetch a typed kr8s object, or None if it does not exist."""
        api = await self._get_api()
        cls = _TYPED_KINDS[ref.kind]
        try:
            return await cls.get(ref.name, namespace=ref.namespace, api=api)
        except kr8s.NotFoundError:
            return None

    async def _kubectl(self, args: list[str], stdin: str | None = None) -> CommandResult:
        """Run kubectl in a worker thread.

        A missing binary or an invocation that outlives ``command_timeout``
        is reported as a failed result.
        """
        cmd = ["kubectl", *args]

        def _run() -> CommandResult:
            try:
                result = subprocess.run(
                    cmd,
                    input=stdin,
                    capture_output=True,
                    text=True,
                    timeout=self.command_timeout,
                )
            except subprocess.TimeoutExpired:
                return CommandResult(
                    success=False,
                    stderr=f"kubectl {args[0]} did not finish within {self.command_timeout}s",
                    returncode=TIMEOUT_RETURNCODE,
                )
            except OSError as e:
                return CommandResult(success=False, stderr=f"cannot run kubectl: {e}", returncode=127)
            return CommandResult(
                success=result.returncode == 0,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
                returncode=result.returncode,
            )

        return await asyncio.to_thread(_run)

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def get_current_context(self) -> str:
        """Get the current kubeconfig context name."""
        try:
            api = await self._get_api()
            return api.auth.active_context or "unknown"
        except Exception:
            return "unknown"

    async def health_check(self) -> bool:
        """Check that the API server answers a version request."""
        try:
            api = await self._get_api()
            await api.version()
            return True
        except Exception as e:
            logger.debug(f"Cluster health check failed: {e}")
            return False

    # =========================================================================
    # Resource Operations
    # =========================================================================

    async def create(self, resource: Resource) -> CommandResult:
        """Create a resource from its manifest.

        Note: kr8s has no generic create-from-manifest for arbitrary kinds,
        so we use kubectl for this operation.
        """
        return await self._kubectl(["create", "-f", "-"], stdin=resource.to_yaml())

    async def update(self, resource: Resource) -> CommandResult:
        """Update a resource in place via kubectl apply."""
        return await self._kubectl(["apply", "-f", "-"], stdin=resource.to_yaml())

    async def delete(self, ref: ResourceRef) -> CommandResult:
        """Delete a resource, treating a missing resource as deleted."""
        if ref.kind not in _TYPED_KINDS:
            args = ["delete", ref.kind, ref.name, "--ignore-not-found"]
            if ref.namespace:
                args.extend(["-n", ref.namespace])
            return await self._kubectl(args)

        try:
            obj = await self._get_object(ref)
            if obj is None:
                return CommandResult(success=True, stdout=f"{ref} not found")
            await obj.delete(propagation_policy="Background")
            return CommandResult(success=True, stdout=f"{ref} deleted")
        except kr8s.NotFoundError:
            return CommandResult(success=True, stdout=f"{ref} not found")
        except Exception as e:
            return CommandResult(success=False, stderr=str(e), returncode=1)

    async def exists(self, ref: ResourceRef) -> bool:
        """Check if a resource exists."""
        if ref.kind not in _TYPED_KINDS:
            args = ["get", ref.kind, ref.name]
            if ref.namespace:
                args.extend(["-n", ref.namespace])
            result = await self._kubectl(args)
            return result.success
        try:
            return await self._get_object(ref) is not None
        except Exception:
            return False

    # =========================================================================
    # Status Operations
    # =========================================================================

    async def is_ready(self, ref: ResourceRef) -> bool:
        """Check if a resource has reached its ready condition."""
        if ref.kind not in _TYPED_KINDS:
            return await self.exists(ref)
        try:
            obj = await self._get_object(ref)
        except Exception as e:
            logger.debug(f"Readiness check for {ref} failed: {e}")
            return False
        if obj is None:
            return False
        return is_object_ready(ref.kind, obj.raw)

    async def wait_for_completion(
        self,
        ref: ResourceRef,
        *,
        timeout: float,
    ) -> CommandResult:
        """Poll a Job or Pod until it succeeds, fails, or the timeout elapses."""
        if ref.kind not in ("Job", "Pod"):
            if await self.exists(ref):
                return CommandResult(success=True, stdout=f"{ref} created")
            return CommandResult(success=False, stderr=f"{ref} not found", returncode=1)

        async def _poll() -> str:
            while True:
                obj = await self._get_object(ref)
                if obj is not None:
                    phase = completion_phase(ref.kind, obj.raw)
                    if phase != PodPhase.RUNNING:
                        return phase
                await asyncio.sleep(self.poll_interval)

        try:
            phase = await asyncio.wait_for(_poll(), timeout=timeout)
        except TimeoutError:
            return CommandResult(
                success=False,
                stderr=f"timed out waiting for {ref} to complete",
                returncode=TIMEOUT_RETURNCODE,
            )
        except Exception as e:
            return CommandResult(success=False, stderr=str(e), returncode=1)

        if phase == PodPhase.SUCCEEDED:
            return CommandResult(success=True, stdout=f"{ref} completed")
        return CommandResult(success=False, stderr=f"{ref} failed", returncode=1)
