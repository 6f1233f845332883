"""Lifecycle hook execution.

Hooks are manifests a chart marks with ``helm.sh/hook``. They run around the
main apply step of an operation (pre-install, post-upgrade, ...), one at a
time, ordered by weight, and each must complete before the next starts.
"""

from __future__ import annotations

from loguru import logger

from src.app.core.errors import HookFailureError, OperationTimeoutError
from src.app.core.models import Hook, HookDeletePolicy, HookEvent, Release, utcnow
from src.app.core.release.apply import CLEANUP_TIMEOUT, cluster_call
from src.app.core.release.deadline import Deadline
from src.app.core.release.manifests import hook_resource
from src.infra.k8s import TIMEOUT_RETURNCODE, ClusterController, CommandResult

# Seconds a completion wait may overrun the deadline before it is abandoned
COMPLETION_GRACE = 5.0


def select_hooks(hooks: list[Hook], phase: HookEvent) -> list[Hook]:
    """Hooks bound to ``phase``, by ascending weight then declaration order."""
    return sorted((h for h in hooks if phase in h.events), key=lambda h: h.weight)


class HookExecutor:
    """Runs the hooks of a release for one lifecycle phase."""

    def __init__(self, cluster: ClusterController) -> None:
        self.cluster = cluster

    def plan(self, release: Release, phase: HookEvent) -> list[str]:
        """Names of the hooks ``execute`` would run, in order."""
        return [h.name for h in select_hooks(release.hooks, phase)]

    async def run_hook(self, hook: Hook, namespace: str, deadline: Deadline) -> CommandResult:
        """Create a hook resource and wait for it to complete.

        Honors the before-hook-creation delete policy. Other delete policies
        are left to the caller.

        Args:
            hook: Hook to run
            namespace: Release namespace
            deadline: Bounds every cluster call made for the hook

        Returns:
            CommandResult of the creation or of the completion wait

        Raises:
            OperationTimeoutError: If the deadline passed before the
                controller reported its own timeout
        """
        resource = hook_resource(hook, namespace)

        if HookDeletePolicy.BEFORE_HOOK_CREATION in hook.delete_policies:
            result = await cluster_call(
                self.cluster.delete(resource.ref), deadline, f"delete of hook {hook.name}"
            )
            if not result.success:
                return result

        result = await cluster_call(
            self.cluster.create(resource), deadline, f"creation of hook {hook.name}"
        )
        if not result.success:
            return result

        # The controller times the wait out itself; the grace catches one that does not
        remaining = deadline.remaining()
        result = await cluster_call(
            self.cluster.wait_for_completion(resource.ref, timeout=remaining),
            Deadline(remaining + COMPLETION_GRACE),
            f"completion of hook {hook.name}",
        )
        hook.last_run = utcnow()
        return result

    async def delete_hook(self, hook: Hook, namespace: str) -> None:
        """Best effort removal of a hook resource."""
        ref = hook_resource(hook, namespace).ref
        try:
            result = await cluster_call(
                self.cluster.delete(ref), Deadline(CLEANUP_TIMEOUT), f"delete of hook {hook.name}"
            )
        except OperationTimeoutError as e:
            logger.warning(f"Failed to delete hook {ref}: {e.message}")
            return
        if not result.success:
            logger.warning(f"Failed to delete hook {ref}: {result.stderr}")

    async def execute(
        self,
        release: Release,
        phase: HookEvent,
        deadline: Deadline,
        disable_hooks: bool = False,
    ) -> list[str]:
        """Run every hook of ``release`` bound to ``phase``.

        Args:
            release: Revision whose hooks run; ``last_run`` is recorded on it
            phase: Lifecycle phase
            deadline: Time budget shared with the rest of the operation
            disable_hooks: Skip hook execution entirely

        Returns:
            Names of the hooks that ran

        Raises:
            HookFailureError: If a hook failed; remaining hooks are skipped
            OperationTimeoutError: If the deadline passed while a hook ran
        """
        if disable_hooks:
            logger.debug(f"Hooks disabled, skipping {phase.value} for {release.key}")
            return []

        executed = []
        for hook in select_hooks(release.hooks, phase):
            if deadline.expired():
                raise OperationTimeoutError(
                    f"timed out before {phase.value} hook {hook.name}"
                )

            logger.debug(f"Running {phase.value} hook {hook.name} for {release.key}")
            result = await self.run_hook(hook, release.namespace, deadline)

            if not result.success:
                if HookDeletePolicy.HOOK_FAILED in hook.delete_policies:
                    await self.delete_hook(hook, release.namespace)
                if result.returncode == TIMEOUT_RETURNCODE:
                    raise OperationTimeoutError(
                        f"{phase.value} hook {hook.name} timed out",
                        details=result.stderr or None,
                    )
                raise HookFailureError(
                    f"{phase.value} hook {hook.name} failed",
                    details=result.stderr or None,
                    hook=hook.name,
                )

            if HookDeletePolicy.HOOK_SUCCEEDED in hook.delete_policies:
                await self.delete_hook(hook, release.namespace)
            executed.append(hook.name)

        if executed:
            logger.info(f"Ran {len(executed)} {phase.value} hooks for {release.key}")
        return executed
