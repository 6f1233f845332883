"""Release lifecycle orchestration.

ReleaseService is the entry point for every release operation. Mutating
operations (install, upgrade, rollback, uninstall, test) run under the
per-release lease and follow the same outline:

    1. Admit the operation against the latest revision (state tables)
    2. Record the new revision with a PENDING_* status
    3. Run pre-phase hooks, apply the manifest diff, run post-phase hooks
    4. Record the revision as DEPLOYED / UNINSTALLED, or FAILED on any error

Dry runs perform step 1 and compute the plan, without taking the lease,
writing the store or calling the cluster. Read-only operations go straight
to the store.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from loguru import logger

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
    ResourceChange,
    RollbackReleaseRequest,
    RollbackReleaseResponse,
    TestReleaseRequest,
    TestReleaseResponse,
    UninstallReleaseRequest,
    UninstallReleaseResponse,
    UpdateReleaseRequest,
    UpdateReleaseResponse,
)
from src.app.core.errors import (
    InvalidArgumentError,
    InvalidStateError,
    ReleaseAlreadyExistsError,
    ReleaseError,
    ReleaseNotFoundError,
)
from src.app.core.models import (
    HookEvent,
    Info,
    Release,
    Status,
    TestRunStatus,
    TestSuite,
    utcnow,
)
from src.app.core.release import state
from src.app.core.release.apply import ApplyEngine, ApplyPlan, compute_plan
from src.app.core.release.deadline import Deadline
from src.app.core.release.hooks import HookExecutor
from src.app.core.release.manifests import load_manifest, parse_chart, render_manifest
from src.app.core.release.naming import (
    GENERATE_ATTEMPTS,
    MAX_NAME_LENGTH,
    generate_name,
    validate_name,
)
from src.app.core.release.state import Operation, Transition
from src.app.core.release.testing import TestRunner
from src.app.core.release.values import resolve_upgrade_values
from src.app.core.services.coordinator import OperationCoordinator
from src.app.core.services.query_service import DEFAULT_PAGE_SIZE, ReleaseQueryService
from src.app.core.services.storage import ReleaseStore
from src.infra.k8s import ClusterController, Resource

DRY_RUN_DESCRIPTION = "Dry run complete"

# Hook phases bracketing each mutating operation
_PHASES: dict[Operation, tuple[HookEvent, HookEvent]] = {
    Operation.INSTALL: (HookEvent.PRE_INSTALL, HookEvent.POST_INSTALL),
    Operation.UPGRADE: (HookEvent.PRE_UPGRADE, HookEvent.POST_UPGRADE),
    Operation.ROLLBACK: (HookEvent.PRE_ROLLBACK, HookEvent.POST_ROLLBACK),
    Operation.UNINSTALL: (HookEvent.PRE_DELETE, HookEvent.POST_DELETE),
}


def _changes(resources: list[Resource]) -> list[ResourceChange]:
    return [ResourceChange(kind=r.kind, name=r.name, namespace=r.namespace) for r in resources]


class ReleaseService:
    """Installs, upgrades, rolls back, uninstalls, tests and queries releases.

    Example:
        ```python
        service = ReleaseService(
            store=InMemoryReleaseStore(),
            coordinator=OperationCoordinator(InMemoryLeaseManager()),
            cluster=get_cluster_controller("memory"),
        )
        response = await service.install_release(
            InstallReleaseRequest(name="web", chart=chart)
        )
        ```
    """

    def __init__(
        self,
        store: ReleaseStore,
        coordinator: OperationCoordinator,
        cluster: ClusterController,
        *,
        default_namespace: str = "default",
        default_timeout: float = 300.0,
        poll_interval: float = 2.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        name_max_length: int = MAX_NAME_LENGTH,
        sem_ver: str = "0.0.0",
        git_commit: str = "",
        git_tree_state: str = "",
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.cluster = cluster
        self.hooks = HookExecutor(cluster)
        self.engine = ApplyEngine(cluster, poll_interval=poll_interval)
        self.tests = TestRunner(self.hooks)
        self.queries = ReleaseQueryService(store, page_size=page_size)
        self.default_namespace = default_namespace
        self.default_timeout = default_timeout
        self.name_max_length = name_max_length
        self._version = GetVersionResponse(
            sem_ver=sem_ver, git_commit=git_commit, git_tree_state=git_tree_state
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _timeout(self, timeout: int) -> float:
        return float(timeout) if timeout > 0 else self.default_timeout

    def _deadline(self, timeout: int) -> Deadline:
        return Deadline(self._timeout(timeout))

    async def _latest_or_none(self, name: str) -> Release | None:
        try:
            return await self.store.latest(name)
        except ReleaseNotFoundError:
            return None

    async def _baseline(self, name: str) -> tuple[str, list[str]]:
        """What the cluster holds for a release before the next apply.

        Returns the manifest of the newest revision that was applied in full
        ("" if the release was uninstalled or never deployed) and the
        manifests of the failed or interrupted revisions after it, newest
        first.
        """
        unsettled: list[str] = []
        for revision in reversed(await self.store.history(name)):
            if revision.status in (Status.DEPLOYED, Status.SUPERSEDED):
                return revision.manifest, unsettled
            if revision.status == Status.UNINSTALLED:
                return "", unsettled
            unsettled.append(revision.manifest)
        return "", unsettled

    async def _resolve_name(self, requested: str) -> str:
        if requested:
            validate_name(requested, self.name_max_length)
            return requested
        for _ in range(GENERATE_ATTEMPTS):
            candidate = generate_name()
            if not await self.store.history(candidate):
                return candidate
        raise InvalidArgumentError(
            f"no unused release name found after {GENERATE_ATTEMPTS} attempts"
        )

    def _operation_plan(
        self,
        plan: ApplyPlan,
        release: Release,
        phases: list[HookEvent],
    ) -> OperationPlan:
        return OperationPlan(
            creates=_changes(plan.creates),
            updates=_changes(plan.updates),
            deletes=_changes(plan.deletes),
            hooks={phase.value: self.hooks.plan(release, phase) for phase in phases},
        )

    @staticmethod
    def _hook_phases(operation: Operation, disable_hooks: bool) -> list[HookEvent]:
        return [] if disable_hooks else list(_PHASES[operation])

    @staticmethod
    def _dry_run(release: Release) -> Release:
        release.info.status = Status.UNKNOWN
        release.info.description = DRY_RUN_DESCRIPTION
        return release

    async def _record_failure(self, release: Release, operation: Operation, error: BaseException) -> None:
        """Mark a revision FAILED after its operation raised."""
        message = error.message if isinstance(error, ReleaseError) else str(error) or type(error).__name__
        release.info.status = state.complete(release.status, succeeded=False)
        release.info.description = f"{operation.value.capitalize()} failed: {message}"
        try:
            await self.store.update(release)
        except Exception as e:
            logger.error(f"Failed to record {release.key} as FAILED: {e}")
        if isinstance(error, ReleaseError):
            error.release = release
        logger.error(f"{operation.value.capitalize()} of {release.key} failed: {message}")

    async def _begin(self, release: Release, latest: Release | None, transition: Transition) -> None:
        """Persist the start of an operation that creates a new revision."""
        if latest is not None and transition.previous is not None:
            latest.info.status = transition.previous
            await self.store.update(latest)
        await self.store.put(release)

    async def _perform(
        self,
        operation: Operation,
        release: Release,
        plan: ApplyPlan,
        deadline: Deadline,
        *,
        disable_hooks: bool,
        recreate: bool = False,
        force: bool = False,
        cleanup_on_fail: bool = False,
        wait: bool = False,
        description: str,
    ) -> Release:
        """Hooks and apply for a revision that was recorded as pending."""
        pre, post = _PHASES[operation]
        try:
            await self.hooks.execute(release, pre, deadline, disable_hooks)
            await self.engine.apply(
                plan,
                deadline=deadline,
                recreate=recreate,
                force=force,
                cleanup_on_fail=cleanup_on_fail,
                wait=wait,
            )
            await self.hooks.execute(release, post, deadline, disable_hooks)
        except (Exception, asyncio.CancelledError) as e:
            await self._record_failure(release, operation, e)
            raise

        release.info.status = state.complete(release.status, succeeded=True)
        release.info.description = description
        release.info.last_deployed = utcnow()
        await self.store.update(release)
        return release

    # =========================================================================
    # Install
    # =========================================================================

    async def install_release(self, request: InstallReleaseRequest) -> InstallReleaseResponse:
        """Install a chart as a new release, or as a new revision of a reused name.

        Raises:
            ReleaseAlreadyExistsError: If the name is in use and may not be reused
            ReleaseBusyError: If another operation holds the release
            InvalidArgumentError: If the name or the chart is malformed
        """
        name = await self._resolve_name(request.name)
        namespace = request.namespace or self.default_namespace

        if request.dry_run:
            _, release, plan, _ = await self._prepare_install(name, namespace, request)
            logger.info(f"Dry run install of {release.key}")
            return InstallReleaseResponse(
                release=self._dry_run(release),
                plan=self._install_plan(plan, release, request),
            )

        async with self.coordinator.lease(name):
            latest, release, plan, transition = await self._prepare_install(name, namespace, request)
            logger.info(f"Installing {release.key} in namespace {namespace}")
            deadline = self._deadline(request.timeout)
            await self._begin(release, latest, transition)

            if not request.disable_crd_hook:
                try:
                    await self.hooks.execute(release, HookEvent.CRD_INSTALL, deadline)
                except (Exception, asyncio.CancelledError) as e:
                    await self._record_failure(release, Operation.INSTALL, e)
                    raise

            release = await self._perform(
                Operation.INSTALL,
                release,
                plan,
                deadline,
                disable_hooks=request.disable_hooks,
                wait=request.wait,
                description=request.description or "Install complete",
            )
            logger.info(f"Installed {release.key}")
            return InstallReleaseResponse(
                release=release,
                plan=self._install_plan(plan, release, request),
            )

    async def _prepare_install(
        self, name: str, namespace: str, request: InstallReleaseRequest
    ) -> tuple[Release | None, Release, ApplyPlan, Transition]:
        latest = await self._latest_or_none(name)
        if latest is not None:
            if not request.reuse_name:
                raise ReleaseAlreadyExistsError(
                    f"cannot re-use a name that is still in use: {name}"
                )
            if latest.status not in (Status.UNINSTALLED, Status.FAILED):
                raise ReleaseAlreadyExistsError(
                    f"release {name} is {latest.status.value}; only uninstalled or failed releases can be reused"
                )
        transition = state.begin(latest.status if latest else None, Operation.INSTALL)

        parsed = parse_chart(request.chart, namespace)
        manifest = render_manifest(parsed.resources)
        now = utcnow()
        release = Release(
            name=name,
            namespace=namespace,
            version=latest.version + 1 if latest else 1,
            chart=request.chart,
            config=request.values,
            manifest=manifest,
            info=Info(
                status=transition.status,
                description="Initial install underway",
                first_deployed=now,
                last_deployed=now,
                notes=parsed.notes,
            ),
            hooks=parsed.hooks,
        )
        applied, unsettled = await self._baseline(name) if latest else ("", [])
        plan = compute_plan(applied, manifest, namespace, unsettled)
        return latest, release, plan, transition

    def _install_plan(
        self, plan: ApplyPlan, release: Release, request: InstallReleaseRequest
    ) -> OperationPlan:
        phases = [] if request.disable_crd_hook else [HookEvent.CRD_INSTALL]
        phases += self._hook_phases(Operation.INSTALL, request.disable_hooks)
        return self._operation_plan(plan, release, phases)

    # =========================================================================
    # Upgrade
    # =========================================================================

    async def update_release(self, request: UpdateReleaseRequest) -> UpdateReleaseResponse:
        """Upgrade a release to a new chart and/or values.

        Raises:
            ReleaseNotFoundError: If the release does not exist
            InvalidStateError: If the latest revision cannot be upgraded
            ReleaseBusyError: If another operation holds the release
        """
        phases = self._hook_phases(Operation.UPGRADE, request.disable_hooks)

        if request.dry_run:
            latest, release, plan, _ = await self._prepare_upgrade(request)
            logger.info(f"Dry run upgrade of {release.key}")
            return UpdateReleaseResponse(
                release=self._dry_run(release),
                plan=self._operation_plan(plan, release, phases),
            )

        async with self.coordinator.lease(request.name):
            latest, release, plan, transition = await self._prepare_upgrade(request)
            logger.info(f"Upgrading {latest.key} to version {release.version}")
            deadline = self._deadline(request.timeout)
            await self._begin(release, latest, transition)
            release = await self._perform(
                Operation.UPGRADE,
                release,
                plan,
                deadline,
                disable_hooks=request.disable_hooks,
                recreate=request.recreate,
                force=request.force,
                cleanup_on_fail=request.cleanup_on_fail,
                wait=request.wait,
                description=request.description or "Upgrade complete",
            )
            logger.info(f"Upgraded {release.key}")
            return UpdateReleaseResponse(
                release=release,
                plan=self._operation_plan(plan, release, phases),
            )

    async def _prepare_upgrade(
        self, request: UpdateReleaseRequest
    ) -> tuple[Release, Release, ApplyPlan, Transition]:
        latest = await self.store.latest(request.name)
        transition = state.begin(latest.status, Operation.UPGRADE)

        config = resolve_upgrade_values(
            request.values,
            latest.config,
            reset_values=request.reset_values,
            reuse_values=request.reuse_values,
        )
        parsed = parse_chart(request.chart, latest.namespace)
        manifest = render_manifest(parsed.resources)
        release = Release(
            name=latest.name,
            namespace=latest.namespace,
            version=latest.version + 1,
            chart=request.chart,
            config=config,
            manifest=manifest,
            info=Info(
                status=transition.status,
                description="Preparing upgrade",
                first_deployed=latest.info.first_deployed,
                last_deployed=utcnow(),
                notes=parsed.notes,
            ),
            hooks=parsed.hooks,
        )
        applied, unsettled = await self._baseline(latest.name)
        plan = compute_plan(applied, manifest, latest.namespace, unsettled)
        return latest, release, plan, transition

    # =========================================================================
    # Rollback
    # =========================================================================

    async def rollback_release(self, request: RollbackReleaseRequest) -> RollbackReleaseResponse:
        """Roll a release back to the content of an earlier revision.

        The target's chart, values, manifest and hooks are copied into a new
        revision.

        Raises:
            ReleaseNotFoundError: If the release or the target version does not exist
            InvalidStateError: If the target is the current version, is not a
                terminal revision, or there is no previous version
            ReleaseBusyError: If another operation holds the release
        """
        phases = self._hook_phases(Operation.ROLLBACK, request.disable_hooks)

        if request.dry_run:
            _, release, plan, _ = await self._prepare_rollback(request)
            logger.info(f"Dry run rollback of {release.key}")
            return RollbackReleaseResponse(
                release=self._dry_run(release),
                plan=self._operation_plan(plan, release, phases),
            )

        async with self.coordinator.lease(request.name):
            latest, release, plan, transition = await self._prepare_rollback(request)
            logger.info(f"Rolling back {latest.key}: {release.info.description}")
            deadline = self._deadline(request.timeout)
            await self._begin(release, latest, transition)
            release = await self._perform(
                Operation.ROLLBACK,
                release,
                plan,
                deadline,
                disable_hooks=request.disable_hooks,
                recreate=request.recreate,
                force=request.force,
                cleanup_on_fail=request.cleanup_on_fail,
                wait=request.wait,
                description=request.description or release.info.description,
            )
            logger.info(f"Rolled back {release.key}")
            return RollbackReleaseResponse(
                release=release,
                plan=self._operation_plan(plan, release, phases),
            )

    async def _prepare_rollback(
        self, request: RollbackReleaseRequest
    ) -> tuple[Release, Release, ApplyPlan, Transition]:
        latest = await self.store.latest(request.name)
        transition = state.begin(latest.status, Operation.ROLLBACK)

        target_version = request.version or latest.version - 1
        if target_version < 1:
            raise InvalidStateError(f"release {request.name} has no previous version to roll back to")
        target = await self.store.get(request.name, target_version)
        state.check_rollback_target(target.status, target_version, latest.version)

        hooks = [h.model_copy(update={"last_run": None}) for h in target.hooks]
        release = Release(
            name=latest.name,
            namespace=latest.namespace,
            version=latest.version + 1,
            chart=target.chart,
            config=target.config,
            manifest=target.manifest,
            info=Info(
                status=transition.status,
                description=f"Rollback to {target_version}",
                first_deployed=latest.info.first_deployed,
                last_deployed=utcnow(),
                notes=target.info.notes,
            ),
            hooks=hooks,
        )
        applied, unsettled = await self._baseline(latest.name)
        plan = compute_plan(applied, release.manifest, release.namespace, unsettled)
        return latest, release, plan, transition

    # =========================================================================
    # Uninstall
    # =========================================================================

    async def uninstall_release(self, request: UninstallReleaseRequest) -> UninstallReleaseResponse:
        """Uninstall a release, optionally purging its history.

        Raises:
            ReleaseNotFoundError: If the release does not exist
            InvalidStateError: If the release is already uninstalled and purge
                is not set, or is in a pending state
            ReleaseBusyError: If another operation holds the release
        """
        async with self.coordinator.lease(request.name):
            release = await self.store.latest(request.name)

            if release.status == Status.UNINSTALLED:
                if not request.purge:
                    raise InvalidStateError(f"release {request.name} is already uninstalled")
                await self.store.delete(request.name)
                logger.info(f"Purged history of uninstalled release {request.name}")
                return UninstallReleaseResponse(release=release)

            transition = state.begin(release.status, Operation.UNINSTALL)
            logger.info(f"Uninstalling {release.key}")
            applied, unsettled = await self._baseline(release.name)
            # Everything a failed revision or the one before it may have left behind
            manifest = "\n".join(m for m in [*unsettled, applied] if m.strip())
            deadline = self._deadline(request.timeout)
            release.info.status = transition.status
            release.info.description = "Deletion in progress"
            release.info.deleted = utcnow()
            await self.store.update(release)

            pre, post = _PHASES[Operation.UNINSTALL]
            try:
                await self.hooks.execute(release, pre, deadline, request.disable_hooks)
                errors = await self.engine.delete_all(manifest, release.namespace, deadline)
                await self.hooks.execute(release, post, deadline, request.disable_hooks)
            except (Exception, asyncio.CancelledError) as e:
                await self._record_failure(release, Operation.UNINSTALL, e)
                raise

            release.info.status = state.complete(release.status, succeeded=True)
            release.info.description = request.description or "Deletion complete"
            await self.store.update(release)
            if request.purge:
                await self.store.delete(request.name)
                logger.info(f"Purged history of release {request.name}")

            logger.info(f"Uninstalled {release.key}")
            plan = OperationPlan(
                deletes=_changes(
                    list({r.ref: r for r in load_manifest(manifest, release.namespace)}.values())
                ),
                hooks={
                    phase.value: self.hooks.plan(release, phase)
                    for phase in self._hook_phases(Operation.UNINSTALL, request.disable_hooks)
                },
            )
            return UninstallReleaseResponse(release=release, info="\n".join(errors), plan=plan)

    # =========================================================================
    # Test
    # =========================================================================

    async def run_release_test(self, request: TestReleaseRequest) -> AsyncIterator[TestReleaseResponse]:
        """Run the tests of a deployed release, streaming progress and results.

        The suite result is recorded on the tested revision; the release
        status itself does not change.

        Raises:
            ReleaseNotFoundError: If the release does not exist
            InvalidStateError: If the latest revision is not DEPLOYED
            ReleaseBusyError: If another operation holds the release
        """
        async with self.coordinator.lease(request.name):
            release = await self.store.latest(request.name)
            release.info.test_status = state.begin_test(release.status)
            await self.store.update(release)
            logger.info(f"Testing {release.key}")

            suite = TestSuite()
            succeeded = False
            try:
                async for message in self.tests.run(
                    release,
                    suite,
                    timeout=self._timeout(request.timeout),
                    cleanup=request.cleanup,
                    parallel=request.parallel,
                ):
                    yield message
                succeeded = all(r.status == TestRunStatus.SUCCESS for r in suite.results)
            finally:
                release.info.test_status = state.complete_test(succeeded)
                release.info.last_test_suite_run = suite
                await self.store.update(release)
                logger.info(f"Tests of {release.key} finished: {release.info.test_status.value}")

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_releases(self, request: ListReleasesRequest) -> AsyncIterator[ListReleasesResponse]:
        """Stream one page of releases."""
        yield await self.queries.list_releases(request)

    async def get_release_status(self, request: GetReleaseStatusRequest) -> GetReleaseStatusResponse:
        release = await self.queries.get(request.name, request.version)
        return GetReleaseStatusResponse(
            name=release.name, namespace=release.namespace, info=release.info
        )

    async def get_release_content(self, request: GetReleaseContentRequest) -> GetReleaseContentResponse:
        release = await self.queries.get(request.name, request.version)
        return GetReleaseContentResponse(release=release)

    async def get_history(self, request: GetHistoryRequest) -> GetHistoryResponse:
        return GetHistoryResponse(releases=await self.queries.history(request.name, request.max))

    def get_version(self) -> GetVersionResponse:
        return self._version
