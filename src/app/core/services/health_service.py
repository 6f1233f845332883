"""Dependency checks behind the readiness probe.

HealthCheckService checks the release store, the lease backend and the
cluster API, and decides whether the service as a whole is ready.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from src.app.api.http.schemas.health import (
    AllServicesHealth,
    ClusterHealth,
    LeaseManagerHealth,
    OverallStatus,
    ReadinessResponse,
    ServiceStatus,
    StoreHealth,
)

if TYPE_CHECKING:
    from src.app.api.http.app_data import ApplicationDependencies
    from src.app.runtime.config.config_data import ConfigData


def _status(healthy: bool) -> ServiceStatus:
    return ServiceStatus.HEALTHY if healthy else ServiceStatus.UNHEALTHY


class HealthCheckService:
    """Checks the dependencies of a running release service.

    Example:
        ```python
        result = await HealthCheckService(app_deps, config).check_all()
        if result.status == OverallStatus.READY:
            ...
        ```
    """

    def __init__(self, app_deps: ApplicationDependencies, config: ConfigData) -> None:
        self._app_deps = app_deps
        self._config = config

    async def check_all(self) -> ReadinessResponse:
        """Run every check and combine them into a readiness verdict."""
        checks = AllServicesHealth(
            store=await self.check_store(),
            lease_manager=await self.check_lease_manager(),
            cluster=await self.check_cluster(),
        )
        ready = self._is_ready(checks)
        if not ready:
            logger.warning(
                f"Not ready: store={checks.store.status}, "
                f"leases={checks.lease_manager.status}, cluster={checks.cluster.status}"
            )
        return ReadinessResponse(
            status=OverallStatus.READY if ready else OverallStatus.NOT_READY,
            environment=self._config.app.environment,
            checks=checks,
        )

    async def check_store(self) -> StoreHealth:
        """Ping the store, or ask the in-memory store whether it is usable."""
        backend = self._config.storage.backend
        store = self._app_deps.release_store
        try:
            ping = getattr(store, "ping", None)
            healthy = await ping() if ping is not None else store.is_available()
        except Exception as e:
            return StoreHealth(status=ServiceStatus.UNHEALTHY, type=backend, error=str(e))
        return StoreHealth(status=_status(healthy), type=backend)

    async def check_lease_manager(self) -> LeaseManagerHealth:
        backend = self._config.coordinator.backend
        try:
            healthy = await self._app_deps.lease_manager.health_check()
        except Exception as e:
            return LeaseManagerHealth(status=ServiceStatus.UNHEALTHY, type=backend, error=str(e))
        return LeaseManagerHealth(status=_status(healthy), type=backend)

    async def check_cluster(self) -> ClusterHealth:
        """Check the API server and report the active kubeconfig context."""
        backend = self._config.cluster.backend
        controller = self._app_deps.cluster_controller
        try:
            healthy = await controller.health_check()
            context = await controller.get_current_context()
        except Exception as e:
            return ClusterHealth(status=ServiceStatus.UNHEALTHY, backend=backend, error=str(e))
        return ClusterHealth(status=_status(healthy), backend=backend, context=context)

    def _is_ready(self, checks: AllServicesHealth) -> bool:
        # Without a cluster, reads still work; only production requires it
        if checks.store.status == ServiceStatus.UNHEALTHY:
            return False
        if checks.lease_manager.status == ServiceStatus.UNHEALTHY:
            return False
        return not (
            checks.cluster.status == ServiceStatus.UNHEALTHY
            and self._config.app.environment == "production"
        )
