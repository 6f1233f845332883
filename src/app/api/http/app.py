"""FastAPI application of the release service.

The application is assembled from the active configuration at startup: the
release store, the lease backend and the cluster controller are selected by
their ``backend`` settings and wired into one ReleaseService, which the
routers reach through ``app.state.app_dependencies``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from src.app.api.http.app_data import ApplicationDependencies
from src.app.api.http.errors import register_exception_handlers
from src.app.api.http.routers.health import router as health_router
from src.app.api.http.routers.releases import router as releases_router
from src.app.api.http.routers.releases import version_router
from src.app.core.services.coordinator import OperationCoordinator, get_lease_manager
from src.app.core.services.release_service import ReleaseService
from src.app.core.services.storage import get_release_store
from src.app.runtime.config.config_data import ConfigData
from src.app.runtime.context import get_config
from src.app.runtime.logging import configure_logging
from src.infra.k8s import get_cluster_controller


def build_dependencies(config: ConfigData) -> ApplicationDependencies:
    """Construct every service of the application from ``config``."""
    store = get_release_store(config.storage)
    lease_manager = get_lease_manager(
        config.coordinator,
        redis_url=config.storage.redis_url,
        key_prefix=config.storage.key_prefix,
    )
    cluster = get_cluster_controller(
        config.cluster.backend,
        poll_interval=config.cluster.poll_interval,
        command_timeout=config.cluster.command_timeout,
    )
    service = ReleaseService(
        store,
        OperationCoordinator(lease_manager),
        cluster,
        default_namespace=config.cluster.default_namespace,
        default_timeout=config.release.default_timeout,
        poll_interval=config.cluster.poll_interval,
        page_size=config.release.list_page_size,
        name_max_length=config.release.name_max_length,
        sem_ver=config.app.version,
        git_commit=config.app.git_commit,
        git_tree_state=config.app.git_tree_state,
    )
    return ApplicationDependencies(
        release_store=store,
        lease_manager=lease_manager,
        cluster_controller=cluster,
        release_service=service,
    )


async def startup(app: FastAPI) -> None:
    """Configure logging and attach the application dependencies."""
    config = get_config()
    configure_logging(config.logging)

    app.state.app_dependencies = build_dependencies(config)
    logger.info(
        f"Release service {config.app.version} started "
        f"(environment={config.app.environment}, storage={config.storage.backend}, "
        f"leases={config.coordinator.backend}, cluster={config.cluster.backend})"
    )


async def shutdown(app: FastAPI) -> None:
    """Close connections held by the application dependencies."""
    app_deps: ApplicationDependencies | None = getattr(
        app.state, "app_dependencies", None
    )
    if app_deps is None:
        return

    for component in (app_deps.release_store, app_deps.lease_manager):
        close = getattr(component, "close", None)
        if close is not None:
            await close()
    logger.info("Release service stopped")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await startup(app)
    try:
        yield
    finally:
        await shutdown(app)


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    application = FastAPI(
        title="Release Service",
        description="Install, upgrade, roll back, uninstall and test chart releases.",
        version=get_config().app.version,
        lifespan=lifespan,
    )
    application.include_router(health_router)
    application.include_router(releases_router)
    application.include_router(version_router)
    register_exception_handlers(application)
    return application


app = create_app()
