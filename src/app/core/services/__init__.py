"""Core services exports."""

# Release Store
from src.app.core.services.storage import (
    InMemoryReleaseStore,
    RedisReleaseStore,
    ReleaseStore,
    get_release_store,
)

# Operation Coordinator
from .coordinator import (
    InMemoryLeaseManager,
    LeaseManager,
    OperationCoordinator,
    RedisLeaseManager,
    get_lease_manager,
)

# Health
from .health_service import HealthCheckService

# Queries
from .query_service import ReleaseQueryService

# Orchestrator
from .release_service import ReleaseService

__all__ = [
    # Release Store
    "ReleaseStore",
    "InMemoryReleaseStore",
    "RedisReleaseStore",
    "get_release_store",
    # Operation Coordinator
    "LeaseManager",
    "InMemoryLeaseManager",
    "RedisLeaseManager",
    "OperationCoordinator",
    "get_lease_manager",
    # Health
    "HealthCheckService",
    # Queries
    "ReleaseQueryService",
    # Orchestrator
    "ReleaseService",
]
