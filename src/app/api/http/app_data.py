from dataclasses import dataclass

from src.app.core.services.coordinator import LeaseManager
from src.app.core.services.release_service import ReleaseService
from src.app.core.services.storage.base import ReleaseStore
from src.infra.k8s.controller import ClusterController


@dataclass
class ApplicationDependencies:
    release_store: ReleaseStore
    lease_manager: LeaseManager
    cluster_controller: ClusterController
    release_service: ReleaseService
