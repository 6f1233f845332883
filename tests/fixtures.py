"""Shared test fixtures: charts, backends and a wired ReleaseService."""

from __future__ import annotations

import pytest

from src.app.core.models import Chart, ChartMetadata, Info, Release, Status, Template
from src.app.core.services.coordinator import InMemoryLeaseManager, OperationCoordinator
from src.app.core.services.release_service import ReleaseService
from src.app.core.services.storage import InMemoryReleaseStore
from src.app.runtime.config.config_data import (
    AppConfig,
    ClusterConfig,
    ConfigData,
    ReleaseConfig,
)
from src.infra.k8s import InMemoryClusterController

# =============================================================================
# Chart builders
# =============================================================================


def configmap_yaml(name: str, data: dict[str, str] | None = None) -> str:
    lines = [
        "apiVersion: v1",
        "kind: ConfigMap",
        "metadata:",
        f"  name: {name}",
        "data:",
    ]
    for key, value in (data or {"key": "value"}).items():
        lines.append(f"  {key}: \"{value}\"")
    return "\n".join(lines) + "\n"


def deployment_yaml(name: str, image: str = "nginx:1.25") -> str:
    return f"""apiVersion: apps/v1
kind: Deployment
metadata:
  name: {name}
spec:
  replicas: 1
  template:
    spec:
      containers:
        - name: {name}
          image: {image}
"""


def service_yaml(name: str) -> str:
    return f"""apiVersion: v1
kind: Service
metadata:
  name: {name}
spec:
  ports:
    - port: 80
"""


def hook_yaml(
    name: str,
    events: str,
    weight: int = 0,
    delete_policy: str = "",
    kind: str = "Pod",
) -> str:
    policy = (
        f'    "helm.sh/hook-delete-policy": "{delete_policy}"\n' if delete_policy else ""
    )
    return f"""apiVersion: v1
kind: {kind}
metadata:
  name: {name}
  annotations:
    "helm.sh/hook": "{events}"
    "helm.sh/hook-weight": "{weight}"
{policy}spec:
  restartPolicy: Never
  containers:
    - name: {name}
      image: busybox
"""


def make_chart(
    name: str = "web",
    version: str = "1.0.0",
    *templates: tuple[str, str],
) -> Chart:
    """Chart with the given (template path, rendered YAML) pairs."""
    return Chart(
        metadata=ChartMetadata(name=name, version=version),
        templates=[Template(name=path, data=data) for path, data in templates],
    )


def web_chart(version: str = "1.0.0", image: str = "nginx:1.25", *extra: tuple[str, str]) -> Chart:
    """A small web application chart: config map, service and deployment."""
    return make_chart(
        "web",
        version,
        ("templates/configmap.yaml", configmap_yaml("web-config", {"image": image})),
        ("templates/service.yaml", service_yaml("web")),
        ("templates/deployment.yaml", deployment_yaml("web", image)),
        ("templates/NOTES.txt", "Visit http://web\n"),
        *extra,
    )


# =============================================================================
# Backends
# =============================================================================


@pytest.fixture
def cluster() -> InMemoryClusterController:
    return InMemoryClusterController()


@pytest.fixture
def store() -> InMemoryReleaseStore:
    return InMemoryReleaseStore()


@pytest.fixture
def lease_manager() -> InMemoryLeaseManager:
    return InMemoryLeaseManager()


@pytest.fixture
def release_service(
    store: InMemoryReleaseStore,
    lease_manager: InMemoryLeaseManager,
    cluster: InMemoryClusterController,
) -> ReleaseService:
    """ReleaseService over in-memory backends with fast polling."""
    return ReleaseService(
        store,
        OperationCoordinator(lease_manager),
        cluster,
        default_timeout=5.0,
        poll_interval=0.01,
        sem_ver="1.2.3",
        git_commit="abc123",
        git_tree_state="clean",
    )


@pytest.fixture
def chart_a() -> Chart:
    return web_chart("1.0.0", "nginx:1.25")


@pytest.fixture
def chart_b() -> Chart:
    return web_chart("1.1.0", "nginx:1.26")


@pytest.fixture
def test_config() -> ConfigData:
    """Configuration using in-memory backends only."""
    return ConfigData(
        app=AppConfig(environment="test", version="1.2.3"),
        cluster=ClusterConfig(backend="memory", poll_interval=0.01),
        release=ReleaseConfig(default_timeout=5),
    )


def stored_release(
    name: str, version: int, status: Status, chart: Chart | None = None, **info: object
) -> Release:
    """A revision as it would sit in the store."""
    return Release(
        name=name,
        version=version,
        chart=chart or make_chart(name),
        info=Info(status=status, **info),
    )
