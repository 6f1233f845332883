from __future__ import annotations

from src.infra.k8s.controller import ClusterController


def get_cluster_controller(
    backend: str = "kr8s", poll_interval: float = 2.0, command_timeout: float = 60.0
) -> ClusterController:
    """Get a ClusterController for the configured backend.

    Args:
        backend: "kr8s" for a real cluster, "memory" for the in-memory stand-in
        poll_interval: Seconds between status polls while waiting
        command_timeout: Seconds one kubectl invocation may run

    Returns:
        An instance of ClusterController
    """
    if backend == "memory":
        from src.infra.k8s.memory_controller import InMemoryClusterController

        return InMemoryClusterController()

    if backend == "kr8s":
        from src.infra.k8s.kr8s_controller import Kr8sController

        return Kr8sController(poll_interval=poll_interval, command_timeout=command_timeout)

    raise ValueError(f"Unknown cluster backend: {backend}")
