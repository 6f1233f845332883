"""Kubernetes infrastructure abstraction layer.

This module provides a clean abstraction over the cluster operations the
release service performs, supporting multiple backends (kr8s library,
in-memory).

Example:
    from src.infra.k8s import get_cluster_controller, run_sync

    # Create controller
    controller = get_cluster_controller("kr8s")

    # Use async methods in sync context
    ready = run_sync(controller.is_ready(ref))
"""

from .controller import (
    TIMEOUT_RETURNCODE,
    ClusterController,
    CommandResult,
    PodPhase,
    Resource,
    ResourceRef,
)
from .helpers import get_cluster_controller
from .memory_controller import InMemoryClusterController
from .readiness import WAITABLE_KINDS, completion_phase, is_object_ready
from .utils import run_sync

__all__ = [
    # Controller classes
    "ClusterController",
    "InMemoryClusterController",
    "get_cluster_controller",
    # Data classes
    "CommandResult",
    "PodPhase",
    "Resource",
    "ResourceRef",
    "TIMEOUT_RETURNCODE",
    # Readiness rules
    "WAITABLE_KINDS",
    "completion_phase",
    "is_object_ready",
    # Utilities
    "run_sync",
]
