"""Readiness and completion rules for Kubernetes objects.

These functions work on the raw object dictionaries returned by the API
server, so every controller backend evaluates readiness the same way.
"""

from __future__ import annotations

from typing import Any

from .controller import PodPhase

# Kinds polled when an operation waits for the release to become ready
WAITABLE_KINDS: frozenset[str] = frozenset(
    {
        "Pod",
        "Deployment",
        "StatefulSet",
        "DaemonSet",
        "ReplicaSet",
        "Job",
        "PersistentVolumeClaim",
        "Service",
    }
)


def _condition_true(status: dict[str, Any], condition_type: str) -> bool:
    for condition in status.get("conditions", []) or []:
        if condition.get("type") == condition_type:
            return condition.get("status") == "True"
    return False


def is_object_ready(kind: str, obj: dict[str, Any]) -> bool:
    """Evaluate the ready condition of a Kubernetes object.

    Args:
        kind: Object kind
        obj: Raw object as returned by the API server

    Returns:
        True if the object is ready
    """
    spec = obj.get("spec", {}) or {}
    status = obj.get("status", {}) or {}

    if kind == "Pod":
        return _condition_true(status, "Ready") or (
            status.get("phase") == PodPhase.SUCCEEDED
        )

    if kind in ("Deployment", "StatefulSet", "ReplicaSet"):
        desired = spec.get("replicas", 1)
        if desired == 0:
            return True
        return status.get("readyReplicas", 0) >= desired

    if kind == "DaemonSet":
        desired = status.get("desiredNumberScheduled", 0)
        return status.get("numberReady", 0) >= desired

    if kind == "PersistentVolumeClaim":
        return status.get("phase") == "Bound"

    if kind == "Job":
        return completion_phase(kind, obj) == PodPhase.SUCCEEDED

    if kind == "Service":
        service_type = spec.get("type", "ClusterIP")
        if service_type == "ExternalName":
            return True
        if not spec.get("clusterIP"):
            return False
        if service_type == "LoadBalancer":
            return bool(status.get("loadBalancer", {}).get("ingress"))
        return True

    return True


def completion_phase(kind: str, obj: dict[str, Any]) -> str:
    """Map a Job or Pod onto a pod phase describing its completion.

    Args:
        kind: Object kind
        obj: Raw object as returned by the API server

    Returns:
        SUCCEEDED, FAILED, or RUNNING while still in progress
    """
    status = obj.get("status", {}) or {}

    if kind == "Job":
        if status.get("succeeded", 0) > 0 or _condition_true(status, "Complete"):
            return PodPhase.SUCCEEDED
        if _condition_true(status, "Failed"):
            return PodPhase.FAILED
        return PodPhase.RUNNING

    if kind == "Pod":
        phase = status.get("phase", PodPhase.UNKNOWN)
        if phase in (PodPhase.SUCCEEDED, PodPhase.FAILED):
            return phase
        return PodPhase.RUNNING

    return PodPhase.SUCCEEDED
