"""Splitting rendered chart templates into resources, hooks and notes.

Templates arrive already rendered. Each one may hold several YAML documents;
documents annotated with ``helm.sh/hook`` are lifecycle hooks, everything else
is part of the release manifest.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any

import yaml  # type: ignore[import-untyped]
from loguru import logger

from src.app.core.errors import InvalidArgumentError
from src.app.core.models import Chart, Hook, HookDeletePolicy, HookEvent
from src.infra.k8s import Resource

HOOK_ANNOTATION = "helm.sh/hook"
HOOK_WEIGHT_ANNOTATION = "helm.sh/hook-weight"
HOOK_DELETE_POLICY_ANNOTATION = "helm.sh/hook-delete-policy"

NOTES_TEMPLATE = "NOTES.txt"

# Kinds are created in this order and deleted in reverse; unknown kinds go last
INSTALL_ORDER: list[str] = [
    "Namespace",
    "NetworkPolicy",
    "ResourceQuota",
    "LimitRange",
    "PodSecurityPolicy",
    "PodDisruptionBudget",
    "ServiceAccount",
    "Secret",
    "ConfigMap",
    "StorageClass",
    "PersistentVolume",
    "PersistentVolumeClaim",
    "CustomResourceDefinition",
    "ClusterRole",
    "ClusterRoleBinding",
    "Role",
    "RoleBinding",
    "Service",
    "DaemonSet",
    "Pod",
    "ReplicationController",
    "ReplicaSet",
    "Deployment",
    "HorizontalPodAutoscaler",
    "StatefulSet",
    "Job",
    "CronJob",
    "Ingress",
    "APIService",
]

_INSTALL_RANK = {kind: i for i, kind in enumerate(INSTALL_ORDER)}


@dataclass
class ParsedChart:
    """A chart split into what gets applied and what runs around it."""

    resources: list[Resource] = field(default_factory=list)
    hooks: list[Hook] = field(default_factory=list)
    notes: str = ""


def install_rank(resource: Resource) -> tuple[int, str]:
    """Sort key placing a resource in install order."""
    return (_INSTALL_RANK.get(resource.kind, len(INSTALL_ORDER)), resource.name)


def install_order(resources: list[Resource]) -> list[Resource]:
    """Sort resources for creation, by kind and then by name."""
    return sorted(resources, key=install_rank)


def uninstall_order(resources: list[Resource]) -> list[Resource]:
    """Sort resources for deletion: unknown kinds first, then reverse install order."""
    return sorted(
        resources,
        key=lambda r: (-_INSTALL_RANK.get(r.kind, len(INSTALL_ORDER)), r.name),
    )


def _split_documents(source: str, data: str) -> list[dict[str, Any]]:
    try:
        docs = list(yaml.safe_load_all(data))
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"template {source} is not valid YAML", str(e)) from e

    result = []
    for doc in docs:
        if not doc:
            continue
        if not isinstance(doc, dict):
            raise InvalidArgumentError(f"template {source} holds a non-object document")
        result.append(doc)
    return result


def _parse_hook(doc: dict[str, Any], path: str, namespace: str) -> Hook | None:
    metadata = doc.get("metadata") or {}
    annotations = metadata.get("annotations") or {}

    events = []
    for value in str(annotations[HOOK_ANNOTATION]).split(","):
        try:
            events.append(HookEvent(value.strip()))
        except ValueError:
            logger.warning(f"Ignoring unknown hook event '{value.strip()}' in {path}")
    if not events:
        return None

    try:
        weight = int(str(annotations.get(HOOK_WEIGHT_ANNOTATION, "0")).strip() or 0)
    except ValueError:
        weight = 0

    policies = []
    for value in str(annotations.get(HOOK_DELETE_POLICY_ANNOTATION, "")).split(","):
        if not value.strip():
            continue
        try:
            policies.append(HookDeletePolicy(value.strip()))
        except ValueError:
            logger.warning(f"Ignoring unknown hook delete policy '{value.strip()}' in {path}")

    resource = Resource.from_document(doc, namespace)
    return Hook(
        name=resource.name,
        kind=resource.kind,
        path=path,
        manifest=resource.to_yaml(),
        events=events,
        weight=weight,
        delete_policies=policies,
    )


def parse_chart(chart: Chart, namespace: str) -> ParsedChart:
    """Split a rendered chart into resources (install order), hooks and notes.

    Args:
        chart: Chart with rendered templates
        namespace: Namespace for objects that do not name one

    Returns:
        ParsedChart

    Raises:
        InvalidArgumentError: If a template is not valid YAML or an object has
            no kind or name
    """
    parsed = ParsedChart()
    for template in chart.templates:
        base = posixpath.basename(template.name)
        if base == NOTES_TEMPLATE:
            parsed.notes = template.data
            continue
        if base.startswith("_"):
            continue

        for doc in _split_documents(template.name, template.data):
            metadata = doc.get("metadata") or {}
            if not doc.get("kind") or not metadata.get("name"):
                raise InvalidArgumentError(
                    f"object in template {template.name} has no kind or name"
                )
            annotations = metadata.get("annotations") or {}
            if HOOK_ANNOTATION in annotations:
                hook = _parse_hook(doc, template.name, namespace)
                if hook is not None:
                    parsed.hooks.append(hook)
                continue
            parsed.resources.append(Resource.from_document(doc, namespace))

    parsed.resources = install_order(parsed.resources)
    return parsed


def render_manifest(resources: list[Resource]) -> str:
    """Join resources into one multi-document YAML string."""
    return "".join(f"---\n{r.to_yaml()}" for r in resources)


def load_manifest(manifest: str, namespace: str) -> list[Resource]:
    """Parse a stored release manifest back into resources."""
    if not manifest.strip():
        return []
    return [Resource.from_document(doc, namespace) for doc in _split_documents("manifest", manifest)]


def hook_resource(hook: Hook, namespace: str) -> Resource:
    """The cluster object a hook creates."""
    doc = yaml.safe_load(hook.manifest) or {}
    return Resource.from_document(doc, namespace)
