"""Unit tests for the in-memory cluster controller."""

import asyncio

import pytest

from src.infra.k8s import (
    TIMEOUT_RETURNCODE,
    InMemoryClusterController,
    PodPhase,
    Resource,
    ResourceRef,
    get_cluster_controller,
)


def _resource(kind: str = "ConfigMap", name: str = "web-config") -> Resource:
    return Resource.from_document(
        {"apiVersion": "v1", "kind": kind, "metadata": {"name": name}}, "default"
    )


@pytest.fixture
def controller() -> InMemoryClusterController:
    return InMemoryClusterController()


class TestMutations:
    """Test create, update and delete."""

    async def test_create_and_exists(self, controller):
        resource = _resource()

        result = await controller.create(resource)

        assert result.success is True
        assert await controller.exists(resource.ref) is True
        assert controller.objects[resource.ref]["metadata"]["namespace"] == "default"

    async def test_create_existing_fails(self, controller):
        await controller.create(_resource())

        result = await controller.create(_resource())

        assert result.success is False
        assert "already exists" in result.stderr

    async def test_scripted_create_failure(self, controller):
        controller.fail_create.add("web-config")

        result = await controller.create(_resource())

        assert result.success is False
        assert controller.objects == {}

    async def test_update_replaces_body(self, controller):
        resource = _resource()
        await controller.create(resource)
        resource.body["data"] = {"key": "new"}

        await controller.update(resource)

        assert controller.objects[resource.ref]["data"] == {"key": "new"}

    async def test_delete_missing_succeeds(self, controller):
        result = await controller.delete(ResourceRef("ConfigMap", "nope", "default"))

        assert result.success is True
        assert "not found" in result.stdout

    async def test_calls_are_recorded(self, controller):
        resource = _resource()
        await controller.create(resource)
        await controller.is_ready(resource.ref)
        await controller.delete(resource.ref)

        assert controller.calls == [
            ("create", "ConfigMap/default/web-config"),
            ("is_ready", "ConfigMap/default/web-config"),
            ("delete", "ConfigMap/default/web-config"),
        ]
        assert controller.mutations() == [
            ("create", "ConfigMap/default/web-config"),
            ("delete", "ConfigMap/default/web-config"),
        ]


class TestStatus:
    """Test readiness and completion."""

    async def test_never_ready(self, controller):
        resource = _resource("Deployment", "web")
        await controller.create(resource)
        controller.never_ready.add("web")

        assert await controller.is_ready(resource.ref) is False

    async def test_wait_for_completion(self, controller):
        pod = _resource("Pod", "job")
        await controller.create(pod)

        result = await controller.wait_for_completion(pod.ref, timeout=1)

        assert result.success is True

    async def test_wait_for_failed_pod(self, controller):
        pod = _resource("Pod", "job")
        await controller.create(pod)
        controller.pod_phases["job"] = PodPhase.FAILED

        result = await controller.wait_for_completion(pod.ref, timeout=1)

        assert result.success is False
        assert result.returncode == 1

    async def test_hanging_pod_times_out(self, controller):
        pod = _resource("Pod", "job")
        await controller.create(pod)
        controller.hang.add("job")

        result = await controller.wait_for_completion(pod.ref, timeout=0.01)

        assert result.returncode == TIMEOUT_RETURNCODE

    async def test_delay_yields_to_other_tasks(self, controller):
        controller.delay = 0.01
        order = []

        async def mark():
            order.append("other")

        await asyncio.gather(controller.create(_resource()), mark())

        assert order == ["other"]


class TestFactory:
    """Test get_cluster_controller."""

    def test_memory_backend(self):
        assert isinstance(get_cluster_controller("memory"), InMemoryClusterController)

    def test_kr8s_backend(self):
        from src.infra.k8s.kr8s_controller import Kr8sController

        controller = get_cluster_controller("kr8s", poll_interval=0.5, command_timeout=10.0)

        assert isinstance(controller, Kr8sController)
        assert controller.poll_interval == 0.5
        assert controller.command_timeout == 10.0

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_cluster_controller("helm")
