"""Unit tests for the kr8s cluster controller with the API mocked out."""

import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

import kr8s
import pytest

from src.infra.k8s import TIMEOUT_RETURNCODE, CommandResult, Resource, ResourceRef
from src.infra.k8s.kr8s_controller import Kr8sController


def _obj(raw: dict) -> MagicMock:
    obj = MagicMock()
    obj.raw = raw
    obj.delete = AsyncMock()
    return obj


@pytest.fixture
def controller() -> Kr8sController:
    return Kr8sController(poll_interval=0.01)


class TestKubectlOperations:
    """create and update go through kubectl with the manifest on stdin."""

    async def test_create(self, controller):
        resource = Resource.from_document(
            {"kind": "ConfigMap", "metadata": {"name": "cfg"}}, "default"
        )
        kubectl = AsyncMock(return_value=CommandResult(success=True))

        with patch.object(controller, "_kubectl", kubectl):
            result = await controller.create(resource)

        assert result.success is True
        args, kwargs = kubectl.call_args
        assert args[0] == ["create", "-f", "-"]
        assert "name: cfg" in kwargs["stdin"]

    async def test_update_uses_apply(self, controller):
        resource = Resource.from_document(
            {"kind": "ConfigMap", "metadata": {"name": "cfg"}}, "default"
        )
        kubectl = AsyncMock(return_value=CommandResult(success=True))

        with patch.object(controller, "_kubectl", kubectl):
            await controller.update(resource)

        assert kubectl.call_args.args[0] == ["apply", "-f", "-"]

    async def test_delete_untyped_kind(self, controller):
        kubectl = AsyncMock(return_value=CommandResult(success=True))

        with patch.object(controller, "_kubectl", kubectl):
            await controller.delete(ResourceRef("ConfigMap", "cfg", "apps"))

        assert kubectl.call_args.args[0] == [
            "delete", "ConfigMap", "cfg", "--ignore-not-found", "-n", "apps",
        ]


class TestKubectl:
    """The kubectl runner never raises."""

    async def test_passes_stdin_and_timeout(self):
        controller = Kr8sController(command_timeout=5.0)
        completed = subprocess.CompletedProcess(["kubectl"], 0, stdout="created", stderr="")

        with patch("src.infra.k8s.kr8s_controller.subprocess.run", return_value=completed) as run:
            result = await controller._kubectl(["create", "-f", "-"], stdin="kind: Pod")

        assert result == CommandResult(success=True, stdout="created", stderr="", returncode=0)
        assert run.call_args.args[0] == ["kubectl", "create", "-f", "-"]
        assert run.call_args.kwargs["input"] == "kind: Pod"
        assert run.call_args.kwargs["timeout"] == 5.0

    async def test_missing_binary(self, controller):
        with patch(
            "src.infra.k8s.kr8s_controller.subprocess.run",
            side_effect=FileNotFoundError(2, "No such file or directory", "kubectl"),
        ):
            result = await controller._kubectl(["apply", "-f", "-"], stdin="kind: Pod")

        assert result.success is False
        assert result.returncode == 127
        assert "cannot run kubectl" in result.stderr

    async def test_hung_invocation(self, controller):
        with patch(
            "src.infra.k8s.kr8s_controller.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["kubectl"], 60.0),
        ):
            result = await controller._kubectl(["create", "-f", "-"])

        assert result.success is False
        assert result.returncode == TIMEOUT_RETURNCODE
        assert "did not finish" in result.stderr


class TestTypedOperations:
    """Typed kinds are read and deleted through kr8s objects."""

    async def test_delete_existing(self, controller):
        obj = _obj({})

        with patch.object(controller, "_get_object", AsyncMock(return_value=obj)):
            result = await controller.delete(ResourceRef("Deployment", "web", "default"))

        assert result.success is True
        obj.delete.assert_awaited_once_with(propagation_policy="Background")

    async def test_delete_missing(self, controller):
        with patch.object(controller, "_get_object", AsyncMock(return_value=None)):
            result = await controller.delete(ResourceRef("Deployment", "web", "default"))

        assert result.success is True
        assert "not found" in result.stdout

    async def test_delete_error(self, controller):
        obj = _obj({})
        obj.delete.side_effect = RuntimeError("forbidden")

        with patch.object(controller, "_get_object", AsyncMock(return_value=obj)):
            result = await controller.delete(ResourceRef("Deployment", "web", "default"))

        assert result.success is False
        assert result.stderr == "forbidden"

    async def test_is_ready(self, controller):
        obj = _obj({"spec": {"replicas": 1}, "status": {"readyReplicas": 1}})

        with patch.object(controller, "_get_object", AsyncMock(return_value=obj)):
            assert await controller.is_ready(ResourceRef("Deployment", "web", "default"))

    async def test_get_object_not_found(self, controller):
        api = MagicMock()
        with (
            patch.object(controller, "_get_api", AsyncMock(return_value=api)),
            patch(
                "src.infra.k8s.kr8s_controller.Pod.get",
                AsyncMock(side_effect=kr8s.NotFoundError("gone")),
            ),
        ):
            assert await controller.exists(ResourceRef("Pod", "web", "default")) is False


class TestWaitForCompletion:
    """Polling of run-to-completion resources."""

    async def test_succeeded(self, controller):
        running = _obj({"status": {"phase": "Running"}})
        done = _obj({"status": {"phase": "Succeeded"}})

        with patch.object(controller, "_get_object", AsyncMock(side_effect=[running, done])):
            result = await controller.wait_for_completion(
                ResourceRef("Pod", "hook", "default"), timeout=1
            )

        assert result.success is True

    async def test_failed(self, controller):
        obj = _obj({"status": {"conditions": [{"type": "Failed", "status": "True"}]}})

        with patch.object(controller, "_get_object", AsyncMock(return_value=obj)):
            result = await controller.wait_for_completion(
                ResourceRef("Job", "hook", "default"), timeout=1
            )

        assert result.success is False
        assert result.returncode == 1

    async def test_timeout(self, controller):
        obj = _obj({"status": {"phase": "Running"}})

        with patch.object(controller, "_get_object", AsyncMock(return_value=obj)):
            result = await controller.wait_for_completion(
                ResourceRef("Pod", "hook", "default"), timeout=0.05
            )

        assert result.returncode == TIMEOUT_RETURNCODE


class TestClusterContext:
    """Context and health checks."""

    async def test_health_check(self, controller):
        api = MagicMock()
        api.version = AsyncMock(return_value={"gitVersion": "v1.30.0"})

        with patch.object(controller, "_get_api", AsyncMock(return_value=api)):
            assert await controller.health_check() is True

    async def test_health_check_failure(self, controller):
        with patch.object(controller, "_get_api", AsyncMock(side_effect=RuntimeError("no config"))):
            assert await controller.health_check() is False
            assert await controller.get_current_context() == "unknown"

    async def test_current_context(self, controller):
        api = MagicMock()
        api.auth.active_context = "kind-dev"

        with patch.object(controller, "_get_api", AsyncMock(return_value=api)):
            assert await controller.get_current_context() == "kind-dev"
