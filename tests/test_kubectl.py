"""Tests for the kubectl cluster client."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from kpdbug.cluster import KubectlClient, KubectlConfig
from kpdbug.errors import (
    ClusterUnreachableError,
    DebugTimeoutError,
    NotFoundError,
    PermissionDeniedError,
)


def _ok(stdout: str = "") -> MagicMock:
    return MagicMock(returncode=0, stdout=stdout, stderr="")


def _fail(stderr: str) -> MagicMock:
    return MagicMock(returncode=1, stdout="", stderr=stderr)


class TestKubectlConfig:
    """Tests for KubectlConfig dataclass."""

    def test_default_values(self) -> None:
        config = KubectlConfig()
        assert config.context is None
        assert config.binary == "kubectl"


class TestRunKubectl:
    """Tests for _run_kubectl method."""

    @patch("subprocess.run")
    def test_builds_command(self, mock_run: MagicMock) -> None:
        """_run_kubectl builds correct command."""
        mock_run.return_value = _ok()

        KubectlClient()._run_kubectl("get", "pods")

        args = mock_run.call_args[0][0]
        assert args == ["kubectl", "get", "pods"]

    @patch("subprocess.run")
    def test_includes_context(self, mock_run: MagicMock) -> None:
        """_run_kubectl includes context when specified."""
        mock_run.return_value = _ok()

        KubectlClient(KubectlConfig(context="kind-dev"))._run_kubectl("get", "pods")

        args = mock_run.call_args[0][0]
        assert args == ["kubectl", "--context", "kind-dev", "get", "pods"]

    @patch("subprocess.run")
    def test_uses_default_timeout(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok()

        KubectlClient()._run_kubectl("get", "pods")

        assert mock_run.call_args[1]["timeout"] == KubectlClient.KUBECTL_DEFAULT_TIMEOUT

    @patch("subprocess.run")
    def test_no_timeout_when_zero(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok()

        KubectlClient()._run_kubectl("delete", "pod", "x", timeout=0)

        assert mock_run.call_args[1]["timeout"] is None

    @patch("subprocess.run")
    def test_raises_when_not_installed(self, mock_run: MagicMock) -> None:
        """A missing kubectl binary is a cluster-unreachable failure."""
        mock_run.side_effect = FileNotFoundError()

        with pytest.raises(ClusterUnreachableError) as exc_info:
            KubectlClient()._run_kubectl("version")

        assert "not found" in exc_info.value.message

    @patch("subprocess.run")
    def test_raises_on_timeout(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(
            cmd=["kubectl", "get", "pods"], timeout=30
        )

        with pytest.raises(DebugTimeoutError) as exc_info:
            KubectlClient()._run_kubectl("get", "pods", operation="list pods")

        assert "list pods" in exc_info.value.message
        assert "kubectl get pods" in exc_info.value.original

    @patch("subprocess.run")
    def test_classifies_failure(self, mock_run: MagicMock) -> None:
        """Non-zero exits are classified at the boundary."""
        mock_run.return_value = _fail('pods "web" is forbidden')

        with pytest.raises(PermissionDeniedError):
            KubectlClient()._run_kubectl("get", "pod", "web")

    @patch("subprocess.run")
    def test_check_false_returns_result(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _fail("boom")

        result = KubectlClient()._run_kubectl("get", "pod", "web", check=False)

        assert result.returncode == 1


class TestCreate:
    """Tests for create."""

    @patch("subprocess.run")
    def test_uses_kubectl_create_with_stdin(self, mock_run: MagicMock) -> None:
        """create pipes the manifest to `kubectl create -f -`."""
        mock_run.return_value = _ok()
        manifest = {"kind": "Pod", "metadata": {"name": "debug-1"}}

        KubectlClient().create(manifest)

        assert mock_run.call_args[0][0] == ["kubectl", "create", "-f", "-"]
        assert json.loads(mock_run.call_args[1]["input"]) == manifest


class TestListPods:
    """Tests for list_pods."""

    @patch("subprocess.run")
    def test_namespace_scoped(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok(json.dumps({"items": [{"metadata": {"name": "a"}}]}))

        pods = KubectlClient().list_pods("debug-tool/type=debug-pod", namespace="dev")

        args = mock_run.call_args[0][0]
        assert args == [
            "kubectl", "get", "pods", "-n", "dev",
            "-l", "debug-tool/type=debug-pod", "-o", "json",
        ]
        assert pods == [{"metadata": {"name": "a"}}]

    @patch("subprocess.run")
    def test_all_namespaces(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok(json.dumps({"items": []}))

        KubectlClient().list_pods("x=y", all_namespaces=True)

        args = mock_run.call_args[0][0]
        assert "--all-namespaces" in args
        assert "-n" not in args

    @patch("subprocess.run")
    def test_no_resources_found_is_empty(self, mock_run: MagicMock) -> None:
        """'No resources found' is an empty result, not an error."""
        mock_run.return_value = _fail("No resources found in dev namespace.")

        assert KubectlClient().list_pods("x=y", namespace="dev") == []

    @patch("subprocess.run")
    def test_empty_output_is_empty(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok("")

        assert KubectlClient().list_pods("x=y", namespace="dev") == []

    @patch("subprocess.run")
    def test_other_failures_raise(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _fail("Unable to connect to the server")

        with pytest.raises(ClusterUnreachableError):
            KubectlClient().list_pods("x=y", namespace="dev")


class TestNames:
    """Tests for namespace_names and pod_names."""

    @patch("subprocess.run")
    def test_namespace_names(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok("default dev kube-system")

        names = KubectlClient().namespace_names()

        args = mock_run.call_args[0][0]
        assert args == [
            "kubectl", "get", "namespaces",
            "-o", "jsonpath={.items[*].metadata.name}",
        ]
        assert names == ["default", "dev", "kube-system"]

    @patch("subprocess.run")
    def test_pod_names(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok("web-1 web-2")

        names = KubectlClient(KubectlConfig(context="kind")).pod_names("dev")

        args = mock_run.call_args[0][0]
        assert args == [
            "kubectl", "--context", "kind", "get", "pods", "-n", "dev",
            "-o", "jsonpath={.items[*].metadata.name}",
        ]
        assert names == ["web-1", "web-2"]

    @patch("subprocess.run")
    def test_empty_output(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok("")

        assert KubectlClient().pod_names("dev") == []

    @patch("subprocess.run")
    def test_failure_raises(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _fail("Unable to connect to the server")

        with pytest.raises(ClusterUnreachableError):
            KubectlClient().namespace_names()


class TestDeletePod:
    """Tests for delete_pod."""

    @patch("subprocess.run")
    def test_ignores_not_found_flag(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok()

        KubectlClient().delete_pod("debug-1", "dev")

        args = mock_run.call_args[0][0]
        assert args == [
            "kubectl", "delete", "pod", "debug-1", "-n", "dev", "--ignore-not-found",
        ]

    @patch("subprocess.run")
    def test_not_found_counts_as_deleted(self, mock_run: MagicMock) -> None:
        """A pod (or namespace) that is already gone is not an error."""
        mock_run.return_value = _fail('namespaces "dev" not found')

        KubectlClient().delete_pod("debug-1", "dev")

    @patch("subprocess.run")
    def test_other_failures_raise(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _fail("pods is forbidden")

        with pytest.raises(PermissionDeniedError):
            KubectlClient().delete_pod("debug-1", "dev")


class TestObservedFields:
    """Tests for phase, ephemeral status and owner lookups."""

    @patch("subprocess.run")
    def test_pod_phase(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok("Running")
        assert KubectlClient().pod_phase("debug-1", "dev") == "Running"

    @patch("subprocess.run")
    def test_pod_phase_none_on_error(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _fail("not found")
        assert KubectlClient().pod_phase("debug-1", "dev") is None

    @patch("subprocess.run")
    def test_ephemeral_container_running(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok('{"startedAt":"2024-01-15T10:00:00Z"}')

        assert KubectlClient().ephemeral_container_running("web", "dbg", "dev")
        assert '@.name=="dbg"' in mock_run.call_args[0][0][-1]

    @patch("subprocess.run")
    def test_ephemeral_container_waiting(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok("")
        assert not KubectlClient().ephemeral_container_running("web", "dbg", "dev")

    @patch("subprocess.run")
    def test_deployment_selector_follows_owner_chain(
        self, mock_run: MagicMock
    ) -> None:
        """Pod -> ReplicaSet -> Deployment -> matchLabels."""
        mock_run.side_effect = [
            _ok("web-7d9f"),
            _ok("web"),
            _ok('{"app":"web"}'),
        ]

        selector = KubectlClient().deployment_selector("web-7d9f-abcde", "dev")

        assert selector == {"app": "web"}
        kinds = [c[0][0][2] for c in mock_run.call_args_list]
        assert kinds == ["pod", "replicaset", "deployment"]

    @patch("subprocess.run")
    def test_deployment_selector_none_without_replicaset(
        self, mock_run: MagicMock
    ) -> None:
        mock_run.return_value = _ok("")

        assert KubectlClient().deployment_selector("bare-pod", "dev") is None
        assert mock_run.call_count == 1

    @patch("subprocess.run")
    def test_deployment_selector_none_without_deployment(
        self, mock_run: MagicMock
    ) -> None:
        mock_run.side_effect = [_ok("orphan-rs"), _ok("")]

        assert KubectlClient().deployment_selector("pod", "dev") is None

    @patch("subprocess.run")
    def test_get_json_not_found(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _fail('pods "web" not found')

        with pytest.raises(NotFoundError):
            KubectlClient().get_json("pod", "web", "dev")


class TestAddEphemeralContainer:
    """Tests for add_ephemeral_container."""

    @patch("subprocess.run")
    def test_builds_kubectl_debug_command(self, mock_run: MagicMock) -> None:
        """Name, image, target and command go on the command line."""
        custom_payloads: list[dict] = []

        def capture(cmd: list[str], **kwargs: object) -> MagicMock:
            path = next(a for a in cmd if a.startswith("/") and a.endswith(".json"))
            custom_payloads.append(json.loads(Path(path).read_text()))
            return _ok()

        mock_run.side_effect = capture
        container = {
            "name": "debug-web-101010-0042",
            "image": "busybox:latest",
            "command": ["sleep", "infinity"],
            "stdin": True,
            "tty": True,
            "targetContainerName": "app",
            "securityContext": {"runAsUser": 1000},
            "resources": {"limits": {"memory": "512Mi"}},
        }

        KubectlClient().add_ephemeral_container("web", "dev", container, "general")

        args = mock_run.call_args[0][0]
        assert args[:4] == ["kubectl", "debug", "web", "-n"]
        assert "--target=app" in args
        assert "--attach=false" in args
        assert args[args.index("--container") + 1] == "debug-web-101010-0042"
        assert args[args.index("--profile") + 1] == "general"
        assert args[-3:] == ["--", "sleep", "infinity"]
        assert custom_payloads == [
            {
                "resources": {"limits": {"memory": "512Mi"}},
                "securityContext": {"runAsUser": 1000},
            }
        ]

    @patch("subprocess.run")
    def test_removes_custom_file(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _ok()
        container = {"name": "d", "image": "i", "command": ["sh"]}

        KubectlClient().add_ephemeral_container("web", "dev", container, "general")

        args = mock_run.call_args[0][0]
        assert not Path(args[args.index("--custom") + 1]).exists()


class TestInteractive:
    """Tests for exec and attach."""

    @patch("subprocess.run")
    def test_exec_interactive_returns_exit_code(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=3)

        code = KubectlClient().exec_interactive("debug-1", "dev", ["sh"])

        assert code == 3
        assert mock_run.call_args[0][0] == [
            "kubectl", "exec", "-it", "debug-1", "-n", "dev", "--", "sh",
        ]

    @patch("subprocess.run")
    def test_attach_interactive_with_container(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0)

        KubectlClient().attach_interactive("debug-1", "dev", "debugger")

        assert mock_run.call_args[0][0] == [
            "kubectl", "attach", "-it", "debug-1", "-n", "dev", "-c", "debugger",
        ]
