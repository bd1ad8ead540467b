"""kubectl-backed cluster client."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Any

from kpdbug.errors import (
    ClusterUnreachableError,
    NotFoundError,
    UnclassifiedError,
    classify_failure,
    timeout_error,
)

logger = logging.getLogger(__name__)

NO_RESOURCES = "No resources found"


@dataclass
class KubectlConfig:
    """Configuration for the kubectl client.

    Attributes:
        context: Kubeconfig context to use (None for current context).
        binary: kubectl executable name or path.
    """

    context: str | None = None
    binary: str = "kubectl"


class KubectlClient:
    """Synchronous cluster operations on top of the kubectl CLI.

    Every failed command is classified here into the kpdbug error taxonomy,
    so callers only ever see KpdbugError subclasses.
    """

    # Default timeout for non-interactive kubectl commands (seconds)
    KUBECTL_DEFAULT_TIMEOUT = 30

    def __init__(self, config: KubectlConfig | None = None) -> None:
        self._config = config or KubectlConfig()

    def _base_cmd(self) -> list[str]:
        cmd = [self._config.binary]
        if self._config.context:
            cmd.extend(["--context", self._config.context])
        return cmd

    def _run_kubectl(
        self,
        *args: str,
        operation: str = "run kubectl",
        check: bool = True,
        input_data: str | None = None,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a kubectl command and capture its output.

        Args:
            *args: Command arguments (without 'kubectl').
            operation: Description used in error messages.
            check: Raise a classified error on non-zero exit (default True).
            input_data: Optional input to pass to stdin.
            timeout: Timeout in seconds (default KUBECTL_DEFAULT_TIMEOUT).
                     Use 0 for no timeout.

        Returns:
            CompletedProcess result.

        Raises:
            ClusterUnreachableError: If kubectl is not installed.
            DebugTimeoutError: If the command times out.
            KpdbugError: If the command fails and check=True.
        """
        cmd = self._base_cmd()
        cmd.extend(args)

        if timeout is None:
            timeout_value: float | None = self.KUBECTL_DEFAULT_TIMEOUT
        elif timeout == 0:
            timeout_value = None
        else:
            timeout_value = timeout

        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                input=input_data,
                timeout=timeout_value,
            )
        except subprocess.TimeoutExpired:
            raise timeout_error(
                operation, f"{timeout_value}s", original=" ".join(cmd)
            ) from None
        except FileNotFoundError as e:
            raise self._not_installed() from e

        if check and result.returncode != 0:
            raise classify_failure(result.stderr, operation)

        return result

    def _run_interactive(self, *args: str, operation: str) -> int:
        """Run a kubectl command wired to the local terminal.

        Returns:
            Exit code of the kubectl command.
        """
        cmd = self._base_cmd()
        cmd.extend(args)
        logger.debug("Running interactively (%s): %s", operation, " ".join(cmd))
        try:
            result = subprocess.run(cmd)
        except FileNotFoundError as e:
            raise self._not_installed() from e
        return result.returncode

    def _not_installed(self) -> ClusterUnreachableError:
        return ClusterUnreachableError(
            f"{self._config.binary} CLI not found",
            suggestion="Install kubectl and make sure it is on your PATH",
            command="kubectl version --client",
        )

    # -------------------------------------------------------------------------
    # Object operations
    # -------------------------------------------------------------------------

    def create(self, manifest: dict[str, Any]) -> None:
        """Create an object from a manifest.

        Uses `kubectl create` so that a name collision fails instead of
        silently updating an existing object.
        """
        name = manifest.get("metadata", {}).get("name", "")
        self._run_kubectl(
            "create", "-f", "-",
            operation=f"create {manifest.get('kind', 'object').lower()} {name}",
            input_data=json.dumps(manifest),
        )

    def get_json(self, kind: str, name: str, namespace: str) -> dict[str, Any]:
        """Get one object as parsed JSON.

        Raises:
            NotFoundError: If the object does not exist.
        """
        result = self._run_kubectl(
            "get", kind, name, "-n", namespace, "-o", "json",
            operation=f"get {kind} {name}",
        )
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise UnclassifiedError(
                f"Could not parse {kind} {name}", original=str(e)
            ) from e

    def get_jsonpath(self, kind: str, name: str, namespace: str, path: str) -> str:
        """Read a field subset of one object with a JSONPath query."""
        result = self._run_kubectl(
            "get", kind, name, "-n", namespace, "-o", f"jsonpath={path}",
            operation=f"read {kind} {name}",
        )
        return result.stdout.strip()

    def list_pods(
        self,
        selector: str,
        namespace: str | None = None,
        all_namespaces: bool = False,
    ) -> list[dict[str, Any]]:
        """List pods matching a label selector.

        An empty result, including kubectl's "No resources found" response,
        is returned as an empty list.
        """
        args = ["get", "pods"]
        if all_namespaces:
            args.append("--all-namespaces")
        else:
            args.extend(["-n", namespace or "default"])
        args.extend(["-l", selector, "-o", "json"])

        result = self._run_kubectl(*args, operation="list pods", check=False)
        if result.returncode != 0:
            if NO_RESOURCES in result.stderr:
                return []
            raise classify_failure(result.stderr, "list pods")

        if not result.stdout.strip():
            return []
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise UnclassifiedError(
                "Could not parse pod list", original=str(e)
            ) from e
        return data.get("items", [])

    def namespace_names(self) -> list[str]:
        """Names of all namespaces visible to the current user."""
        result = self._run_kubectl(
            "get", "namespaces", "-o", "jsonpath={.items[*].metadata.name}",
            operation="list namespaces",
        )
        return result.stdout.split()

    def pod_names(self, namespace: str) -> list[str]:
        """Names of all pods in a namespace."""
        result = self._run_kubectl(
            "get", "pods", "-n", namespace,
            "-o", "jsonpath={.items[*].metadata.name}",
            operation="list pods",
        )
        return result.stdout.split()

    def delete_pod(self, name: str, namespace: str) -> None:
        """Delete a pod. A pod that is already gone counts as deleted."""
        try:
            self._run_kubectl(
                "delete", "pod", name, "-n", namespace, "--ignore-not-found",
                operation=f"delete pod {name}",
                timeout=0,
            )
        except NotFoundError:
            logger.debug("Pod %s/%s already gone", namespace, name)

    # -------------------------------------------------------------------------
    # Observed fields
    # -------------------------------------------------------------------------

    def pod_phase(self, name: str, namespace: str) -> str | None:
        """Return the pod phase, or None when it cannot be read."""
        result = self._run_kubectl(
            "get", "pod", name, "-n", namespace,
            "-o", "jsonpath={.status.phase}",
            operation=f"read phase of pod {name}",
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def ephemeral_container_running(
        self, pod: str, container: str, namespace: str
    ) -> bool:
        """Check whether an ephemeral container has started."""
        path = (
            "{.status.ephemeralContainerStatuses"
            f'[?(@.name=="{container}")].state.running}}'
        )
        result = self._run_kubectl(
            "get", "pod", pod, "-n", namespace, "-o", f"jsonpath={path}",
            operation=f"read ephemeral container {container}",
            check=False,
        )
        return result.returncode == 0 and bool(result.stdout.strip())

    def deployment_selector(self, pod: str, namespace: str) -> dict[str, str] | None:
        """Resolve the matchLabels of the Deployment that owns a pod.

        Follows Pod -> ReplicaSet -> Deployment owner references.

        Returns:
            The selector's matchLabels, or None when the pod is not owned
            by a Deployment.
        """
        rs_name = self.get_jsonpath(
            "pod", pod, namespace,
            "{.metadata.ownerReferences[?(@.kind=='ReplicaSet')].name}",
        )
        if not rs_name:
            return None

        deployment = self.get_jsonpath(
            "replicaset", rs_name, namespace,
            "{.metadata.ownerReferences[?(@.kind=='Deployment')].name}",
        )
        if not deployment:
            return None

        raw = self.get_jsonpath(
            "deployment", deployment, namespace, "{.spec.selector.matchLabels}"
        )
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise UnclassifiedError(
                f"Could not parse selector of deployment {deployment}",
                original=str(e),
            ) from e

    # -------------------------------------------------------------------------
    # Interactive operations
    # -------------------------------------------------------------------------

    def add_ephemeral_container(
        self,
        pod: str,
        namespace: str,
        container: dict[str, Any],
        profile: str,
    ) -> None:
        """Inject an ephemeral container into a running pod.

        The container's resources and security context are handed to
        `kubectl debug --custom`; name, image, target and command are
        passed as flags because custom profiles may not set them.

        Args:
            pod: Target pod name.
            namespace: Namespace of the pod.
            container: Ephemeral container manifest.
            profile: `kubectl debug --profile` value.
        """
        custom = {
            key: container[key]
            for key in ("resources", "securityContext")
            if key in container
        }

        fd, custom_path = tempfile.mkstemp(prefix="kpdbug-custom-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(custom, f)

            args = [
                "debug", pod,
                "-n", namespace,
                "--image", container["image"],
                "--container", container["name"],
                "--profile", profile,
                "--custom", custom_path,
                "--attach=false",
            ]
            target = container.get("targetContainerName")
            if target:
                args.append(f"--target={target}")
            if container.get("stdin"):
                args.append("-i")
            if container.get("tty"):
                args.append("-t")
            args.append("--")
            args.extend(container["command"])

            self._run_kubectl(*args, operation=f"add debug container to pod {pod}")
        finally:
            os.unlink(custom_path)

    def exec_interactive(
        self,
        pod: str,
        namespace: str,
        command: list[str],
        container: str | None = None,
    ) -> int:
        """Run a command in a pod with the local terminal attached."""
        args = ["exec", "-it", pod, "-n", namespace]
        if container:
            args.extend(["-c", container])
        args.append("--")
        args.extend(command)
        return self._run_interactive(*args, operation=f"exec into pod {pod}")

    def attach_interactive(
        self, pod: str, namespace: str, container: str | None = None
    ) -> int:
        """Attach the local terminal to a container's console."""
        args = ["attach", "-it", pod, "-n", namespace]
        if container:
            args.extend(["-c", container])
        return self._run_interactive(*args, operation=f"attach to pod {pod}")
