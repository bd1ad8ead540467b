"""Declarative specs for the three kinds of debug session."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from kpdbug.cluster import KubectlClient
from kpdbug.config import DebugConfig, SessionMode
from kpdbug.errors import KpdbugError
from kpdbug.security import SecurityPolicy, resolve_profile
from kpdbug.session_discovery import discovery_labels

logger = logging.getLogger(__name__)

DEBUG_CONTAINER = "debugger"

# Kubernetes limits container names to 63 characters.
_MAX_CONTAINER_NAME = 63

_PROBE_KEYS = ("livenessProbe", "readinessProbe", "startupProbe")


@dataclass
class SessionSpec:
    """Everything needed to create one debug session.

    Attributes:
        mode: Session shape.
        name: Session name (pod name, or ephemeral container name).
        namespace: Namespace of the session.
        target: Target pod name, or None for standalone sessions.
        pod: Pod that owns the debug container. For standalone and copy
            sessions this is `name`; for ephemeral sessions it is the target.
        container: Name of the debug container.
        policy: Resolved security policy of the debug container.
        interactive: Whether the container runs an interactive shell.
        labels: Labels of the new pod (empty for ephemeral sessions).
        manifest: Pod manifest, or the ephemeral container manifest.
    """

    mode: SessionMode
    name: str
    namespace: str
    target: str | None
    pod: str
    container: str
    policy: SecurityPolicy
    interactive: bool
    labels: dict[str, str] = field(default_factory=dict)
    manifest: dict[str, Any] = field(default_factory=dict)


def _target_pod_context(pod: dict[str, Any]) -> dict[str, Any] | None:
    """Return the target's pod securityContext if it pins a numeric user."""
    ctx = pod.get("spec", {}).get("securityContext")
    if ctx and isinstance(ctx.get("runAsUser"), int):
        return ctx
    return None


class SessionBuilder:
    """Builds SessionSpecs from a DebugConfig.

    Only read-only lookups against the target pod are made here; creating
    the session is the lifecycle controller's job.
    """

    def __init__(self, client: KubectlClient, config: DebugConfig) -> None:
        self._client = client
        self._config = config

    def build(self, name: str) -> SessionSpec:
        mode = self._config.mode
        if mode is SessionMode.STANDALONE:
            return self._build_standalone(name)
        if mode is SessionMode.COPY:
            return self._build_copy(name)
        return self._build_ephemeral(name)

    def _command(self) -> list[str]:
        if self._config.attach:
            return [self._config.shell]
        return ["sleep", "infinity"]

    def _resources(self) -> dict[str, Any]:
        # CPU is requested but never limited.
        return {
            "limits": {"memory": self._config.memory_limit},
            "requests": {
                "cpu": self._config.cpu_request,
                "memory": self._config.memory_request,
            },
        }

    def _container(self, name: str, policy: SecurityPolicy) -> dict[str, Any]:
        return {
            "name": name,
            "image": self._config.image,
            "command": self._command(),
            "stdin": True,
            "tty": True,
            "securityContext": policy.container_context(),
            "resources": self._resources(),
        }

    def _pod_container(self, policy: SecurityPolicy) -> dict[str, Any]:
        container = self._container(DEBUG_CONTAINER, policy)
        probe = {
            "exec": {"command": ["/bin/true"]},
            "initialDelaySeconds": 5,
            "periodSeconds": 10,
        }
        container["livenessProbe"] = dict(probe)
        container["readinessProbe"] = dict(probe)
        return container

    def _pod_manifest(
        self, name: str, labels: dict[str, str], spec: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": name,
                "namespace": self._config.namespace,
                "labels": labels,
            },
            "spec": spec,
        }

    def _target_pod(self) -> dict[str, Any]:
        return self._client.get_json(
            "pod", self._config.pod_name, self._config.namespace
        )

    def _target_policy(
        self, target_pod: dict[str, Any]
    ) -> tuple[SecurityPolicy, dict[str, Any] | None]:
        """Resolve the policy, preferring the target's own run-as-user."""
        policy = resolve_profile(self._config.profile)
        target_ctx = _target_pod_context(target_pod)
        if target_ctx is None:
            logger.info(
                "No security context defined in target pod, using profile %s",
                policy.profile,
            )
            return policy, None

        logger.info(
            "Using security context from target pod (UID: %d)",
            target_ctx["runAsUser"],
        )
        policy = policy.with_run_as_user(
            target_ctx["runAsUser"], target_ctx.get("runAsNonRoot")
        )
        return policy, target_ctx

    def _build_standalone(self, name: str) -> SessionSpec:
        policy = resolve_profile(self._config.profile)
        labels = discovery_labels()
        spec = {
            "automountServiceAccountToken": False,
            "terminationGracePeriodSeconds": 0,
            "securityContext": policy.pod_context(),
            "containers": [self._pod_container(policy)],
        }
        return SessionSpec(
            mode=SessionMode.STANDALONE,
            name=name,
            namespace=self._config.namespace,
            target=None,
            pod=name,
            container=DEBUG_CONTAINER,
            policy=policy,
            interactive=self._config.attach,
            labels=labels,
            manifest=self._pod_manifest(name, labels, spec),
        )

    def copy_labels(self, target_pod: dict[str, Any]) -> dict[str, str]:
        """Derive the labels of a pod copy.

        Labels are inherited from the target, minus every key of the owning
        Deployment's selector (so the Deployment's ReplicaSet does not adopt
        the copy), plus the discovery labels.
        """
        target = self._config.pod_name
        labels = dict(target_pod.get("metadata", {}).get("labels") or {})

        try:
            selector = self._client.deployment_selector(target, self._config.namespace)
        except KpdbugError as e:
            logger.warning("Could not resolve deployment selector: %s", e.message)
            selector = None

        for key in selector or {}:
            labels.pop(key, None)

        labels.update(discovery_labels(target))
        return labels

    def _build_copy(self, name: str) -> SessionSpec:
        target_pod = self._target_pod()
        policy, target_ctx = self._target_policy(target_pod)

        spec = copy.deepcopy(target_pod.get("spec", {}))
        for key in ("nodeName", "ephemeralContainers"):
            spec.pop(key, None)
        for container in spec.get("containers", []):
            for key in _PROBE_KEYS:
                container.pop(key, None)

        spec["shareProcessNamespace"] = True
        spec["securityContext"] = target_ctx or policy.pod_context()
        spec.setdefault("containers", []).append(self._pod_container(policy))

        labels = self.copy_labels(target_pod)
        return SessionSpec(
            mode=SessionMode.COPY,
            name=name,
            namespace=self._config.namespace,
            target=self._config.pod_name,
            pod=name,
            container=DEBUG_CONTAINER,
            policy=policy,
            interactive=self._config.attach,
            labels=labels,
            manifest=self._pod_manifest(name, labels, spec),
        )

    def _build_ephemeral(self, name: str) -> SessionSpec:
        target_pod = self._target_pod()
        policy, _ = self._target_policy(target_pod)

        container_name = name[:_MAX_CONTAINER_NAME].rstrip("-")
        container = self._container(container_name, policy)

        containers = target_pod.get("spec", {}).get("containers") or []
        if containers:
            container["targetContainerName"] = containers[0]["name"]

        return SessionSpec(
            mode=SessionMode.EPHEMERAL,
            name=container_name,
            namespace=self._config.namespace,
            target=self._config.pod_name,
            pod=self._config.pod_name,
            container=container_name,
            policy=policy,
            interactive=self._config.attach,
            manifest=container,
        )
