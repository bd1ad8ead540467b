"""Create, attach to and tear down debug sessions."""

from __future__ import annotations

import enum
import logging
import signal
import sys
import threading
import time
from collections.abc import Callable
from types import FrameType
from typing import Any

from kpdbug.builder import DEBUG_CONTAINER, SessionBuilder, SessionSpec
from kpdbug.cluster import KubectlClient
from kpdbug.config import DebugConfig, SessionMode
from kpdbug.errors import KpdbugError, NotFoundError, pod_not_found, timeout_error
from kpdbug.naming import generate_session_name
from kpdbug.reconcile import ask_existing_or_new, reconcile_collision
from kpdbug.security import kubectl_profile

logger = logging.getLogger(__name__)

_CLEANUP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SessionState(enum.Enum):
    """States of one orchestration run."""

    BUILDING = "building"
    CREATED = "created"
    WAITING_READY = "waiting_ready"
    ATTACHED = "attached"
    IDLE = "idle"
    TERMINATING = "terminating"
    GONE = "gone"


class CleanupToken:
    """Deletes a session pod at most once.

    The token is armed right after the session is created. It can then be
    fired from the normal teardown path or from a SIGINT/SIGTERM handler;
    whichever comes first deletes the pod, the other is a no-op.
    """

    def __init__(self, client: KubectlClient, pod: str, namespace: str) -> None:
        self._client = client
        self.pod = pod
        self.namespace = namespace
        # Re-entrant: the signal handler runs on the main thread and may
        # interrupt fire() before _fired is set.
        self._lock = threading.RLock()
        self._fired = False
        self._previous: dict[int, Any] = {}

    @property
    def fired(self) -> bool:
        return self._fired

    def arm(self) -> None:
        """Install the signal handlers."""
        for sig in _CLEANUP_SIGNALS:
            self._previous[sig] = signal.signal(sig, self._on_signal)

    def disarm(self) -> None:
        """Restore the signal handlers that were active before arm()."""
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def fire(self) -> bool:
        """Delete the session pod unless already done.

        Returns:
            True if this call performed the deletion attempt.
        """
        with self._lock:
            if self._fired:
                return False
            self._fired = True

        print(f"Cleaning up debug pod {self.pod}...", file=sys.stderr)
        try:
            self._client.delete_pod(self.pod, self.namespace)
        except KpdbugError as e:
            print(
                f"Warning: Failed to delete debug pod {self.pod}: {e.message}\n"
                f"Delete it manually: kubectl delete pod {self.pod} "
                f"-n {self.namespace}",
                file=sys.stderr,
            )
        else:
            print("Debug pod deleted successfully", file=sys.stderr)
        return True

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        if self._fired:
            # The in-progress or finished teardown owns the delete.
            return
        print("\nReceived interrupt signal, cleaning up...", file=sys.stderr)
        self.fire()
        sys.exit(128 + signum)


def exec_hint(pod: str, container: str, namespace: str, shell: str) -> str:
    """Command an operator can use to enter an idle session later."""
    return f"kubectl exec -it {pod} -c {container} -n {namespace} -- {shell}"


class LifecycleController:
    """Drives one debug session from creation to teardown.

    Standalone, copy and ephemeral sessions share the same flow:
    build -> create -> (wait ready -> attach -> teardown) or idle.
    Copy and ephemeral sessions first check for prior sessions against
    the same target.
    """

    def __init__(
        self,
        client: KubectlClient,
        config: DebugConfig,
        choose: Callable[[str, str], str] = ask_existing_or_new,
        sleep: Callable[[float], None] = time.sleep,
        namer: Callable[[str | None], str] = generate_session_name,
    ) -> None:
        self._client = client
        self._config = config
        self._choose = choose
        self._sleep = sleep
        self._namer = namer
        self.state = SessionState.BUILDING
        self.spec: SessionSpec | None = None

    def _transition(self, state: SessionState) -> None:
        logger.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self) -> int:
        """Run the session.

        Returns:
            Exit code of the attach (0 when nothing was attached).

        Raises:
            KpdbugError: On creation failure, readiness timeout or when the
                target pod does not exist.
        """
        config = self._config

        if config.mode is not SessionMode.STANDALONE:
            self._verify_target()
            decision = reconcile_collision(self._client, config, self._choose)
            if decision.existing is not None:
                return self._use_existing(decision.existing)

        spec = SessionBuilder(self._client, config).build(
            self._namer(config.pod_name or None)
        )
        self.spec = spec
        self._create(spec)

        token = self._arm_cleanup(spec)
        try:
            if not config.attach:
                self._transition(SessionState.IDLE)
                hint = exec_hint(
                    spec.pod, spec.container, spec.namespace, config.shell
                )
                print(f"You can access the pod with: {hint}", file=sys.stderr)
                return 0

            self._wait_ready(spec)
            exit_code = self._attach(spec)
            if token is not None:
                self._teardown(token)
            return exit_code
        finally:
            if token is not None:
                token.disarm()

    def _verify_target(self) -> None:
        try:
            self._client.get_jsonpath(
                "pod", self._config.pod_name, self._config.namespace,
                "{.metadata.name}",
            )
        except NotFoundError:
            raise pod_not_found(
                self._config.pod_name, self._config.namespace
            ) from None

    def _create(self, spec: SessionSpec) -> None:
        if spec.mode is SessionMode.EPHEMERAL:
            target_container = spec.manifest.get("targetContainerName", "")
            print(
                f"Adding debug container {spec.container} to pod {spec.pod} "
                f"(targeting container {target_container})...",
                file=sys.stderr,
            )
            self._client.add_ephemeral_container(
                spec.pod,
                spec.namespace,
                spec.manifest,
                kubectl_profile(spec.policy.profile),
            )
        else:
            if spec.target:
                print(
                    f"Creating debug pod {spec.name} as a copy of {spec.target}...",
                    file=sys.stderr,
                )
            else:
                print(f"Creating debug pod {spec.name}...", file=sys.stderr)
            self._client.create(spec.manifest)

        self._transition(SessionState.CREATED)
        logger.info("Debug session %s/%s created", spec.namespace, spec.name)

    def _arm_cleanup(self, spec: SessionSpec) -> CleanupToken | None:
        if not self._config.remove_after:
            return None
        if spec.mode is SessionMode.EPHEMERAL:
            logger.warning(
                "--rm has no effect on ephemeral debug containers; "
                "pod %s is left untouched",
                spec.pod,
            )
            return None

        token = CleanupToken(self._client, spec.pod, spec.namespace)
        token.arm()
        return token

    def _is_ready(self, spec: SessionSpec) -> bool:
        if spec.mode is SessionMode.EPHEMERAL:
            return self._client.ephemeral_container_running(
                spec.pod, spec.container, spec.namespace
            )
        return self._client.pod_phase(spec.pod, spec.namespace) == "Running"

    def _wait_ready(self, spec: SessionSpec) -> None:
        """Poll until the session is running.

        Raises:
            DebugTimeoutError: If the session is not running after
                max_attempts polls. The session is left in place.
        """
        self._transition(SessionState.WAITING_READY)
        print("Waiting for pod to be ready...", file=sys.stderr)

        for _ in range(self._config.max_attempts):
            if self._is_ready(spec):
                return
            self._sleep(self._config.poll_interval)

        waited = self._config.max_attempts * self._config.poll_interval
        err = timeout_error("pod ready", f"{waited:g}s")
        err.command = f"kubectl describe pod {spec.pod} -n {spec.namespace}"
        raise err

    def _attach(self, spec: SessionSpec) -> int:
        self._transition(SessionState.ATTACHED)
        return self._client.attach_interactive(
            spec.pod, spec.namespace, spec.container
        )

    def _teardown(self, token: CleanupToken) -> None:
        self._transition(SessionState.TERMINATING)
        token.fire()
        self._transition(SessionState.GONE)

    def _use_existing(self, name: str) -> int:
        config = self._config
        print(f"Using existing debug pod: {name}", file=sys.stderr)

        if not config.attach:
            self._transition(SessionState.IDLE)
            hint = exec_hint(name, DEBUG_CONTAINER, config.namespace, config.shell)
            print(f"You can access the pod with: {hint}", file=sys.stderr)
            return 0

        token = None
        if config.remove_after:
            token = CleanupToken(self._client, name, config.namespace)
            token.arm()
        try:
            self._transition(SessionState.ATTACHED)
            print("Attaching to pod...", file=sys.stderr)
            # Copied workload containers precede the debug container.
            exit_code = self._client.exec_interactive(
                name, config.namespace, [config.shell], container=DEBUG_CONTAINER
            )
            if token is not None:
                self._teardown(token)
            return exit_code
        finally:
            if token is not None:
                token.disarm()
