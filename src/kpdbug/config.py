"""Configuration values passed into every kpdbug entry point."""

from __future__ import annotations

import enum
from dataclasses import dataclass

DEFAULT_IMAGE = "busybox:latest"
DEFAULT_PROFILE = "general"
DEFAULT_NAMESPACE = "default"
DEFAULT_SHELL = "sh"


class SessionMode(enum.Enum):
    """Shape of a debug session."""

    STANDALONE = "standalone"
    COPY = "copy"
    EPHEMERAL = "ephemeral"


@dataclass
class DebugConfig:
    """Configuration for creating or re-entering a debug session.

    Attributes:
        namespace: Namespace of the session (and of the target pod).
        pod_name: Target pod. Empty means a standalone session.
        image: Debug container image.
        interactive: Keep stdin open.
        tty: Allocate a terminal.
        remove_after: Delete the session when the operator leaves it.
        force: Skip the collision check and always create a new session.
        copy: Copy the target pod instead of injecting an ephemeral container.
        assume_yes: Answer prompts with their default.
        profile: Security profile name.
        cpu_request: CPU request of the debug container.
        memory_request: Memory request of the debug container.
        memory_limit: Memory limit of the debug container.
        shell: Shell used for interactive sessions and exec hints.
        poll_interval: Seconds between readiness checks.
        max_attempts: Number of readiness checks before giving up.
    """

    namespace: str = DEFAULT_NAMESPACE
    pod_name: str = ""
    image: str = DEFAULT_IMAGE
    interactive: bool = False
    tty: bool = False
    remove_after: bool = False
    force: bool = False
    copy: bool = False
    assume_yes: bool = False
    profile: str = DEFAULT_PROFILE
    cpu_request: str = "100m"
    memory_request: str = "128Mi"
    memory_limit: str = "512Mi"
    shell: str = DEFAULT_SHELL
    poll_interval: float = 1.0
    max_attempts: int = 30

    @property
    def mode(self) -> SessionMode:
        if not self.pod_name:
            return SessionMode.STANDALONE
        if self.copy:
            return SessionMode.COPY
        return SessionMode.EPHEMERAL

    @property
    def attach(self) -> bool:
        """Whether the operator wants an interactive session now."""
        return self.interactive and self.tty


@dataclass
class ListConfig:
    """Configuration for listing debug sessions."""

    namespace: str = DEFAULT_NAMESPACE
    all_namespaces: bool = False
    output: str = "table"


@dataclass
class CleanConfig:
    """Reclamation criteria for one `clean` invocation.

    Attributes:
        namespace: Namespace to clean when not cleaning all namespaces.
        all_namespaces: Clean across every namespace.
        older_than: Minimum age as a duration string (e.g. "1h", "30m").
        force: Delete without asking for confirmation.
    """

    namespace: str = DEFAULT_NAMESPACE
    all_namespaces: bool = False
    older_than: str | None = None
    force: bool = False
