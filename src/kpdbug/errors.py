"""Error taxonomy for kpdbug.

Failures from kubectl are classified once, where the command runs, into one
of the kinds below. Each error carries a human-readable message, an
actionable suggestion and, where useful, a literal remediation command.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    """Kinds of failure surfaced by kpdbug."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CLUSTER_UNREACHABLE = "cluster_unreachable"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    UNCLASSIFIED = "unclassified"


class KpdbugError(Exception):
    """Base exception for kpdbug errors.

    Attributes:
        kind: Taxonomy kind of the failure.
        message: Main human-readable message.
        suggestion: What the operator should check.
        command: Literal command that may help.
        original: Raw failure text from kubectl, kept for diagnosis.
    """

    kind = ErrorKind.UNCLASSIFIED

    def __init__(
        self,
        message: str,
        suggestion: str = "",
        command: str = "",
        original: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.command = command
        self.original = original

    def render(self) -> str:
        """Format the error for the terminal."""
        lines = [f"Error: {self.message}"]
        if self.suggestion:
            lines.append(f"Suggestion: {self.suggestion}")
        if self.command:
            lines.append(f"Try: {self.command}")
        if self.original:
            lines.append(f"Details: {self.original.strip()}")
        return "\n".join(lines)


class NotFoundError(KpdbugError):
    """Target pod or session does not exist."""

    kind = ErrorKind.NOT_FOUND


class PermissionDeniedError(KpdbugError):
    """The control plane refused the request."""

    kind = ErrorKind.PERMISSION_DENIED


class ClusterUnreachableError(KpdbugError):
    """Cannot reach the cluster (or kubectl is missing)."""

    kind = ErrorKind.CLUSTER_UNREACHABLE


class ValidationError(KpdbugError):
    """A user-supplied parameter is malformed."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, value: str, reason: str) -> None:
        super().__init__(
            f"Invalid {field}: '{value}' - {reason}",
            suggestion="Check the parameter value and try again",
        )
        self.field = field
        self.value = value


class DebugTimeoutError(KpdbugError):
    """An operation did not finish in time."""

    kind = ErrorKind.TIMEOUT


class UnclassifiedError(KpdbugError):
    """Anything kubectl reported that does not match a known shape."""

    kind = ErrorKind.UNCLASSIFIED


def pod_not_found(pod: str, namespace: str) -> NotFoundError:
    return NotFoundError(
        f"Pod '{pod}' not found in namespace '{namespace}'",
        suggestion="Check if the pod name is correct and the pod exists",
        command=f"kubectl get pods -n {namespace}",
    )


def timeout_error(operation: str, timeout: str, original: str = "") -> DebugTimeoutError:
    return DebugTimeoutError(
        f"Operation '{operation}' timed out after {timeout}",
        suggestion=(
            "The operation may take longer than expected. "
            "Check cluster resources and pod events"
        ),
        original=original,
    )


def classify_failure(stderr: str, operation: str) -> KpdbugError:
    """Map kubectl stderr to a taxonomy error.

    Args:
        stderr: Error output of the failed kubectl command.
        operation: Short description of what was being attempted.

    Returns:
        The matching KpdbugError subclass instance. Unmatched failures
        become UnclassifiedError carrying the original output.
    """
    text = stderr.lower()

    if "not found" in text:
        return NotFoundError(
            f"Resource not found during {operation}",
            suggestion="Check the resource name and namespace",
            original=stderr,
        )

    if "forbidden" in text or "unauthorized" in text:
        return PermissionDeniedError(
            f"Permission denied for operation: {operation}",
            suggestion=(
                "Check your RBAC permissions or contact your cluster administrator"
            ),
            command="kubectl auth can-i create pods",
            original=stderr,
        )

    if (
        "connection refused" in text
        or "no such host" in text
        or "unable to connect to the server" in text
    ):
        return ClusterUnreachableError(
            "Cannot connect to Kubernetes cluster",
            suggestion="Check your kubeconfig and cluster connectivity",
            command="kubectl cluster-info",
            original=stderr,
        )

    if "timeout" in text or "timed out" in text:
        return timeout_error(operation, "the server deadline", original=stderr)

    return UnclassifiedError(
        f"Failed to {operation}",
        suggestion="Check the error details below and verify your cluster connection",
        original=stderr,
    )
