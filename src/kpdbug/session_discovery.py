"""Discovery of debug sessions by label."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from kpdbug.cluster import KubectlClient

# Every session object carries TYPE_LABEL=TYPE_VALUE. Sessions created for a
# target pod also carry TARGET_LABEL=<target pod name>.
TYPE_LABEL = "debug-tool/type"
TYPE_VALUE = "debug-pod"
TARGET_LABEL = "debug-tool/target"


@dataclass(frozen=True)
class DiscoveryRecord:
    """A debug session as observed in the cluster.

    Attributes:
        name: Pod name.
        namespace: Pod namespace.
        target: Target pod name, or None for standalone sessions.
        phase: Observed pod phase.
        created_at: Creation timestamp.
        image: Image of the first container.
        node: Node the pod is scheduled on.
    """

    name: str
    namespace: str
    target: str | None
    phase: str
    created_at: datetime
    image: str
    node: str


def discovery_labels(target: str | None = None) -> dict[str, str]:
    labels = {TYPE_LABEL: TYPE_VALUE}
    if target:
        labels[TARGET_LABEL] = target
    return labels


def session_selector(target: str | None = None) -> str:
    """Build the label selector matching debug sessions."""
    return ",".join(f"{k}={v}" for k, v in discovery_labels(target).items())


def parse_timestamp(value: str) -> datetime:
    """Parse a Kubernetes RFC 3339 timestamp into an aware datetime."""
    if not value:
        return datetime.fromtimestamp(0, UTC)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def record_from_pod(pod: dict[str, Any]) -> DiscoveryRecord:
    metadata = pod.get("metadata", {})
    spec = pod.get("spec", {})
    labels = metadata.get("labels") or {}
    containers = spec.get("containers") or []

    return DiscoveryRecord(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        target=labels.get(TARGET_LABEL) or None,
        phase=pod.get("status", {}).get("phase", "Unknown"),
        created_at=parse_timestamp(metadata.get("creationTimestamp", "")),
        image=containers[0].get("image", "") if containers else "",
        node=spec.get("nodeName", ""),
    )


def find_sessions(
    client: KubectlClient,
    namespace: str,
    all_namespaces: bool = False,
    target: str | None = None,
) -> list[DiscoveryRecord]:
    """Find debug sessions.

    Args:
        client: Cluster client.
        namespace: Namespace to search (ignored with all_namespaces).
        all_namespaces: Search every namespace.
        target: Only return sessions created for this target pod.

    Returns:
        Discovery records in the order the cluster returned them. An empty
        cluster yields an empty list, never an error.
    """
    pods = client.list_pods(
        session_selector(target),
        namespace=namespace,
        all_namespaces=all_namespaces,
    )
    return [record_from_pod(pod) for pod in pods]
