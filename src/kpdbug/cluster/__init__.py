"""Cluster control-plane client for kpdbug."""

from kpdbug.cluster.kubectl import KubectlClient, KubectlConfig

__all__ = [
    "KubectlClient",
    "KubectlConfig",
]
