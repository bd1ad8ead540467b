"""Pytest fixtures and configuration for integration tests."""

from __future__ import annotations

import os
import shutil
import subprocess

import pytest

# Default debug image - can be overridden via environment variable
DEFAULT_TEST_IMAGE = "busybox:latest"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for integration tests."""
    config.addinivalue_line(
        "markers",
        "integration: integration tests requiring real infrastructure",
    )
    config.addinivalue_line(
        "markers",
        "kubernetes: tests requiring kubernetes cluster (Kind or similar)",
    )


@pytest.fixture(scope="session")
def has_kubectl() -> bool:
    """Check if kubectl is available on the system."""
    return shutil.which("kubectl") is not None


@pytest.fixture(scope="session")
def kubernetes_available(has_kubectl: bool) -> bool:
    """Check if a Kubernetes cluster is accessible."""
    if not has_kubectl:
        return False

    try:
        result = subprocess.run(
            ["kubectl", "cluster-info"],
            capture_output=True,
            text=True,
            timeout=30,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


@pytest.fixture
def require_kubernetes(kubernetes_available: bool) -> None:
    """Skip test if kubernetes cluster is not available."""
    if not kubernetes_available:
        pytest.skip("kubernetes cluster not available")


@pytest.fixture(scope="session")
def test_image() -> str:
    """Get the debug image used in integration tests.

    Can be overridden with KPDBUG_TEST_IMAGE environment variable.
    For CI with Kind, set this to an image that was loaded into the cluster.
    """
    return os.environ.get("KPDBUG_TEST_IMAGE", DEFAULT_TEST_IMAGE)
