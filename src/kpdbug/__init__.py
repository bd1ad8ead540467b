"""kpdbug - debug pods for running Kubernetes workloads."""

__version__ = "0.3.0"
