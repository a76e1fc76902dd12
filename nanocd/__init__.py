"""nanocd: keeps Kubernetes workloads on the newest image tag allowed by policy."""

__version__ = "0.3.0"
