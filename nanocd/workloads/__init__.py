"""Orchestrator access for nanocd.

Exports:
    WorkloadAccessor           -- Interface: read containers, apply image patches.
    KubernetesWorkloadAccessor -- kubernetes-asyncio implementation.
    build_image_patch          -- name -> image mapping to JSON Patch operations.
    create_api_client          -- In-cluster / kubeconfig ApiClient factory.
"""

from nanocd.workloads.base import WorkloadAccessor
from nanocd.workloads.kubernetes import (
    KubernetesWorkloadAccessor,
    build_image_patch,
    containers_of,
    create_api_client,
)

__all__ = [
    "KubernetesWorkloadAccessor",
    "WorkloadAccessor",
    "build_image_patch",
    "containers_of",
    "create_api_client",
]
