"""Workload accessor interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from nanocd.models.results import ApplyResult
from nanocd.models.workloads import Container, WorkloadKind


class WorkloadAccessor(ABC):
    """Reads pod-template containers and rewrites their images in place."""

    @abstractmethod
    async def read_containers(self, namespace: str, kind: WorkloadKind, name: str) -> list[Container]:
        """Return the workload's containers in template order.

        Raises:
            WorkloadNotFound:  the orchestrator has no such workload.
            OrchestratorError: any other failure, including timeouts.
        """

    @abstractmethod
    async def apply_image_patch(
        self,
        namespace: str,
        kind: WorkloadKind,
        name: str,
        patch: dict[str, str],
    ) -> ApplyResult:
        """Rewrite the image of every container named in *patch*, touching nothing else.

        Never raises for orchestrator failures; they come back as
        ``ApplyStatus.FAILED``.
        """

    async def close(self) -> None:  # noqa: B027
        """Release connections. Default: nothing to release."""
