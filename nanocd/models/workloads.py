"""Workload and container data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class WorkloadKind(StrEnum):
    """Workload kinds whose pod templates nanocd can patch.

    Values are the keys used in the policy file.
    """

    DEPLOYMENT = "deployment"
    STATEFUL_SET = "statefulSet"
    DAEMON_SET = "daemonSet"

    @property
    def display_name(self) -> str:
        return {
            WorkloadKind.DEPLOYMENT: "Deployment",
            WorkloadKind.STATEFUL_SET: "StatefulSet",
            WorkloadKind.DAEMON_SET: "DaemonSet",
        }[self]


@dataclass(frozen=True)
class Container:
    """A container entry from a workload's pod template."""

    name: str
    image: str | None


@dataclass(frozen=True)
class WorkloadRef:
    """Identifies one workload instance: the unit a cycle reconciles."""

    namespace: str
    kind: WorkloadKind
    name: str

    def __str__(self) -> str:
        return f"{self.kind.display_name}/{self.namespace}/{self.name}"
