"""Core data structures for nanocd."""

from nanocd.models.config import (
    ImagePolicy,
    NamespacePolicy,
    NanoCDSettings,
    PolicyConfig,
)
from nanocd.models.images import ImageReference
from nanocd.models.results import (
    ApplyResult,
    ApplyStatus,
    ContainerDecision,
    CycleReport,
    PatchPlan,
    Resolution,
    ResolutionStatus,
    WorkloadOutcome,
    WorkloadState,
)
from nanocd.models.workloads import Container, WorkloadKind, WorkloadRef

__all__ = [
    "ApplyResult",
    "ApplyStatus",
    "Container",
    "ContainerDecision",
    "CycleReport",
    "ImagePolicy",
    "ImageReference",
    "NamespacePolicy",
    "NanoCDSettings",
    "PatchPlan",
    "PolicyConfig",
    "Resolution",
    "ResolutionStatus",
    "WorkloadKind",
    "WorkloadOutcome",
    "WorkloadRef",
    "WorkloadState",
]
