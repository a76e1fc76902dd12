"""Resolution, patch and cycle report data structures."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from nanocd.models.workloads import WorkloadRef


class ResolutionStatus(StrEnum):
    """Outcome of resolving one container image against its policy."""

    UPDATE = "update"
    NO_CHANGE = "no_change"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Resolution:
    """Result of the version resolver for one image.

    ``matched_candidates`` counts the candidate tags that carried the policy
    prefix and parsed as semantic versions. ``excluded_by_range`` holds the
    highest candidate version newer than the current one that the range
    ruled out; it is diagnostic only and never becomes the target.
    """

    status: ResolutionStatus
    current_image: str
    target_image: str | None = None
    reason: str = ""
    matched_candidates: int = 0
    excluded_by_range: str | None = None

    @classmethod
    def update(cls, current_image: str, target_image: str, **kwargs: object) -> Resolution:
        return cls(ResolutionStatus.UPDATE, current_image, target_image=target_image, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def no_change(cls, current_image: str, **kwargs: object) -> Resolution:
        return cls(ResolutionStatus.NO_CHANGE, current_image, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def rejected(cls, current_image: str, reason: str) -> Resolution:
        return cls(ResolutionStatus.REJECTED, current_image, reason=reason)


@dataclass(frozen=True)
class ContainerDecision:
    """What the planner decided for one container and why."""

    container: str
    image: str | None
    repository: str | None = None
    resolution: Resolution | None = None

    @property
    def has_policy(self) -> bool:
        return self.resolution is not None


@dataclass(frozen=True)
class PatchPlan:
    """Container name -> new image mapping for one workload, plus diagnostics."""

    patch: dict[str, str] = field(default_factory=dict)
    decisions: list[ContainerDecision] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.patch


class ApplyStatus(StrEnum):
    """Outcome of submitting a patch to the orchestrator."""

    APPLIED = "applied"
    NOOP = "noop"
    FAILED = "failed"


@dataclass(frozen=True)
class ApplyResult:
    """Result of ``apply_image_patch``.

    ``applied`` is the subset of the requested mapping that matched a live
    container and was written.
    """

    status: ApplyStatus
    applied: dict[str, str] = field(default_factory=dict)
    reason: str = ""


class WorkloadState(StrEnum):
    """Terminal state reached by one (namespace, kind, name) triple in a cycle."""

    NOT_FOUND = "not_found"
    READ_FAILED = "read_failed"
    UP_TO_DATE = "up_to_date"
    PLANNED = "planned"
    APPLIED = "applied"
    NOOP = "noop"
    APPLY_FAILED = "apply_failed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class WorkloadOutcome:
    """Report entry for one triple."""

    workload: WorkloadRef
    state: WorkloadState
    patch: dict[str, str] = field(default_factory=dict)
    detail: str = ""
    decisions: list[ContainerDecision] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "namespace": self.workload.namespace,
            "kind": self.workload.kind.display_name,
            "name": self.workload.name,
            "state": self.state.value,
            "patch": dict(self.patch),
            "detail": self.detail,
            "containers": [_decision_to_dict(d) for d in self.decisions],
        }


@dataclass
class CycleReport:
    """Everything one reconciliation cycle did. Rebuilt from scratch every tick."""

    started_at: datetime
    finished_at: datetime | None = None
    dry_run: bool = False
    interrupted: bool = False
    outcomes: list[WorkloadOutcome] = field(default_factory=list)
    cycle_id: str = field(default_factory=lambda: uuid4().hex[:12])

    def counts(self) -> dict[str, int]:
        """Number of triples per terminal state."""
        return dict(Counter(o.state.value for o in self.outcomes))

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, object]:
        return {
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "dry_run": self.dry_run,
            "interrupted": self.interrupted,
            "counts": self.counts(),
            "workloads": [o.to_dict() for o in self.outcomes],
        }


def _decision_to_dict(decision: ContainerDecision) -> dict[str, object]:
    out: dict[str, object] = {"container": decision.container, "image": decision.image}
    res = decision.resolution
    if res is None:
        out["status"] = "no_policy"
        return out
    out["status"] = res.status.value
    if res.target_image:
        out["target"] = res.target_image
    if res.reason:
        out["reason"] = res.reason
    if res.excluded_by_range:
        out["excluded_by_range"] = res.excluded_by_range
    return out
