"""Reconciliation cycle.

One cycle walks every (namespace, kind, workload) triple from the policy
and drives it through Reading -> Planning -> Deciding -> Applying. Each
triple reaches exactly one terminal WorkloadState. A failure in one triple
is recorded in the report and never stops the others.

Nothing survives between cycles except the policy passed in at
construction time.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import structlog

from nanocd.errors import OrchestratorError, WorkloadNotFound
from nanocd.models.config import NamespacePolicy, PolicyConfig
from nanocd.models.results import ApplyStatus, CycleReport, WorkloadOutcome, WorkloadState
from nanocd.models.workloads import WorkloadRef
from nanocd.notifications.manager import ChangeNotification, NotificationSink, NullNotificationSink, deliver
from nanocd.observability.metrics import cycle_duration_seconds, cycles_total, workloads_total
from nanocd.planner import PatchPlanner
from nanocd.registry.base import TagProvider
from nanocd.workloads.base import WorkloadAccessor

_log = structlog.get_logger(component="reconciler")


class Reconciler:
    """Runs reconciliation cycles against injected collaborators.

    Args:
        policy:          Immutable policy loaded at startup.
        workloads:       Orchestrator accessor (read + patch).
        tag_provider:    Registry tag lister.
        notifier:        Sink for applied-change notifications.
        max_concurrency: Triples processed at once; 1 means strictly sequential.
        dry_run:         Plan only; never write and never notify.
    """

    def __init__(
        self,
        policy: PolicyConfig,
        workloads: WorkloadAccessor,
        tag_provider: TagProvider,
        notifier: NotificationSink | None = None,
        max_concurrency: int = 1,
        dry_run: bool = False,
    ) -> None:
        self._policy = policy
        self._workloads = workloads
        self._planner = PatchPlanner(tag_provider)
        self._notifier = notifier or NullNotificationSink()
        self._max_concurrency = max(1, max_concurrency)
        self._dry_run = dry_run
        self._stop_requested = False

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def request_stop(self) -> None:
        """Let triples already in progress finish; skip the ones not yet started."""
        self._stop_requested = True

    def resume(self) -> None:
        """Process triples again after a stop, e.g. when the scheduler restarts."""
        self._stop_requested = False

    def triples(self) -> list[tuple[NamespacePolicy, WorkloadRef]]:
        """Every triple the policy names, in declaration order."""
        return [
            (ns_policy, WorkloadRef(namespace, kind, name))
            for namespace, ns_policy in self._policy.namespaces.items()
            for kind, name in ns_policy.targets()
        ]

    async def run_cycle(self) -> CycleReport:
        """Run one full cycle and return its report. Never raises for workload failures."""
        report = CycleReport(started_at=datetime.now(tz=UTC), dry_run=self._dry_run)
        log = _log.bind(cycle_id=report.cycle_id)
        triples = self.triples()
        log.info("cycle_started", workloads=len(triples), dry_run=self._dry_run)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _guarded(ns_policy: NamespacePolicy, ref: WorkloadRef) -> WorkloadOutcome:
            async with semaphore:
                if self._stop_requested:
                    return WorkloadOutcome(ref, WorkloadState.SKIPPED, detail="shutdown requested")
                return await self._process(ns_policy, ref, log)

        outcomes = await asyncio.gather(*(_guarded(ns, ref) for ns, ref in triples))

        report.outcomes = list(outcomes)
        report.finished_at = datetime.now(tz=UTC)
        report.interrupted = any(o.state is WorkloadState.SKIPPED for o in outcomes)

        for outcome in outcomes:
            workloads_total.labels(outcome=outcome.state.value).inc()
        cycles_total.labels(result="interrupted" if report.interrupted else "completed").inc()
        if report.duration_seconds is not None:
            cycle_duration_seconds.observe(report.duration_seconds)

        log.info(
            "cycle_finished",
            duration_seconds=round(report.duration_seconds or 0.0, 3),
            interrupted=report.interrupted,
            **report.counts(),
        )
        return report

    async def _process(
        self,
        ns_policy: NamespacePolicy,
        ref: WorkloadRef,
        log: structlog.stdlib.BoundLogger,
    ) -> WorkloadOutcome:
        wlog = log.bind(namespace=ref.namespace, kind=ref.kind.display_name, workload=ref.name)
        try:
            return await self._reconcile(ns_policy, ref, wlog)
        except Exception as exc:  # noqa: BLE001
            wlog.error("workload_reconcile_unexpected_error", error=str(exc), exc_type=type(exc).__name__)
            return WorkloadOutcome(ref, WorkloadState.ERROR, detail=f"{type(exc).__name__}: {exc}")

    async def _reconcile(
        self,
        ns_policy: NamespacePolicy,
        ref: WorkloadRef,
        wlog: structlog.stdlib.BoundLogger,
    ) -> WorkloadOutcome:
        # Reading
        try:
            containers = await self._workloads.read_containers(ref.namespace, ref.kind, ref.name)
        except WorkloadNotFound as exc:
            wlog.warning("workload_not_found")
            return WorkloadOutcome(ref, WorkloadState.NOT_FOUND, detail=str(exc))
        except OrchestratorError as exc:
            wlog.error("workload_read_failed", error=str(exc))
            return WorkloadOutcome(ref, WorkloadState.READ_FAILED, detail=str(exc))

        # Planning
        plan = await self._planner.plan(containers, ns_policy.images, ref)

        # Deciding
        if plan.is_empty:
            wlog.debug("workload_up_to_date")
            return WorkloadOutcome(ref, WorkloadState.UP_TO_DATE, decisions=plan.decisions)

        if self._dry_run:
            wlog.info("workload_patch_planned", patch=plan.patch)
            return WorkloadOutcome(ref, WorkloadState.PLANNED, patch=plan.patch, decisions=plan.decisions)

        # Applying
        result = await self._workloads.apply_image_patch(ref.namespace, ref.kind, ref.name, plan.patch)

        if result.status is ApplyStatus.FAILED:
            wlog.error("workload_patch_failed", patch=plan.patch, error=result.reason)
            return WorkloadOutcome(
                ref, WorkloadState.APPLY_FAILED, patch=plan.patch, detail=result.reason, decisions=plan.decisions
            )

        if result.status is ApplyStatus.NOOP:
            wlog.warning("workload_patch_noop", patch=plan.patch, reason=result.reason)
            return WorkloadOutcome(ref, WorkloadState.NOOP, detail=result.reason, decisions=plan.decisions)

        wlog.info("workload_patched", patch=result.applied)
        if ns_policy.notification_url:
            notification = ChangeNotification(ref.namespace, ref.kind, ref.name, dict(result.applied))
            await deliver(self._notifier, ns_policy.notification_url, notification)

        return WorkloadOutcome(ref, WorkloadState.APPLIED, patch=dict(result.applied), decisions=plan.decisions)
