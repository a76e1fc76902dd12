"""Prometheus metrics for nanocd.

All collectors live on the default registry and are exported at /metrics
by the status API.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

cycles_total = Counter(
    "nanocd_cycles_total",
    "Reconciliation cycles by result (completed, interrupted, skipped_overlap, failed).",
    ["result"],
)

cycle_duration_seconds = Histogram(
    "nanocd_cycle_duration_seconds",
    "Wall-clock duration of a reconciliation cycle.",
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
)

workloads_total = Counter(
    "nanocd_workloads_total",
    "Workload triples processed, by terminal state.",
    ["outcome"],
)

registry_requests_total = Counter(
    "nanocd_registry_requests_total",
    "Tag list requests to container registries, by result (ok, error).",
    ["result"],
)

notifications_total = Counter(
    "nanocd_notifications_total",
    "Notification deliveries, by success (true, false).",
    ["success"],
)
