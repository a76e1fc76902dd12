"""Shared fixtures for nanocd integration tests.

Wires a Reconciler to the in-memory registry, orchestrator and notification
sink from ``tests.fakes`` so full cycles run without a cluster or network.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from nanocd.models.config import ImagePolicy, NamespacePolicy, PolicyConfig
from nanocd.models.workloads import Container, WorkloadKind
from nanocd.reconciler import Reconciler
from tests.fakes import FakeTagProvider, FakeWorkloadAccessor, RecordingSink

WEBHOOK_URL = "https://discord.example/api/webhooks/1/abc"

# ---------------------------------------------------------------------------
# Policy factory helpers
# ---------------------------------------------------------------------------


def make_namespace(
    name: str = "prod",
    deployments: tuple[str, ...] = ("api",),
    stateful_sets: tuple[str, ...] = (),
    daemon_sets: tuple[str, ...] = (),
    images: dict[str, ImagePolicy] | None = None,
    notification_url: str | None = None,
) -> NamespacePolicy:
    """Create a NamespacePolicy with sensible defaults for testing."""
    workloads: dict[WorkloadKind, tuple[str, ...]] = {}
    if deployments:
        workloads[WorkloadKind.DEPLOYMENT] = deployments
    if stateful_sets:
        workloads[WorkloadKind.STATEFUL_SET] = stateful_sets
    if daemon_sets:
        workloads[WorkloadKind.DAEMON_SET] = daemon_sets
    if images is None:
        images = {"registry/api": ImagePolicy(prefix="v", version_range="<2.0.0")}
    return NamespacePolicy(name=name, workloads=workloads, images=images, notification_url=notification_url)


def make_policy(*namespaces: NamespacePolicy) -> PolicyConfig:
    return PolicyConfig(namespaces={ns.name: ns for ns in namespaces or (make_namespace(),)})


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def tags() -> FakeTagProvider:
    return FakeTagProvider({"registry/api": ["v1.2.0", "v1.3.0", "v2.0.0", "latest"]})


@pytest.fixture()
def workloads() -> FakeWorkloadAccessor:
    return FakeWorkloadAccessor(
        {("prod", WorkloadKind.DEPLOYMENT, "api"): [Container("api", "registry/api:v1.2.0")]},
    )


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def make_reconciler(
    tags: FakeTagProvider,
    workloads: FakeWorkloadAccessor,
    sink: RecordingSink,
) -> Callable[..., Reconciler]:
    """Factory building a Reconciler over the fixture fakes; keyword overrides win."""

    def _make(policy: PolicyConfig | None = None, **overrides: Any) -> Reconciler:
        kwargs: dict[str, Any] = {
            "policy": policy or make_policy(),
            "workloads": workloads,
            "tag_provider": tags,
            "notifier": sink,
        }
        kwargs.update(overrides)
        return Reconciler(**kwargs)

    return _make
