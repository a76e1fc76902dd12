"""Tests for the patch planner."""

from __future__ import annotations

from nanocd.models.config import ImagePolicy
from nanocd.models.results import ResolutionStatus
from nanocd.models.workloads import Container, WorkloadKind, WorkloadRef
from nanocd.planner import PatchPlanner
from tests.fakes import FakeTagProvider

_API_POLICY = {"registry/api": ImagePolicy(prefix="v", version_range="<2.0.0")}
_API_TAGS = {"registry/api": ["v1.2.0", "v1.3.0", "v2.0.0", "latest"]}


class TestPatchPlanner:
    async def test_single_container_update(self) -> None:
        planner = PatchPlanner(FakeTagProvider(_API_TAGS))
        plan = await planner.plan([Container("api", "registry/api:v1.2.0")], _API_POLICY)
        assert plan.patch == {"api": "registry/api:v1.3.0"}
        assert not plan.is_empty

    async def test_up_to_date(self) -> None:
        planner = PatchPlanner(FakeTagProvider({"registry/api": ["v1.2.0"]}))
        plan = await planner.plan([Container("api", "registry/api:v1.2.0")], _API_POLICY)
        assert plan.is_empty
        assert plan.decisions[0].resolution is not None
        assert plan.decisions[0].resolution.status is ResolutionStatus.NO_CHANGE

    async def test_container_without_policy_is_untouched(self) -> None:
        tags = FakeTagProvider(_API_TAGS)
        plan = await PatchPlanner(tags).plan([Container("sidecar", "envoyproxy/envoy:v1.28.0")], _API_POLICY)
        assert plan.is_empty
        assert plan.decisions[0].repository == "envoyproxy/envoy"
        assert not plan.decisions[0].has_policy
        assert tags.calls == []

    async def test_container_without_image_is_untouched(self) -> None:
        tags = FakeTagProvider(_API_TAGS)
        plan = await PatchPlanner(tags).plan([Container("broken", None)], _API_POLICY)
        assert plan.is_empty
        assert plan.decisions[0].repository is None
        assert tags.calls == []

    async def test_malformed_current_tag_is_rejected_and_siblings_continue(self) -> None:
        policy = {
            "registry/api": ImagePolicy("v", "<2.0.0"),
            "registry/worker": ImagePolicy("", "^3.0.0"),
        }
        tags = FakeTagProvider({"registry/api": ["v1.3.0"], "registry/worker": ["3.0.0", "3.4.1"]})
        plan = await PatchPlanner(tags).plan(
            [Container("api", "registry/api:latest"), Container("worker", "registry/worker:3.0.0")],
            policy,
        )
        assert plan.patch == {"worker": "registry/worker:3.4.1"}
        api = plan.decisions[0].resolution
        assert api is not None
        assert api.status is ResolutionStatus.REJECTED

    async def test_tags_fetched_once_per_repository(self) -> None:
        tags = FakeTagProvider(_API_TAGS)
        plan = await PatchPlanner(tags).plan(
            [Container("api", "registry/api:v1.2.0"), Container("api-canary", "registry/api:v1.3.0")],
            _API_POLICY,
        )
        assert tags.calls == ["registry/api"]
        assert plan.patch == {"api": "registry/api:v1.3.0"}

    async def test_registry_failure_rejects_only_that_repository(self) -> None:
        policy = {
            "registry/api": ImagePolicy("v", "<2.0.0"),
            "registry/worker": ImagePolicy("v", "*"),
        }
        tags = FakeTagProvider({"registry/worker": ["v1.0.0", "v1.1.0"]}, failures={"registry/api": "HTTP 503"})
        plan = await PatchPlanner(tags).plan(
            [
                Container("api", "registry/api:v1.2.0"),
                Container("api-copy", "registry/api:v1.2.0"),
                Container("worker", "registry/worker:v1.0.0"),
            ],
            policy,
            WorkloadRef("prod", WorkloadKind.DEPLOYMENT, "api"),
        )
        assert plan.patch == {"worker": "registry/worker:v1.1.0"}
        assert tags.calls == ["registry/api", "registry/worker"]
        rejected = plan.decisions[0].resolution
        assert rejected is not None
        assert rejected.status is ResolutionStatus.REJECTED
        assert rejected.reason == "registry unavailable: HTTP 503"

    async def test_each_plan_fetches_fresh_tags(self) -> None:
        tags = FakeTagProvider({"registry/api": list(_API_TAGS["registry/api"])})
        planner = PatchPlanner(tags)
        await planner.plan([Container("api", "registry/api:v1.2.0")], _API_POLICY)
        tags.tags["registry/api"].append("v1.9.0")
        plan = await planner.plan([Container("api", "registry/api:v1.2.0")], _API_POLICY)
        assert plan.patch == {"api": "registry/api:v1.9.0"}
        assert tags.calls == ["registry/api", "registry/api"]
