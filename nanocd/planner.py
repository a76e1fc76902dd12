"""Patch planning: which containers of one workload move to which image."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import structlog

from nanocd.errors import RegistryUnavailable
from nanocd.models.config import ImagePolicy
from nanocd.models.images import repository_of
from nanocd.models.results import ContainerDecision, PatchPlan, Resolution, ResolutionStatus
from nanocd.models.workloads import Container, WorkloadRef
from nanocd.registry.base import TagProvider
from nanocd.versioning.resolver import resolve

_log = structlog.get_logger(component="planner")


class PatchPlanner:
    """Builds a container name -> new image mapping for a workload.

    Containers are evaluated independently. Tags are fetched at most once
    per repository within a single ``plan`` call and never kept afterwards.
    """

    def __init__(self, tag_provider: TagProvider) -> None:
        self._tags = tag_provider

    async def plan(
        self,
        containers: Sequence[Container],
        images: Mapping[str, ImagePolicy],
        workload: WorkloadRef | None = None,
    ) -> PatchPlan:
        log = _log.bind(workload=str(workload)) if workload is not None else _log
        patch: dict[str, str] = {}
        decisions: list[ContainerDecision] = []
        fetched: dict[str, list[str] | RegistryUnavailable] = {}

        for container in containers:
            if not container.image:
                decisions.append(ContainerDecision(container.name, container.image))
                continue

            repository = repository_of(container.image)
            policy = images.get(repository)
            if policy is None:
                decisions.append(ContainerDecision(container.name, container.image, repository))
                continue

            if repository not in fetched:
                try:
                    fetched[repository] = await self._tags.list_tags(repository)
                except RegistryUnavailable as exc:
                    fetched[repository] = exc

            tags = fetched[repository]
            if isinstance(tags, RegistryUnavailable):
                resolution = Resolution.rejected(container.image, f"registry unavailable: {tags.reason}")
            else:
                resolution = resolve(container.image, policy, tags)

            decisions.append(ContainerDecision(container.name, container.image, repository, resolution))
            _log_resolution(log, container.name, policy, resolution)

            if resolution.status is ResolutionStatus.UPDATE and resolution.target_image:
                patch[container.name] = resolution.target_image

        return PatchPlan(patch=patch, decisions=decisions)


def _log_resolution(
    log: structlog.stdlib.BoundLogger,
    container: str,
    policy: ImagePolicy,
    resolution: Resolution,
) -> None:
    if resolution.status is ResolutionStatus.REJECTED:
        log.warning(
            "image_rejected",
            container=container,
            image=resolution.current_image,
            reason=resolution.reason,
        )
        return

    if resolution.matched_candidates == 0:
        log.warning(
            "no_candidate_tags_matched_policy",
            container=container,
            image=resolution.current_image,
            prefix=policy.prefix,
        )
    if resolution.excluded_by_range:
        log.debug(
            "newer_version_outside_range",
            container=container,
            version=resolution.excluded_by_range,
            version_range=policy.version_range,
        )
    if resolution.status is ResolutionStatus.UPDATE:
        log.info(
            "image_update_resolved",
            container=container,
            image=resolution.current_image,
            target=resolution.target_image,
        )
