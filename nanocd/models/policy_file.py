"""Schema of the YAML policy file.

The models mirror the file's camelCase keys through aliases and reject
unknown keys. They only exist during loading: ``PolicyFile.to_policy()``
hands the rest of the process plain frozen dataclasses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from nanocd.models.config import ImagePolicy, NamespacePolicy, PolicyConfig
from nanocd.models.images import ImageReference
from nanocd.models.workloads import WorkloadKind
from nanocd.versioning.semver import validate_range

DEFAULT_REFRESH_INTERVAL = 60.0


class ImageFile(BaseModel):
    """``images.<repository>`` entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prefix: str = ""
    version_match: str = Field(..., alias="versionMatch")

    @field_validator("version_match")
    @classmethod
    def check_range(cls, value: str) -> str:
        validate_range(value)
        return value

    def to_image_policy(self) -> ImagePolicy:
        return ImagePolicy(prefix=self.prefix, version_range=self.version_match)


class NamespaceFile(BaseModel):
    """``namespaces.<name>`` entry: workloads to watch and their image policies."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    images: dict[str, ImageFile]
    deployment: list[str] | None = None
    stateful_set: list[str] | None = Field(default=None, alias="statefulSet")
    daemon_set: list[str] | None = Field(default=None, alias="daemonSet")
    discord_webhook: str | None = Field(default=None, alias="discordWebhook")
    webhook: str | None = None

    @field_validator("images", mode="before")
    @classmethod
    def null_images_are_empty(cls, value: Any) -> Any:
        # "images:" with nothing under it
        return {} if value is None else value

    @field_validator("images")
    @classmethod
    def check_repositories(cls, value: dict[str, ImageFile]) -> dict[str, ImageFile]:
        for repository in value:
            if not repository:
                raise ValueError("image repository must be a non-empty string")
            ref = ImageReference.parse(repository)
            if ref.tag or ref.digest:
                raise ValueError(f"image key {repository!r} must be a repository without tag or digest")
        return value

    @field_validator("deployment", "stateful_set", "daemon_set", mode="before")
    @classmethod
    def require_list(cls, value: Any) -> Any:
        if not isinstance(value, list) or not value:
            raise ValueError("must be a non-empty list of workload names")
        return value

    @field_validator("deployment", "stateful_set", "daemon_set")
    @classmethod
    def check_names(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        for name in value:
            if not name:
                raise ValueError("workload names must be non-empty strings")
            if name in seen:
                raise ValueError(f"workload {name!r} is listed twice")
            seen.add(name)
        return value

    @field_validator("discord_webhook", "webhook")
    @classmethod
    def check_url(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value

    @model_validator(mode="after")
    def single_webhook(self) -> NamespaceFile:
        if self.discord_webhook is not None and self.webhook is not None:
            raise ValueError("set only one of discordWebhook, webhook")
        return self

    def to_namespace(self, name: str) -> NamespacePolicy:
        listed = {
            WorkloadKind.DEPLOYMENT: self.deployment,
            WorkloadKind.STATEFUL_SET: self.stateful_set,
            WorkloadKind.DAEMON_SET: self.daemon_set,
        }
        return NamespacePolicy(
            name=name,
            workloads={kind: tuple(names) for kind, names in listed.items() if names is not None},
            images={repo: image.to_image_policy() for repo, image in self.images.items()},
            notification_url=self.discord_webhook or self.webhook,
        )


class PolicyFile(BaseModel):
    """Root of the policy file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    refresh_interval_seconds: float = Field(default=DEFAULT_REFRESH_INTERVAL, alias="refreshIntervalSeconds")
    namespaces: dict[str, NamespaceFile]

    @field_validator("refresh_interval_seconds", mode="before")
    @classmethod
    def require_number(cls, value: Any) -> Any:
        # pydantic would accept "60" and True
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a number")
        return value

    @field_validator("refresh_interval_seconds")
    @classmethod
    def at_least_one_second(cls, value: float) -> float:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("namespaces")
    @classmethod
    def check_names(cls, value: dict[str, NamespaceFile]) -> dict[str, NamespaceFile]:
        if "" in value:
            raise ValueError("namespace name must be a non-empty string")
        return value

    def to_policy(self) -> PolicyConfig:
        return PolicyConfig(
            namespaces={name: ns.to_namespace(name) for name, ns in self.namespaces.items()},
            refresh_interval_seconds=float(self.refresh_interval_seconds),
        )
