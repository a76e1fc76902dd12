"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from nanocd.models.workloads import WorkloadKind


@dataclass(frozen=True)
class ImagePolicy:
    """Version policy for one image repository.

    ``prefix`` is the literal text that precedes the semantic version in a
    tag (``v`` in ``v1.2.3``). ``version_range`` is an npm-style range that
    candidate versions must satisfy.
    """

    prefix: str
    version_range: str


@dataclass(frozen=True)
class NamespacePolicy:
    """Which workloads of a namespace to reconcile and how their images move."""

    name: str
    workloads: dict[WorkloadKind, tuple[str, ...]] = field(default_factory=dict)
    images: dict[str, ImagePolicy] = field(default_factory=dict)
    notification_url: str | None = None

    def targets(self) -> list[tuple[WorkloadKind, str]]:
        """(kind, name) pairs in a stable order: kinds as declared, then names as listed."""
        return [(kind, name) for kind, names in self.workloads.items() for name in names]


@dataclass(frozen=True)
class PolicyConfig:
    """Contents of the policy file, immutable after load."""

    namespaces: dict[str, NamespacePolicy] = field(default_factory=dict)
    refresh_interval_seconds: float = 60.0


@dataclass
class RegistryConfig:
    """Container registry client configuration."""

    timeout_seconds: float = 10.0
    max_pages: int = 20


@dataclass
class ReconcilerConfig:
    """Reconciliation cycle configuration."""

    request_timeout_seconds: float = 10.0
    max_concurrency: int = 1
    dry_run: bool = False


@dataclass
class APIConfig:
    """Status API configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class NanoCDSettings:
    """Top-level process settings, resolved from NANOCD_* environment variables."""

    config_path: str = "/etc/nanocd/config.yaml"
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
