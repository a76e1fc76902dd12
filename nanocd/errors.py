"""Exception hierarchy for nanocd.

Everything below the reconciliation cycle is caught per container or per
workload and turned into a report entry. Only ConfigInvalid ends the process.
"""

from __future__ import annotations


class NanoCDError(Exception):
    """Base class for every error nanocd raises on purpose."""


class ConfigInvalid(NanoCDError):
    """The policy file or an environment setting failed validation."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path
        self.message = message


class RegistryUnavailable(NanoCDError):
    """Tags could not be listed: transport failure, timeout, auth or non-200."""

    def __init__(self, repository: str, reason: str) -> None:
        super().__init__(f"registry unavailable for {repository}: {reason}")
        self.repository = repository
        self.reason = reason


class WorkloadNotFound(NanoCDError):
    """The orchestrator answered 404 for a configured workload."""

    def __init__(self, namespace: str, kind: str, name: str) -> None:
        super().__init__(f"{kind} {namespace}/{name} not found")
        self.namespace = namespace
        self.kind = kind
        self.name = name


class OrchestratorError(NanoCDError):
    """Any orchestrator failure other than not-found (transport, auth, 5xx, timeout)."""
