"""Tag provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class TagProvider(ABC):
    """Lists every tag a registry holds for an image repository.

    Implementations raise ``RegistryUnavailable`` for any failure; they never
    return a partial list.
    """

    @abstractmethod
    async def list_tags(self, repository: str) -> list[str]:
        """Return all tags for *repository* (no tag, no digest)."""

    async def close(self) -> None:  # noqa: B027
        """Release connections. Default: nothing to release."""
