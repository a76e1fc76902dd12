"""Container registry access for nanocd.

Exports:
    TagProvider         -- Interface: list every tag of a repository.
    RegistryTagProvider -- Docker Registry HTTP API v2 implementation (httpx).
"""

from nanocd.registry.base import TagProvider
from nanocd.registry.v2 import RegistryTagProvider, locate, parse_challenge

__all__ = [
    "RegistryTagProvider",
    "TagProvider",
    "locate",
    "parse_challenge",
]
