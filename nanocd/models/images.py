"""Container image reference parsing."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageReference:
    """Parsed ``repository[:tag][@digest]`` reference.

    The tag separator is the first ``:`` after the last ``/`` so that a
    registry port (``localhost:5000/app``) is kept in the repository.
    """

    repository: str
    tag: str | None = None
    digest: str | None = None

    @classmethod
    def parse(cls, image: str) -> ImageReference:
        """Split *image* into repository, tag and digest.

        Examples:
            registry/api:v1.2.0       -> ("registry/api", "v1.2.0", None)
            localhost:5000/app        -> ("localhost:5000/app", None, None)
            nginx:1.25@sha256:abc...  -> ("nginx", "1.25", "sha256:abc...")
        """
        ref = image.strip()
        digest: str | None = None
        if "@" in ref:
            ref, digest = ref.split("@", 1)

        slash = ref.rfind("/")
        colon = ref.find(":", slash + 1)
        if colon == -1:
            return cls(repository=ref, tag=None, digest=digest or None)
        return cls(repository=ref[:colon], tag=ref[colon + 1 :] or None, digest=digest or None)

    @property
    def is_tagged(self) -> bool:
        return bool(self.tag)

    def with_tag(self, tag: str) -> str:
        """Render this repository with *tag*, dropping any digest pin."""
        return f"{self.repository}:{tag}"

    def __str__(self) -> str:
        out = self.repository
        if self.tag:
            out += f":{self.tag}"
        if self.digest:
            out += f"@{self.digest}"
        return out


def repository_of(image: str) -> str:
    """Return the repository part of *image* (no tag, no digest)."""
    return ImageReference.parse(image).repository
