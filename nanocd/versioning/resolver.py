"""Version resolution: current image + policy + remote tags -> target image.

Pure and synchronous. The caller fetches tags and decides what a rejection
means; nothing here performs I/O or logs.
"""

from __future__ import annotations

from collections.abc import Iterable

from nanocd.models.config import ImagePolicy
from nanocd.models.images import ImageReference
from nanocd.models.results import Resolution
from nanocd.versioning.semver import compare, is_newer, is_valid, satisfies

MALFORMED_TAG = "missing or malformed tag"
PINNED_BY_DIGEST = "image is pinned by digest"
INVALID_VERSION = "invalid current version"


def strip_prefix(tag: str, prefix: str) -> str | None:
    """Return *tag* without *prefix*, or None when the tag does not carry it."""
    if not tag.startswith(prefix):
        return None
    return tag[len(prefix) :]


def resolve(current_image: str, policy: ImagePolicy, candidate_tags: Iterable[str]) -> Resolution:
    """Pick the greatest candidate version that beats the current one and fits the range.

    Greatest-satisfying selection makes the result independent of the order
    the registry lists tags in. Candidates without the prefix or that are
    not semantic versions are skipped silently; ``matched_candidates`` lets
    the caller warn when nothing matched at all.
    """
    ref = ImageReference.parse(current_image)
    if not ref.is_tagged:
        return Resolution.rejected(current_image, MALFORMED_TAG)
    if ref.digest:
        return Resolution.rejected(current_image, PINNED_BY_DIGEST)

    current = strip_prefix(ref.tag or "", policy.prefix)
    if current is None:
        return Resolution.rejected(current_image, MALFORMED_TAG)
    if not is_valid(current):
        return Resolution.rejected(current_image, INVALID_VERSION)

    best = current
    matched = 0
    excluded: str | None = None

    for tag in candidate_tags:
        candidate = strip_prefix(tag, policy.prefix)
        if candidate is None or not is_valid(candidate):
            continue
        matched += 1

        if not is_newer(current, candidate):
            continue
        if not satisfies(candidate, policy.version_range):
            if excluded is None or is_newer(excluded, candidate):
                excluded = candidate
            continue

        order = compare(candidate, best)
        # Equal precedence differs only in build metadata; pick by string so
        # listing order never matters.
        if order > 0 or (order == 0 and best != current and candidate > best):
            best = candidate

    if best == current:
        return Resolution.no_change(current_image, matched_candidates=matched, excluded_by_range=excluded)

    return Resolution.update(
        current_image,
        ref.with_tag(policy.prefix + best),
        matched_candidates=matched,
        excluded_by_range=excluded,
    )
