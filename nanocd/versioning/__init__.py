"""Version resolution for nanocd.

Exports:
    resolve        -- Pick the target image for a container from remote tags.
    validate_range -- Check a semver range expression at config load time.
"""

from nanocd.versioning.resolver import INVALID_VERSION, MALFORMED_TAG, PINNED_BY_DIGEST, resolve
from nanocd.versioning.semver import validate_range

__all__ = [
    "INVALID_VERSION",
    "MALFORMED_TAG",
    "PINNED_BY_DIGEST",
    "resolve",
    "validate_range",
]
