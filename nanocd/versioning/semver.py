"""Semver helpers over node-semver.

Versions are validated strictly (``1.2`` is not a version). Ranges use npm
syntax: ``<2.0.0``, ``^1.4``, ``~1.2.3``, ``1.x || >=3.0.0 <4``.
Pre-release versions only satisfy a range that names a pre-release on the
same major.minor.patch tuple, as npm does.
"""

from __future__ import annotations

import nodesemver


def is_valid(version: str) -> bool:
    """Return True if *version* is a strictly valid semantic version.

    node-semver tolerates a leading ``v``; here the version must start with
    its major number, since any literal text belongs to the policy prefix.
    """
    if not version[:1].isdigit() or version != version.strip():
        return False
    try:
        return nodesemver.parse(version, loose=False) is not None
    except (ValueError, TypeError):
        return False


def compare(a: str, b: str) -> int:
    """Semver precedence comparison: -1, 0 or 1. Build metadata is ignored."""
    return nodesemver.compare(a, b, loose=False)


def is_newer(current: str, candidate: str) -> bool:
    """Return True if *candidate* has strictly higher precedence than *current*."""
    return compare(candidate, current) > 0


def satisfies(version: str, version_range: str) -> bool:
    """Return True if *version* is inside *version_range*."""
    return bool(nodesemver.satisfies(version, version_range, loose=False))


def validate_range(version_range: str) -> None:
    """Raise ValueError if *version_range* is not a parseable range expression."""
    if not version_range.strip():
        raise ValueError("range must not be empty")
    try:
        nodesemver.make_range(version_range, loose=False)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid semver range {version_range!r}: {exc}") from exc
