"""Semantic version helpers.

Thin layer over ``nodesemver`` so the rest of the package speaks npm-style
range expressions (``^1.2.0``, ``~1.2``, ``>=1.0.0 <2.0.0``, ``*``) without
caring about the library's calling conventions.
"""

from __future__ import annotations

from collections.abc import Iterable

import nodesemver

from capwire.core.console import get_logger

logger = get_logger("versioning")

ANY_VERSION = "*"

# Every release, prereleases excluded, 0.0.0 included.
RELEASED_VERSIONS = ">=0.0.0"

# Strict parsing everywhere: "v1.0.0" and "=1.0.0" are cleaned, "1.0" is rejected.
_LOOSE = False


def clean_version(version: object) -> str | None:
    """Return the canonical form of ``version`` or None when it is not valid semver."""
    if not isinstance(version, str) or not version.strip():
        return None
    return nodesemver.clean(version.strip(), _LOOSE)


def is_valid_version(version: object) -> bool:
    return clean_version(version) is not None


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 following semver precedence."""
    return nodesemver.compare(left, right, _LOOSE)


def is_valid_range(version_range: object) -> bool:
    """True when ``version_range`` parses as an npm-style range expression."""
    if not isinstance(version_range, str) or not version_range.strip():
        return False
    return nodesemver.valid_range(version_range.strip(), _LOOSE) is not None


def satisfies(version: str, version_range: str) -> bool:
    """True when the exact ``version`` falls inside ``version_range``.

    Malformed ranges never match anything.
    """
    return bool(nodesemver.satisfies(version, version_range, loose=_LOOSE))


def best_satisfying(versions: Iterable[str], version_range: str) -> str | None:
    """Return the highest of ``versions`` satisfying ``version_range``.

    Every candidate is scanned; a candidate replaces the running best when it
    satisfies the range and is not lower than the best so far.
    """
    best: str | None = None
    for version in versions:
        if not satisfies(version, version_range):
            continue
        if best is None or compare_versions(version, best) >= 0:
            logger.debug("selecting %s as best match so far for %s", version, version_range)
            best = version

    if best is None:
        logger.debug("did not find a version that satisfies %s", version_range)
    return best


def latest(versions: Iterable[str]) -> str | None:
    """Return the highest released version, or None when there is none.

    Prereleases are skipped, matching what a "*" lookup can reach.
    """
    return best_satisfying(versions, RELEASED_VERSIONS)


__all__ = [
    "ANY_VERSION",
    "RELEASED_VERSIONS",
    "best_satisfying",
    "clean_version",
    "compare_versions",
    "is_valid_range",
    "is_valid_version",
    "latest",
    "satisfies",
]
