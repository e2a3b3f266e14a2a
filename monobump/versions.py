"""Version parsing and bumping utilities.

Versions follow semver (MAJOR.MINOR.PATCH with optional prerelease/build
metadata). Incrementing drops prerelease and build metadata, per the semver
increment rules.
"""

from __future__ import annotations

import semver

from .exceptions import InvalidVersion
from .severity import Severity


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Raises:
        InvalidVersion: If the string is not a semantic version
            (e.g. "1.2", "v1.2.3" or "banana").
    """
    try:
        return semver.Version.parse(version_str.strip())
    except (TypeError, ValueError) as exc:
        raise InvalidVersion(version_str) from exc


def is_version(version_str: str) -> bool:
    """Check whether a string parses as a semantic version."""
    return semver.Version.is_valid(version_str)


def bump_version(version_str: str, severity: Severity) -> str:
    """Apply a bump severity to a version string.

    Examples:
        ("1.2.3", PATCH) → "1.2.4"
        ("1.2.3", MINOR) → "1.3.0"
        ("1.2.3", MAJOR) → "2.0.0"
        ("1.2.3", NONE) → "1.2.3"
    """
    version = parse_version(version_str)
    if severity is Severity.MAJOR:
        return str(version.bump_major())
    if severity is Severity.MINOR:
        return str(version.bump_minor())
    if severity is Severity.PATCH:
        return str(version.bump_patch())
    return version_str
