"""Bump severity ordering and the rules for combining severities."""

from __future__ import annotations

from enum import IntEnum


class Severity(IntEnum):
    """How significant a release is.

    Ordered NONE < PATCH < MINOR < MAJOR, so the usual comparison operators
    and ``max()`` pick the more severe bump.
    """

    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3

    @property
    def release_kind(self) -> str:
        """Lowercase release type ("major", "minor", "patch"), or "" for NONE."""
        return "" if self is Severity.NONE else self.name.lower()


def strongest(*severities: Severity) -> Severity:
    """Return the most severe of the given severities (NONE when empty)."""
    return max(severities, default=Severity.NONE)


def propagates_to_dependents(severity: Severity) -> bool:
    """Whether a dependency's bump is reported to the packages depending on it.

    Only dependencies that actually bumped below the MAJOR ceiling count.
    """
    return Severity.PATCH <= severity < Severity.MAJOR


def cap_for_dependency_bump(own: Severity, dependency_bumped: bool) -> Severity:
    """Combine a package's own severity with the fact that a dependency bumped.

    A bumped dependency forces a PATCH release of the dependent and never
    more: NONE is raised to PATCH and MINOR/MAJOR are capped to PATCH.
    Without a bumped dependency the package keeps its own severity.
    """
    if not dependency_bumped:
        return own
    return Severity.PATCH
