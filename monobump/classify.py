"""Commit classification and own-severity resolution.

Turns the commits of one package range into a ReasonSet, and a ReasonSet
into the Severity that package's own history warrants. Dependency bumps are
handled later by the propagator.
"""

from __future__ import annotations

from collections.abc import Iterable

from .commits import BREAKING_MARKER
from .models import CommitRecord, ReasonSet
from .severity import Severity

FEATURE_TYPES = frozenset({"feat"})
FIX_TYPES = frozenset({"fix", "patch"})
REFACTOR_TYPES = frozenset({"refactor"})


def is_breaking(commit: CommitRecord) -> bool:
    return commit.header.startswith(BREAKING_MARKER)


def classify_commits(commits: Iterable[CommitRecord]) -> ReasonSet:
    """Group commits into breaking/feature/fix/refactor buckets.

    Buckets are exclusive and checked in that order, so a breaking commit
    is never listed again as a feature or fix. Commits matching no bucket
    (docs, chore, free-form messages) are ignored. Order within a bucket
    follows the input order.
    """
    buckets: dict[str, list[CommitRecord]] = {
        "breaking": [],
        "feature": [],
        "fix": [],
        "refactor": [],
    }
    for commit in commits:
        if is_breaking(commit):
            buckets["breaking"].append(commit)
        elif commit.type in FEATURE_TYPES:
            buckets["feature"].append(commit)
        elif commit.type in FIX_TYPES:
            buckets["fix"].append(commit)
        elif commit.type in REFACTOR_TYPES:
            buckets["refactor"].append(commit)
    return ReasonSet(**buckets)


def resolve_severity(reasons: ReasonSet) -> Severity:
    """Severity warranted by a package's own commits (first match wins)."""
    if reasons.breaking:
        return Severity.MAJOR
    if reasons.feature:
        return Severity.MINOR
    if reasons.fix or reasons.refactor:
        return Severity.PATCH
    return Severity.NONE
