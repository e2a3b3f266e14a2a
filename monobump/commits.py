"""Splitting raw commit messages into CommitRecords.

Only the conventional header shape ``type(scope)!: subject`` is recognised;
anything else is kept as a free-form commit with no type. Reverts are
matched through the "This reverts commit <sha>." trailer git writes.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import CommitRecord

BREAKING_MARKER = "BREAKING CHANGE:"

_HEADER_RE = re.compile(
    r"^(?P<type>\w+)(?:\((?P<scope>[^()\r\n]*)\))?!?: (?P<subject>.+)$"
)
_REVERT_RE = re.compile(r"This reverts commit (?P<sha>[0-9a-f]{7,40})", re.IGNORECASE)


def parse_commit(message: str, sha: str) -> CommitRecord:
    """Build a CommitRecord from a raw commit message.

    Examples:
        "feat(api): add users" → type="feat", scope="api", subject="add users"
        "BREAKING CHANGE: drop py3.8" → type=None, subject="drop py3.8"
        "Update README" → type=None, subject="Update README"
    """
    header, _, body = message.strip().partition("\n")
    header = header.strip()

    if header.startswith(BREAKING_MARKER):
        return CommitRecord(
            hash=sha,
            header=header,
            subject=header[len(BREAKING_MARKER) :].strip(),
            body=body.strip(),
        )

    match = _HEADER_RE.match(header)
    if not match:
        return CommitRecord(hash=sha, header=header, subject=header, body=body.strip())

    return CommitRecord(
        hash=sha,
        header=header,
        type=match.group("type").lower(),
        scope=match.group("scope") or None,
        subject=match.group("subject").strip(),
        body=body.strip(),
    )


def reverted_sha(commit: CommitRecord) -> str | None:
    """Return the SHA a revert commit undoes, or None for other commits."""
    if not (commit.type == "revert" or commit.header.startswith("Revert ")):
        return None
    match = _REVERT_RE.search(commit.body)
    return match.group("sha") if match else None


def filter_reverted(commits: Iterable[CommitRecord]) -> list[CommitRecord]:
    """Drop commits reverted within the same range, along with their reverts.

    A revert of a commit outside the range is kept, since it still changes
    the package relative to the last release.
    """
    commits = list(commits)
    dropped: set[str] = set()
    for commit in commits:
        sha = reverted_sha(commit)
        if sha is None:
            continue
        target = next((c for c in commits if c.hash.startswith(sha)), None)
        if target is not None:
            dropped.add(target.hash)
            dropped.add(commit.hash)
    return [c for c in commits if c.hash not in dropped]
