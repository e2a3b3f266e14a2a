"""Changelog rendering and CHANGELOG.md insertion.

A fragment is either *dedicated* (a package's own CHANGELOG.md, headed by
the new version) or *embedded* (one package's section inside the aggregate
changelog of a workspace, headed by ``name@version``).
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .models import BumpResult, CommitRecord

# Rendered in this order, each only when non-empty
SECTIONS: tuple[tuple[str, str], ...] = (
    ("breaking", "🛰️ BREAKING CHANGES"),
    ("feature", "🚀 Features"),
    ("fix", "🐛 Bug Fixes & Patches"),
    ("refactor", "🏗️ Refactors"),
)
DEPENDENCIES_TITLE = "🔗 Dependencies Updates"


def render_entry(commit: CommitRecord, remote_url: str = "") -> str:
    """Render one commit as a markdown list item.

    Examples:
        "- **api**: add users ([abc1234](https://github.com/o/r/commit/abc1234...))"
        "- add users (abc1234)" when no remote URL is known
    """
    scope = f"**{commit.scope}**: " if commit.scope else ""
    if remote_url:
        ref = f"[{commit.short_hash}]({remote_url.rstrip('/')}/commit/{commit.hash})"
    else:
        ref = commit.short_hash
    return f"- {scope}{commit.subject} ({ref})"


def render_changelog(result: BumpResult, remote_url: str = "", *, dedicated: bool = True) -> str:
    """Render a package's reasons as a markdown fragment.

    Returns an empty string when there is nothing to show (no breaking,
    feature, fix or dependency entries).
    """
    reasons = result.reasons
    if reasons.is_empty:
        return ""

    if dedicated:
        lines = [f"## {result.next_version}", ""]
        level = "###"
    else:
        lines = [f"### {result.name}@{result.next_version}", ""]
        level = "####"

    for bucket, title in SECTIONS:
        commits = getattr(reasons, bucket)
        if not commits:
            continue
        lines.extend([f"{level} {title}", ""])
        lines.extend(render_entry(c, remote_url) for c in commits)
        lines.append("")

    if reasons.deps:
        lines.extend([f"{level} {DEPENDENCIES_TITLE}", ""])
        for note in reasons.deps:
            lines.append(f"- Dependency {note.name} bump **{note.release_kind}**")
        lines.append("")

    return "\n".join(lines)


def render_aggregate(version: str, results: Iterable[BumpResult], remote_url: str = "") -> str:
    """Render the umbrella changelog of a multi-package run.

    Package sections follow the order of ``results``, which the pipeline
    passes in propagation completion order.
    """
    fragments: list[str] = []
    for result in results:
        fragment = render_changelog(result, remote_url, dedicated=False)
        if fragment:
            fragments.append(fragment)
    if not fragments:
        return ""
    return "\n".join([f"## {version}", "", *fragments])


def insert_changelog(path: Path, fragment: str, start_line: int = 0) -> bool:
    """Insert a fragment into an existing changelog at a line offset.

    All existing lines are kept verbatim. Nothing happens when the fragment
    is empty or the file does not exist.

    Returns:
        True if the file was rewritten.
    """
    if not fragment or not path.exists():
        return False
    lines = path.read_text(encoding="utf-8").split("\n")
    start = min(start_line, len(lines))
    updated = lines[:start] + fragment.split("\n") + lines[start:]
    path.write_text("\n".join(updated), encoding="utf-8")
    return True
