"""Git-backed tag and commit sources.

These are the only places monobump talks to version control. Tags and
commits are always read relative to a package directory, so in a workspace
each package only sees the commits that touched it.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from .commits import filter_reverted, parse_commit
from .exceptions import ParseError
from .models import CommitRecord, PackageNode
from .shell import git, warn
from .versions import is_version, parse_version

# Field and record separators for `git log --format`
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


def expand_tag_prefix(prefix: str, name: str) -> str:
    """Substitute the package name into a tag prefix like "{name}/v"."""
    return prefix.replace("{name}", name)


def has_head(directory: Path) -> bool:
    """Whether the repository has at least one commit."""
    return bool(git("rev-parse", "--verify", "--quiet", "HEAD", cwd=directory, check=False))


def list_version_tags(
    directory: Path, prefix: str = "v", *, skip_unstable: bool = False
) -> list[str]:
    """List version tags reachable from HEAD, most recent version first.

    Only tags made of ``prefix`` followed by a semantic version are kept,
    e.g. "v1.2.3" or "pkg-a/v1.2.3" with prefix "pkg-a/v". Tags on other
    branches are ignored. A repository without commits has no tags.

    Args:
        directory: Any directory inside the repository.
        prefix: Literal tag prefix.
        skip_unstable: Ignore prerelease tags like "v2.0.0-rc.1".
    """
    if not has_head(directory):
        return []
    output = git("tag", "--list", f"{prefix}*", "--merged", "HEAD", cwd=directory)
    tags: list[str] = []
    for tag in output.splitlines():
        tag = tag.strip()
        version = tag[len(prefix) :]
        if not tag.startswith(prefix) or not is_version(version):
            continue
        if skip_unstable and parse_version(version).prerelease:
            continue
        tags.append(tag)
    return sorted(tags, key=lambda t: parse_version(t[len(prefix) :]), reverse=True)


def parse_log_output(output: str) -> list[CommitRecord]:
    """Parse `git log` output written with the record/field separators.

    Raises:
        ParseError: If a record has no hash separator.
    """
    commits: list[CommitRecord] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip()
        if not record:
            continue
        sha, sep, message = record.partition(_FIELD_SEP)
        if not sep or not sha.strip():
            raise ParseError(f"Malformed git log record: {record[:80]!r}")
        commits.append(parse_commit(message, sha.strip()))
    return commits


def read_commits(directory: Path, since: str | None = None) -> list[CommitRecord]:
    """Read the commits touching ``directory`` after ``since`` up to HEAD.

    Commits come newest first, as git lists them. Without ``since`` the whole
    history is read; a repository with no commits yields an empty list.

    Raises:
        ParseError: If ``since`` does not name a commit.
        ExternalQueryFailure: If git fails.
    """
    if not has_head(directory):
        return []

    args = ["log", f"--format=%H{_FIELD_SEP}%B{_RECORD_SEP}"]
    if since:
        resolved = git(
            "rev-parse", "--verify", "--quiet", f"{since}^{{commit}}",
            cwd=directory,
            check=False,
        )
        if not resolved:
            raise ParseError(f"Cannot resolve commit range {since}..HEAD")
        args.append(f"{since}..HEAD")
    args.extend(["--", "."])

    return parse_log_output(git(*args, cwd=directory))


def remote_url(directory: Path | None = None) -> str:
    """Web URL of the `origin` remote, or "" when there is none.

    SSH remotes are turned into https URLs; credentials and a trailing
    ".git" are dropped so the URL can be published in changelogs.

    Examples:
        "git@github.com:org/repo.git" → "https://github.com/org/repo"
        "https://token@github.com/org/repo.git" → "https://github.com/org/repo"
    """
    url = git("config", "--get", "remote.origin.url", cwd=directory, check=False)
    return normalize_remote_url(url)


def normalize_remote_url(url: str) -> str:
    url = url.strip()
    if not url:
        return ""
    if "://" not in url and ":" in url:
        # scp-like syntax: git@host:org/repo.git
        host, _, path = url.partition(":")
        url = f"https://{host.rpartition('@')[2]}/{path}"
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.scheme in ("http", "https"):
        scheme = parts.scheme
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
    else:
        # ssh:// and git:// ports are not the web port
        scheme = "https"
    path = parts.path.rstrip("/").removesuffix(".git")
    return urlunsplit((scheme, netloc, path, "", ""))


class GitCommitSource:
    """Commit query used by the propagator: commits since a package's last tag.

    Args:
        tag_prefix: Tag prefix, may contain "{name}" for per-package tags.
        skip_unstable: Ignore prerelease tags when looking for the last tag.
    """

    def __init__(self, tag_prefix: str = "v", *, skip_unstable: bool = False) -> None:
        self.tag_prefix = tag_prefix
        self.skip_unstable = skip_unstable

    def last_tag(self, node: PackageNode) -> str | None:
        prefix = expand_tag_prefix(self.tag_prefix, node.name)
        tags = list_version_tags(node.path, prefix, skip_unstable=self.skip_unstable)
        return tags[0] if tags else None

    def commits_for(self, node: PackageNode) -> list[CommitRecord]:
        tag = self.last_tag(node)
        commits = filter_reverted(read_commits(node.path, tag))
        print(f"  {node.name}: {len(commits)} commits since {tag or '<first commit>'}")
        if not commits:
            warn(f"{node.name}: no commits since last release")
        return commits

    async def __call__(self, node: PackageNode) -> list[CommitRecord]:
        return await asyncio.to_thread(self.commits_for, node)
