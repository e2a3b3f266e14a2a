"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from itertools import count
from pathlib import Path

import pytest

from monobump.models import CommitRecord, PackageNode
from monobump.commits import parse_commit

_shas = count(1)


def make_commit(message: str, sha: str | None = None) -> CommitRecord:
    """Build a CommitRecord from a raw message, with a unique fake SHA."""
    if sha is None:
        sha = f"{next(_shas):040x}"
    return parse_commit(message, sha)


class FakeCommitSource:
    """Async commit query returning canned commits and counting calls."""

    def __init__(self, messages: dict[str, Sequence[str]]) -> None:
        self.commits = {
            name: [make_commit(m) for m in msgs] for name, msgs in messages.items()
        }
        self.calls: list[str] = []

    async def __call__(self, node: PackageNode) -> list[CommitRecord]:
        self.calls.append(node.name)
        return self.commits.get(node.name, [])


@pytest.fixture
def commit() -> Callable[..., CommitRecord]:
    return make_commit


@pytest.fixture
def fake_source() -> Callable[[dict[str, Sequence[str]]], FakeCommitSource]:
    return FakeCommitSource


def write_pyproject(
    directory: Path, name: str, version: str = "1.0.0", deps: Sequence[str] = ()
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    dep_list = ", ".join(f'"{d}"' for d in deps)
    path = directory / "pyproject.toml"
    path.write_text(
        f'[project]\nname = "{name}"\nversion = "{version}"\n'
        f"dependencies = [{dep_list}]\n"
    )
    return path


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1", {include-group = "lint"}]
lint = ["ruff"]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A uv workspace: core, api (→ core), cli (→ api, core), docs."""
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "suite"\nversion = "2.0.0"\n\n'
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    (tmp_path / "CHANGELOG.md").write_text("# Changelog\n")
    packages = tmp_path / "packages"
    write_pyproject(packages / "core", "core", "1.0.0", ["pydantic>=2"])
    write_pyproject(packages / "api", "api", "0.4.1", ["core>=1.0", "httpx"])
    write_pyproject(packages / "cli", "cli", "3.2.0", ["api", "core"])
    write_pyproject(packages / "docs", "docs", "0.1.0")
    for name in ("core", "api", "cli"):
        (packages / name / "CHANGELOG.md").write_text(f"# {name}\n\nOlder entries\n")
    return tmp_path
