"""Data models for monobump.

These Pydantic models represent the core data structures used throughout
the bump resolution pipeline. Everything produced during resolution is
frozen: a BumpResult never changes once it has been cached.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .severity import Severity


class CommitRecord(BaseModel):
    """A single commit, already split into conventional-commit fields.

    Attributes:
        hash: Full commit SHA.
        header: First line of the commit message.
        type: Conventional type ("feat", "fix", ...), None for free-form headers.
        scope: Optional scope from ``type(scope): subject``.
        subject: Header text after the type prefix (the whole header when
                 there is no type).
        body: Remaining message lines after the header.
    """

    model_config = ConfigDict(frozen=True)

    hash: str
    header: str
    type: str | None = None
    scope: str | None = None
    subject: str = ""
    body: str = ""

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


class DependencyBumpNote(BaseModel):
    """Records that an internal dependency was bumped during the run."""

    model_config = ConfigDict(frozen=True)

    name: str
    release_kind: str


class ReasonSet(BaseModel):
    """Commits grouped by the reason they contribute to a release.

    Each commit lands in at most one of the four commit buckets. ``deps`` is
    filled in by the propagator once the package's dependencies resolved.
    """

    model_config = ConfigDict(frozen=True)

    breaking: tuple[CommitRecord, ...] = ()
    feature: tuple[CommitRecord, ...] = ()
    fix: tuple[CommitRecord, ...] = ()
    refactor: tuple[CommitRecord, ...] = ()
    deps: tuple[DependencyBumpNote, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing worth a changelog entry.

        Refactors alone do not count even though they render when present.
        """
        return not (self.breaking or self.feature or self.fix or self.deps)

    def with_deps(self, notes: list[DependencyBumpNote]) -> ReasonSet:
        return self.model_copy(update={"deps": tuple(notes)})


class PackageNode(BaseModel):
    """A package taking part in a resolution run.

    Attributes:
        name: Canonical (PEP 503) package name.
        path: Package directory.
        version: Current version string from pyproject.toml.
        deps: Canonical names of published dependencies ([project]
              dependencies and optional-dependencies). Only those naming
              another package of the same run (internal deps) take part
              in propagation; external deps are ignored.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    version: str
    deps: tuple[str, ...] = ()


class BumpResult(BaseModel):
    """The resolved bump for one package, created once per run."""

    model_config = ConfigDict(frozen=True)

    package: PackageNode
    severity: Severity
    next_version: str
    reasons: ReasonSet = Field(default_factory=ReasonSet)

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def bumped(self) -> bool:
        return self.next_version != self.package.version


class RunOutcome(BaseModel):
    """Outputs of a whole run, as published to the release pipeline.

    Attributes:
        release: Whether a release is warranted.
        severity: Strongest severity across all resolved packages.
        version: Aggregate (root) next version.
        tag: Release tag for the aggregate version.
        changelog: Aggregate changelog fragment, empty when nothing to show.
        results: Per-package results in propagation completion order.
    """

    release: bool
    severity: Severity
    version: str
    tag: str
    changelog: str
    results: list[BumpResult] = Field(default_factory=list)
