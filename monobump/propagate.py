"""Bump propagation across the internal dependency graph.

Each package is resolved at most once per run. Resolution is depth-first
and lazy: resolving a package first resolves its internal dependencies, and
a dependency that bumped forces (and caps) a PATCH release of the dependent.

The cache maps a package name to the asyncio Task computing its BumpResult.
The task is created and stored before anything is awaited, so a package
shared by several dependents (a diamond) is queried and computed once and
every dependent awaits the same task.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence

from .classify import classify_commits, resolve_severity
from .graph import check_acyclic, internal_deps
from .models import BumpResult, CommitRecord, DependencyBumpNote, PackageNode, ReasonSet
from .severity import cap_for_dependency_bump, propagates_to_dependents
from .versions import bump_version

CommitQuery = Callable[[PackageNode], Awaitable[Sequence[CommitRecord]]]


class BumpPropagator:
    """Resolves one BumpResult per package for a single run.

    Args:
        packages: Every package of the run. Dependencies naming packages
            outside this set are external and ignored.
        query: Async callable returning a package's commits since its last
            release tag.
        release_stage: Keep current versions; the release was already
            prepared and is being confirmed.

    Raises:
        ConfigurationError: If the internal dependency graph has a cycle.
    """

    def __init__(
        self,
        packages: Iterable[PackageNode],
        query: CommitQuery,
        *,
        release_stage: bool = False,
    ) -> None:
        self.packages: dict[str, PackageNode] = {p.name: p for p in packages}
        check_acyclic(self.packages)
        self._query = query
        self._release_stage = release_stage
        self._cache: dict[str, asyncio.Task[BumpResult]] = {}
        # Results in the order they completed (dependencies first)
        self.completed: list[BumpResult] = []

    def resolve(self, name: str) -> asyncio.Task[BumpResult]:
        """Return the task resolving ``name``, starting it on first demand."""
        task = self._cache.get(name)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._compute(self.packages[name]), name=f"resolve:{name}"
            )
            self._cache[name] = task
        return task

    async def resolve_all(self) -> list[BumpResult]:
        """Resolve every package, in the order the packages were given."""
        for name in self.packages:
            await self.resolve(name)
        return list(self.completed)

    async def _own_reasons(self, node: PackageNode) -> ReasonSet:
        commits = await self._query(node)
        return classify_commits(commits)

    async def _compute(self, node: PackageNode) -> BumpResult:
        # The own-history query runs while dependencies resolve
        own = asyncio.get_running_loop().create_task(self._own_reasons(node))
        try:
            notes: list[DependencyBumpNote] = []
            for dep in internal_deps(node, self.packages):
                dep_result = await self.resolve(dep)
                if propagates_to_dependents(dep_result.severity):
                    notes.append(
                        DependencyBumpNote(
                            name=dep_result.name,
                            release_kind=dep_result.severity.release_kind,
                        )
                    )
            reasons = await own
        except BaseException:
            _discard(own)
            raise

        severity = cap_for_dependency_bump(resolve_severity(reasons), bool(notes))
        if self._release_stage:
            next_version = node.version
        else:
            next_version = bump_version(node.version, severity)

        result = BumpResult(
            package=node,
            severity=severity,
            next_version=next_version,
            reasons=reasons.with_deps(notes),
        )
        self.completed.append(result)
        return result


def _discard(task: asyncio.Task) -> None:
    """Cancel a task that is no longer needed, or consume its outcome."""
    if not task.done():
        task.cancel()
    elif not task.cancelled():
        task.exception()


async def propagate(
    packages: Iterable[PackageNode],
    query: CommitQuery,
    *,
    release_stage: bool = False,
) -> list[BumpResult]:
    """Resolve all packages and return their results in completion order."""
    propagator = BumpPropagator(packages, query, release_stage=release_stage)
    return await propagator.resolve_all()


def calculate_bumps(
    packages: Iterable[PackageNode],
    query: CommitQuery,
    *,
    release_stage: bool = False,
) -> list[BumpResult]:
    """Synchronous entry point: run the propagation on a fresh event loop."""
    return asyncio.run(propagate(packages, query, release_stage=release_stage))
