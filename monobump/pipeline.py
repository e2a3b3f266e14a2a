"""Release preparation pipeline: discover → resolve → write → summarize.

This module orchestrates a monobump run:
1. Discover the packages of the run (declared dirs, uv workspace members,
   or the root project alone)
2. Resolve one bump per package, propagating through internal deps
3. Compute the aggregate severity, version, tag and changelog
4. Write new versions and changelog fragments (prepare stage only)

Everything that can fail is computed before the first write, so a failing
run leaves manifests and changelogs untouched.
"""

from __future__ import annotations

import glob
from pathlib import Path

from .changelog import insert_changelog, render_aggregate, render_changelog
from .config import ReleaseConfig
from .exceptions import ConfigurationError
from .graph import internal_deps
from .manifest import (
    MANIFEST_NAME,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    load_pyproject,
    read_package,
    write_package_version,
)
from .models import BumpResult, PackageNode, RunOutcome
from .propagate import calculate_bumps
from .severity import Severity, strongest
from .shell import step, warn
from .vcs import GitCommitSource, expand_tag_prefix, remote_url
from .versions import bump_version

CHANGELOG_NAME = "CHANGELOG.md"


def find_package_dirs(config: ReleaseConfig) -> list[Path]:
    """Directories of the packages taking part in the run.

    Declared directories win; otherwise [tool.uv.workspace].members globs
    from the root pyproject.toml are expanded. An empty result means the
    root project is released on its own.
    """
    declared = config.package_dirs()
    if declared:
        return declared

    root_doc = load_pyproject(config.root / MANIFEST_NAME)
    member_dirs: list[Path] = []
    for pattern in get_workspace_member_globs(root_doc):
        for match in sorted(glob.glob(str(config.root / pattern))):
            p = Path(match)
            if (p / MANIFEST_NAME).exists():
                member_dirs.append(p)
    return member_dirs


def discover_packages(config: ReleaseConfig) -> list[PackageNode]:
    """Read the descriptor of every package of the run.

    Raises:
        ConfigurationError: If a declared directory has no pyproject.toml,
            or two packages share a name.
    """
    step("Discovering packages")

    dirs = find_package_dirs(config) or [config.root]
    nodes: list[PackageNode] = []
    seen: dict[str, Path] = {}
    for d in dirs:
        node = read_package(d)
        if node.name in seen:
            raise ConfigurationError(
                f"Package {node.name} found twice: {seen[node.name]} and {d}"
            )
        seen[node.name] = d
        nodes.append(node)

    by_name = {n.name: n for n in nodes}
    for node in nodes:
        deps = internal_deps(node, by_name)
        arrow = f" → [{', '.join(deps)}]" if deps else ""
        print(f"  {node.name} {node.version} ({node.path}){arrow}")

    return nodes


def is_single_project(nodes: list[PackageNode], config: ReleaseConfig) -> bool:
    """True when the run is just the root project (a one-node graph)."""
    return len(nodes) == 1 and nodes[0].path.resolve() == config.root.resolve()


def resolve_packages(nodes: list[PackageNode], config: ReleaseConfig) -> list[BumpResult]:
    """Resolve every package's bump, in propagation completion order."""
    step("Resolving bumps")

    source = GitCommitSource(config.tag_prefix, skip_unstable=config.skip_unstable)
    results = calculate_bumps(nodes, source, release_stage=config.is_release_stage)

    for result in results:
        kind = result.severity.release_kind or "none"
        print(f"  {result.name}: {result.package.version} → {result.next_version} ({kind})")
    return results


def summarize(
    results: list[BumpResult],
    nodes: list[PackageNode],
    config: ReleaseConfig,
    remote: str,
) -> RunOutcome:
    """Compute the aggregate outputs of the run.

    In single-project mode the aggregate is the project's own result. In a
    workspace the root project's version is bumped by the strongest package
    severity and the changelog lists every package section.
    """
    severity = strongest(*(r.severity for r in results))

    if is_single_project(nodes, config):
        result = results[0]
        name = result.name
        version = result.next_version
        changelog = render_changelog(result, remote, dedicated=True)
    else:
        root_doc = load_pyproject(config.root / MANIFEST_NAME)
        name = get_project_name(root_doc, config.root.resolve().name)
        current = get_project_version(root_doc)
        if config.is_release_stage:
            version = current
        else:
            version = bump_version(current, severity)
        changelog = render_aggregate(version, results, remote)

    return RunOutcome(
        release=config.is_release_stage or severity is not Severity.NONE,
        severity=severity,
        version=version,
        tag=f"{expand_tag_prefix(config.tag_prefix, name)}{version}",
        changelog=changelog,
        results=results,
    )


def apply_updates(
    outcome: RunOutcome,
    nodes: list[PackageNode],
    config: ReleaseConfig,
    remote: str,
) -> None:
    """Write new versions, internal pins and changelog fragments to disk.

    Every package naming a bumped sibling gets its requirement pinned to the
    new version, including packages that are not released themselves.
    """
    step("Writing versions and changelogs")

    bumped = {r.name: r.next_version for r in outcome.results if r.bumped}

    for result in outcome.results:
        pins = {name: version for name, version in bumped.items() if name != result.name}
        if not result.bumped:
            if pins and write_package_version(result.package.path, None, pins):
                print(f"  {result.name}: {result.package.version} (pins only)")
            continue
        write_package_version(result.package.path, result.next_version, pins)
        fragment = render_changelog(result, remote, dedicated=True)
        written = insert_changelog(
            result.package.path / CHANGELOG_NAME, fragment, config.changelog_start
        )
        suffix = f" (+{CHANGELOG_NAME})" if written else ""
        print(f"  {result.name}: {result.next_version}{suffix}")

    if is_single_project(nodes, config) or outcome.severity is Severity.NONE:
        return

    root_doc = load_pyproject(config.root / MANIFEST_NAME)
    if "project" in root_doc:
        write_package_version(config.root, outcome.version)
    else:
        warn(f"{config.root / MANIFEST_NAME} has no [project] table, root version not written")
    insert_changelog(config.root / CHANGELOG_NAME, outcome.changelog, config.changelog_start)
    print(f"  <root>: {outcome.version}")


def run_pipeline(config: ReleaseConfig) -> RunOutcome:
    """Execute a full run and return its outputs.

    Args:
        config: Run configuration. With ``write`` disabled, or in the
            release stage, nothing is written to disk.
    """
    nodes = discover_packages(config)
    results = resolve_packages(nodes, config)
    remote = config.remote_url if config.remote_url is not None else remote_url(config.root)

    outcome = summarize(results, nodes, config, remote)

    if config.write and not config.is_release_stage:
        apply_updates(outcome, nodes, config, remote)

    step("Summary")
    print(f"  release: {str(outcome.release).lower()}")
    print(f"  version: {outcome.version}")
    print(f"  tag:     {outcome.tag}")
    return outcome
