"""pyproject.toml reading and writing.

Uses tomlkit to preserve formatting and comments when modifying
pyproject.toml files, so version bumps produce minimal, readable diffs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import tomlkit
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name
from tomlkit.exceptions import ParseError as TOMLParseError

from .exceptions import ConfigurationError, ParseError
from .models import PackageNode

MANIFEST_NAME = "pyproject.toml"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Raises:
        ConfigurationError: If the file does not exist.
        ParseError: If the file is not valid TOML.
    """
    if not path.is_file():
        raise ConfigurationError(f"No {MANIFEST_NAME} found at {path.parent}")
    try:
        return tomlkit.parse(path.read_text(encoding="utf-8"))
    except TOMLParseError as exc:
        raise ParseError(f"Invalid TOML in {path}: {exc}") from exc


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def get_all_dependency_strings(
    doc: tomlkit.TOMLDocument, *, include_groups: bool = True
) -> list[str]:
    """Collect dependency strings from a pyproject.toml.

    Gathers dependencies from three locations:
    - [project].dependencies (main runtime deps)
    - [project].optional-dependencies.* (extras like [dev], [test])
    - [dependency-groups].* (PEP 735 dependency groups), unless
      ``include_groups`` is False

    Include-group tables inside dependency groups are skipped.
    """
    project = doc.get("project", {})
    deps: list[str] = [str(d) for d in project.get("dependencies", [])]
    for group_deps in project.get("optional-dependencies", {}).values():
        deps.extend(str(d) for d in group_deps)
    if include_groups:
        for group_deps in doc.get("dependency-groups", {}).values():
            deps.extend(str(d) for d in group_deps if isinstance(d, str))
    return deps


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    Returns an empty list for a single-project repository.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    return [str(m) for m in members] if members else []


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"

    Raises:
        ParseError: If the string is not a valid PEP 508 requirement.
    """
    try:
        return canonicalize_name(Requirement(dep_str).name)
    except InvalidRequirement as exc:
        raise ParseError(f"Invalid dependency {dep_str!r}: {exc}") from exc


def pin_dep(dep_str: str, version: str) -> str:
    """Pin a PEP 508 dependency to an exact version, keeping extras and markers.

    Examples:
        pin_dep("requests>=2.0", "2.31.0") → "requests==2.31.0"
        pin_dep("pkg[b,a]~=1.0; python_version>'3.9'", "1.5.0")
            → "pkg[a,b]==1.5.0; python_version > \"3.9\""
    """
    req = Requirement(dep_str)
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}=={version}{marker}"


def read_package(directory: Path) -> PackageNode:
    """Read a package descriptor from ``directory/pyproject.toml``.

    ``deps`` holds the names of published dependencies; which of them are
    internal is decided once all packages of the run are known. Dependency
    groups are never published, so they are not edges, and a package
    naming itself (``all = ["pkg[a,b]"]``) is not its own dependency.

    Raises:
        ConfigurationError: If the directory has no pyproject.toml.
        ParseError: If any dependency string is not valid PEP 508.
    """
    doc = load_pyproject(directory / MANIFEST_NAME)
    name = get_project_name(doc, directory.resolve().name)
    published = get_all_dependency_strings(doc, include_groups=False)

    deps: list[str] = []
    for dep_str in published:
        dep_name = dep_canonical_name(dep_str)
        if dep_name != name and dep_name not in deps:
            deps.append(dep_name)
    # Group entries are pinned on write, so they must parse up front too
    for dep_str in get_all_dependency_strings(doc)[len(published) :]:
        dep_canonical_name(dep_str)

    return PackageNode(
        name=name,
        path=directory,
        version=get_project_version(doc),
        deps=tuple(deps),
    )


def write_package_version(
    directory: Path,
    new_version: str | None,
    internal_dep_versions: dict[str, str] | None = None,
) -> bool:
    """Update a package's version and pin bumped internal dependencies.

    Internal deps are pinned in [project].dependencies,
    [project].optional-dependencies.* and [dependency-groups].*. With
    ``new_version`` None only the pins are updated, and the file is left
    alone when none of them applies.

    Returns:
        True if the file was rewritten.

    Raises:
        ConfigurationError: If a new version is given and the manifest has
            no [project] table.
    """
    path = directory / MANIFEST_NAME
    doc = load_pyproject(path)
    changed = False

    if new_version is not None:
        if "project" not in doc:
            raise ConfigurationError(f"{path} has no [project] table")
        # Cast needed because tomlkit types are complex unions
        project = cast(dict[str, Any], doc["project"])
        project["version"] = new_version
        changed = True

    if internal_dep_versions:
        project = cast(dict[str, Any], doc.get("project", {}))
        groups: list[Any] = [project.get("dependencies")]
        opt_deps = project.get("optional-dependencies")
        if isinstance(opt_deps, dict):
            groups.extend(opt_deps.values())
        dep_groups = doc.get("dependency-groups")
        if isinstance(dep_groups, dict):
            groups.extend(dep_groups.values())
        for group in groups:
            if isinstance(group, list) and _pin_dep_list(group, internal_dep_versions):
                changed = True

    if changed:
        save_pyproject(path, doc)
    return changed


def _pin_dep_list(deps: list, versions: dict[str, str]) -> bool:
    """Pin internal dependencies in a list in place; True if any changed."""
    changed = False
    for i, dep_str in enumerate(deps):
        if not isinstance(dep_str, str):
            continue
        name = dep_canonical_name(str(dep_str))
        if name not in versions:
            continue
        pinned = pin_dep(str(dep_str), versions[name])
        if pinned != str(dep_str):
            deps[i] = pinned
            changed = True
    return changed
