"""Internal dependency graph helpers.

Edges only join packages of the same run; a dependency naming anything
else is external. The propagator resolves lazily and depth-first, so the
only up-front graph work is rejecting cycles, which it could never finish.
"""

from __future__ import annotations

from collections.abc import Mapping

from .exceptions import ConfigurationError
from .models import PackageNode

_VISITING, _DONE = 1, 2


def internal_deps(node: PackageNode, packages: Mapping[str, PackageNode]) -> list[str]:
    """Internal dependencies of a node in declaration order, without duplicates.

    A package naming itself (``all = ["pkg[a]"]`` extras) is not an edge.
    """
    seen: set[str] = {node.name}
    result: list[str] = []
    for dep in node.deps:
        if dep in packages and dep not in seen:
            result.append(dep)
            seen.add(dep)
    return result


def find_cycle(packages: Mapping[str, PackageNode]) -> list[str] | None:
    """Return one dependency cycle as a closed path, or None.

    Example:
        a → b → c → a gives ["a", "b", "c", "a"]
    """
    state: dict[str, int] = {}
    path: list[str] = []

    def visit(name: str) -> list[str] | None:
        state[name] = _VISITING
        path.append(name)
        for dep in internal_deps(packages[name], packages):
            if state.get(dep) == _VISITING:
                return path[path.index(dep) :] + [dep]
            if dep not in state:
                cycle = visit(dep)
                if cycle:
                    return cycle
        path.pop()
        state[name] = _DONE
        return None

    for name in sorted(packages):
        if name not in state:
            cycle = visit(name)
            if cycle:
                return cycle
    return None


def check_acyclic(packages: Mapping[str, PackageNode]) -> None:
    """Raise ConfigurationError naming the cycle if the graph has one."""
    cycle = find_cycle(packages)
    if cycle:
        raise ConfigurationError(f"Dependency cycle detected: {' → '.join(cycle)}")
