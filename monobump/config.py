"""Run configuration.

Values come from CLI options, each of which falls back to a ``MONOBUMP_*``
environment variable (see ``monobump.cli``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError


class ReleaseConfig(BaseModel):
    """Configuration for a single run.

    Attributes:
        root: Repository root holding the root pyproject.toml.
        packages: Package directories, relative to ``root``. When empty the
                  [tool.uv.workspace] members are used, and failing that the
                  root project alone.
        stage: "prepare" computes and writes new versions; "release"
               confirms an already prepared release without writing.
        changelog_start: Line of CHANGELOG.md where new fragments go.
        tag_prefix: Version tag prefix; "{name}" expands to the package name.
        remote_url: Repository web URL for commit links; read from the
                    origin remote when not given.
        skip_unstable: Ignore prerelease tags when finding the last release.
        write: Write manifests and changelogs (False for a dry run).
    """

    root: Path = Field(default_factory=Path.cwd)
    packages: list[Path] = Field(default_factory=list)
    stage: Literal["prepare", "release"] = "prepare"
    changelog_start: int = Field(default=0, ge=0)
    tag_prefix: str = "v"
    remote_url: str | None = None
    skip_unstable: bool = False
    write: bool = True

    @property
    def is_release_stage(self) -> bool:
        return self.stage == "release"

    def package_dirs(self) -> list[Path]:
        """Declared package directories, resolved against ``root``."""
        return [p if p.is_absolute() else self.root / p for p in self.packages]


def load_config(**options: object) -> ReleaseConfig:
    """Build a ReleaseConfig, dropping options that were not provided.

    Raises:
        ConfigurationError: If a value is invalid (e.g. an unknown stage).
    """
    values = {k: v for k, v in options.items() if v is not None and v != ()}
    try:
        return ReleaseConfig(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration:\n{exc}") from exc
