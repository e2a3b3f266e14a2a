"""Exceptions raised by monobump.

Every failure during a run is fatal: the CLI turns any MonobumpError into a
non-zero exit before a single manifest, changelog or output is written.
"""

from __future__ import annotations


class MonobumpError(Exception):
    """Base class for all monobump errors."""


class ConfigurationError(MonobumpError):
    """Required input is missing or inconsistent (no manifest, cycles, ...)."""


class ParseError(MonobumpError):
    """A commit range, raw log or version string could not be parsed."""


class InvalidVersion(ParseError):
    """A version string is not a valid semantic version."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Invalid semantic version: {version!r}")
        self.version = version


class ExternalQueryFailure(MonobumpError):
    """A git query (tags, log, config) failed."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.args[0]}\n{self.stderr.strip()}"
        return str(self.args[0])
