"""Shell and git utilities.

Provides a thin wrapper around subprocess calls for git, plus output
formatting helpers used to report pipeline progress.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from .exceptions import ExternalQueryFailure


def git(*args: str, cwd: Path | str | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "tag", "--list").
        cwd: Directory to run git in (defaults to the current directory).
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., config lookup).

    Returns:
        Stripped stdout from the git command.

    Raises:
        ExternalQueryFailure: If git is missing, or exits non-zero with check.
    """
    try:
        result = subprocess.run(
            ["git", *args], capture_output=True, text=True, check=check, cwd=cwd
        )
    except FileNotFoundError as exc:
        raise ExternalQueryFailure("git executable not found") from exc
    except subprocess.CalledProcessError as exc:
        raise ExternalQueryFailure(
            f"git {' '.join(args)} failed with exit code {exc.returncode}",
            stderr=exc.stderr or "",
        ) from exc
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a warning to stderr without stopping the pipeline."""
    print(f"WARNING: {msg}", file=sys.stderr)
