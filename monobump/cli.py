"""CLI entry point for monobump."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from .config import load_config
from .exceptions import MonobumpError
from .models import RunOutcome
from .pipeline import run_pipeline


def _run_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by `run` and `plan`, each with an env var fallback."""
    options = [
        click.option(
            "--root",
            type=click.Path(file_okay=False, path_type=Path),
            envvar="MONOBUMP_ROOT",
            help="Repository root. (default: current directory)",
        ),
        click.option(
            "-p",
            "--package",
            "packages",
            multiple=True,
            type=click.Path(file_okay=False, path_type=Path),
            envvar="MONOBUMP_PACKAGES",
            help="Package directory, relative to the root (repeatable). "
            "Defaults to the uv workspace members, or the root project.",
        ),
        click.option(
            "--stage",
            type=click.Choice(["prepare", "release"]),
            envvar="MONOBUMP_STAGE",
            help="prepare: bump and write; release: confirm a prepared release.",
        ),
        click.option(
            "--changelog-start",
            type=click.IntRange(min=0),
            envvar="MONOBUMP_CHANGELOG_START",
            help="Line of CHANGELOG.md where new entries are inserted. (default: 0)",
        ),
        click.option(
            "--tag-prefix",
            envvar="MONOBUMP_TAG_PREFIX",
            help='Version tag prefix; "{name}" expands to the package name. (default: v)',
        ),
        click.option(
            "--remote-url",
            envvar="MONOBUMP_REMOTE_URL",
            help="Repository URL used for commit links. (default: origin remote)",
        ),
        click.option(
            "--skip-unstable",
            is_flag=True,
            default=None,
            envvar="MONOBUMP_SKIP_UNSTABLE",
            help="Ignore prerelease tags when looking for the last release.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _execute(write: bool, **options: Any) -> RunOutcome:
    try:
        config = load_config(write=write, **options)
        return run_pipeline(config)
    except MonobumpError as exc:
        raise click.ClickException(str(exc)) from exc


def _write_output(output_path: Path, name: str, value: str) -> None:
    """Append a step output in the GitHub Actions output file format."""
    with open(output_path, "a", encoding="utf-8") as fh:
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        else:
            fh.write(f"{name}={value}\n")


def write_outputs(output_path: Path, outcome: RunOutcome) -> None:
    _write_output(output_path, "release", str(outcome.release).lower())
    _write_output(output_path, "version", outcome.version)
    _write_output(output_path, "tag", outcome.tag)
    _write_output(output_path, "changelog", outcome.changelog)


@click.group()
@click.version_option(package_name="monobump")
def cli() -> None:
    """Next versions and changelogs for one or many packages, from commits."""


@cli.command()
@_run_options
@click.option(
    "--github-output",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="GITHUB_OUTPUT",
    help="File receiving the step outputs. (default: $GITHUB_OUTPUT)",
)
def run(github_output: Path | None, **options: Any) -> None:
    """Bump versions, update changelogs and publish the run outputs."""
    outcome = _execute(write=True, **options)

    if github_output:
        write_outputs(github_output, outcome)
    if outcome.changelog:
        click.echo()
        click.echo(outcome.changelog)


@cli.command()
@_run_options
def plan(**options: Any) -> None:
    """Show what a run would bump, without writing anything."""
    outcome = _execute(write=False, **options)

    click.echo()
    for result in outcome.results:
        kind = result.severity.release_kind or "-"
        click.echo(f"{result.name:<30} {result.package.version:>12} → {result.next_version:<12} {kind}")
    click.echo(f"{'(aggregate)':<30} {'':>12}   {outcome.version:<12} {outcome.severity.release_kind or '-'}")
