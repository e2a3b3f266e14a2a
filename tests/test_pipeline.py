"""Tests for monobump.pipeline."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from monobump.config import ReleaseConfig
from monobump.exceptions import ConfigurationError, ExternalQueryFailure
from monobump.models import CommitRecord, PackageNode
from monobump.pipeline import discover_packages, find_package_dirs, run_pipeline
from monobump.severity import Severity

REMOTE = "https://github.com/acme/suite"


def read_tree(root: Path) -> dict[str, str]:
    """Contents of every file below root, keyed by relative path."""
    return {
        str(p.relative_to(root)): p.read_text()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


class TestDiscovery:
    def test_workspace_members(self, workspace: Path) -> None:
        dirs = find_package_dirs(ReleaseConfig(root=workspace))
        assert [d.name for d in dirs] == ["api", "cli", "core", "docs"]

    def test_declared_packages_win(self, workspace: Path) -> None:
        config = ReleaseConfig(root=workspace, packages=[Path("packages/core")])
        assert find_package_dirs(config) == [workspace / "packages" / "core"]

    @patch("monobump.pipeline.step")
    def test_internal_deps_resolved(self, mock_step: MagicMock, workspace: Path) -> None:
        nodes = {n.name: n for n in discover_packages(ReleaseConfig(root=workspace))}
        assert set(nodes) == {"api", "cli", "core", "docs"}
        assert nodes["api"].deps == ("core", "httpx")
        assert nodes["cli"].deps == ("api", "core")

    @patch("monobump.pipeline.step")
    def test_single_project_fallback(self, mock_step: MagicMock, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "solo"\nversion = "1.0.0"\n')
        (node,) = discover_packages(ReleaseConfig(root=tmp_path))
        assert node.name == "solo"
        assert node.path == tmp_path

    @patch("monobump.pipeline.step")
    def test_missing_declared_manifest(self, mock_step: MagicMock, workspace: Path) -> None:
        config = ReleaseConfig(root=workspace, packages=[Path("packages/ghost")])
        with pytest.raises(ConfigurationError, match="No pyproject.toml"):
            discover_packages(config)

    @patch("monobump.pipeline.step")
    def test_duplicate_names(self, mock_step: MagicMock, workspace: Path) -> None:
        config = ReleaseConfig(
            root=workspace, packages=[Path("packages/core"), Path("packages/core")]
        )
        with pytest.raises(ConfigurationError, match="found twice"):
            discover_packages(config)


@patch("monobump.pipeline.step")
@patch("monobump.pipeline.GitCommitSource")
class TestRunPipelineWorkspace:
    """core ← api ← cli (cli also depends on core), docs standalone."""

    def test_end_to_end(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source(
            {
                "core": ["feat(model): add schema"],
                "api": ["docs: tweak readme"],
                "cli": ["BREAKING CHANGE: new flags"],
            }
        )

        outcome = run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE))

        results = {r.name: r for r in outcome.results}
        assert [r.name for r in outcome.results] == ["core", "api", "cli", "docs"]
        assert results["core"].next_version == "1.1.0"
        assert results["api"].next_version == "0.4.2"
        assert results["cli"].severity is Severity.PATCH
        assert results["cli"].next_version == "3.2.1"
        assert results["docs"].next_version == "0.1.0"

        assert outcome.release is True
        assert outcome.severity is Severity.MINOR
        assert outcome.version == "2.1.0"
        assert outcome.tag == "v2.1.0"
        assert outcome.changelog.startswith("## 2.1.0\n")
        assert (
            outcome.changelog.index("### core@1.1.0")
            < outcome.changelog.index("### api@0.4.2")
            < outcome.changelog.index("### cli@3.2.1")
        )
        assert "docs@" not in outcome.changelog

    def test_writes_versions_pins_and_changelogs(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({"core": ["feat: schema"]})

        run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE))

        packages = workspace / "packages"
        core = (packages / "core" / "pyproject.toml").read_text()
        api = (packages / "api" / "pyproject.toml").read_text()
        cli = (packages / "cli" / "pyproject.toml").read_text()
        assert 'version = "1.1.0"' in core
        assert 'version = "0.4.2"' in api
        assert '"core==1.1.0"' in api
        assert '"httpx"' in api
        assert '"api==0.4.2"' in cli
        assert '"core==1.1.0"' in cli
        assert 'version = "0.1.0"' in (packages / "docs" / "pyproject.toml").read_text()

        core_log = (packages / "core" / "CHANGELOG.md").read_text()
        assert core_log.startswith("## 1.1.0\n")
        assert core_log.endswith("# core\n\nOlder entries\n")
        api_log = (packages / "api" / "CHANGELOG.md").read_text()
        assert "- Dependency core bump **minor**" in api_log

        assert 'version = "2.1.0"' in (workspace / "pyproject.toml").read_text()
        root_log = (workspace / "CHANGELOG.md").read_text()
        assert root_log.startswith("## 2.1.0\n")
        assert root_log.endswith("# Changelog\n")

    def test_changelog_start_offset(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({"core": ["fix: leak"]})

        run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE, changelog_start=2))

        core_log = (workspace / "packages" / "core" / "CHANGELOG.md").read_text()
        assert core_log.startswith("# core\n\n## 1.0.1\n")

    def test_major_dependency_repins_unreleased_dependents(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        (workspace / "packages" / "api" / "pyproject.toml").write_text(
            '[project]\nname = "api"\nversion = "0.4.1"\n'
            'dependencies = ["core==1.0.0", "httpx"]\n'
        )
        mock_source_cls.return_value = fake_source({"core": ["BREAKING CHANGE: rewrite"]})
        api_log_before = (workspace / "packages" / "api" / "CHANGELOG.md").read_text()

        outcome = run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE))

        results = {r.name: r for r in outcome.results}
        assert results["core"].next_version == "2.0.0"
        assert results["api"].severity is Severity.NONE
        assert results["cli"].severity is Severity.NONE

        packages = workspace / "packages"
        api = (packages / "api" / "pyproject.toml").read_text()
        cli = (packages / "cli" / "pyproject.toml").read_text()
        assert 'version = "0.4.1"' in api
        assert '"core==2.0.0"' in api
        assert '"core==1.0.0"' not in api
        assert '"core==2.0.0"' in cli
        assert '"api"' in cli
        assert 'version = "3.2.0"' in cli
        assert (packages / "api" / "CHANGELOG.md").read_text() == api_log_before

    def test_dependency_groups_do_not_propagate(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        (workspace / "packages" / "docs" / "pyproject.toml").write_text(
            '[project]\nname = "docs"\nversion = "0.1.0"\ndependencies = []\n\n'
            '[dependency-groups]\ndev = ["core"]\n'
        )
        mock_source_cls.return_value = fake_source({"core": ["fix: leak"]})

        outcome = run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE))

        results = {r.name: r for r in outcome.results}
        assert results["docs"].severity is Severity.NONE
        assert results["docs"].reasons.deps == ()
        docs = (workspace / "packages" / "docs" / "pyproject.toml").read_text()
        assert 'version = "0.1.0"' in docs
        assert '"core==1.0.1"' in docs

    def test_no_commits_is_not_a_release(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({})
        before = read_tree(workspace)

        outcome = run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE))

        assert outcome.release is False
        assert outcome.severity is Severity.NONE
        assert outcome.version == "2.0.0"
        assert outcome.changelog == ""
        assert read_tree(workspace) == before

    def test_dry_run_writes_nothing(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({"core": ["feat: x"]})
        before = read_tree(workspace)

        outcome = run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE, write=False))

        assert outcome.version == "2.1.0"
        assert read_tree(workspace) == before

    def test_release_stage_keeps_versions(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({"core": ["feat: x"]})
        before = read_tree(workspace)

        outcome = run_pipeline(
            ReleaseConfig(root=workspace, remote_url=REMOTE, stage="release")
        )

        assert outcome.release is True
        assert outcome.version == "2.0.0"
        assert all(r.next_version == r.package.version for r in outcome.results)
        assert read_tree(workspace) == before

    def test_query_failure_writes_nothing(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path
    ) -> None:
        async def failing(node: PackageNode) -> list[CommitRecord]:
            if node.name == "core":
                raise ExternalQueryFailure("git log failed")
            return []

        mock_source_cls.return_value = failing
        before = read_tree(workspace)

        with pytest.raises(ExternalQueryFailure):
            run_pipeline(ReleaseConfig(root=workspace, remote_url=REMOTE))

        assert read_tree(workspace) == before

    def test_commit_source_configuration(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, workspace: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({})

        run_pipeline(
            ReleaseConfig(
                root=workspace, remote_url=REMOTE, tag_prefix="{name}/v", skip_unstable=True
            )
        )

        mock_source_cls.assert_called_once_with("{name}/v", skip_unstable=True)

    @patch("monobump.pipeline.remote_url")
    def test_remote_read_from_origin(
        self,
        mock_remote: MagicMock,
        mock_source_cls: MagicMock,
        mock_step: MagicMock,
        workspace: Path,
        fake_source,
    ) -> None:
        mock_remote.return_value = "https://github.com/acme/origin"
        mock_source_cls.return_value = fake_source({"core": ["fix: x"]})

        outcome = run_pipeline(ReleaseConfig(root=workspace))

        mock_remote.assert_called_once_with(workspace)
        assert "https://github.com/acme/origin/commit/" in outcome.changelog


@patch("monobump.pipeline.step")
@patch("monobump.pipeline.GitCommitSource")
class TestRunPipelineSingleProject:
    @pytest.fixture
    def project(self, tmp_path: Path) -> Path:
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "solo"\nversion = "0.9.0"\ndependencies = ["click"]\n'
        )
        (tmp_path / "CHANGELOG.md").write_text("# Changelog\n")
        return tmp_path

    def test_single_project_is_a_one_node_graph(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, project: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({"solo": ["fix(io): flush"]})

        outcome = run_pipeline(ReleaseConfig(root=project, remote_url=REMOTE))

        assert outcome.version == "0.9.1"
        assert outcome.tag == "v0.9.1"
        assert outcome.release is True
        assert outcome.changelog.startswith("## 0.9.1\n")
        assert "- **io**: flush" in outcome.changelog

        assert 'version = "0.9.1"' in (project / "pyproject.toml").read_text()
        changelog = (project / "CHANGELOG.md").read_text()
        assert changelog.count("## 0.9.1") == 1
        assert changelog.endswith("# Changelog\n")

    def test_self_referencing_extras(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, tmp_path: Path, fake_source
    ) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "solo"\nversion = "1.0.0"\n\n'
            '[project.optional-dependencies]\na = ["rich"]\nall = ["solo[a]"]\n'
        )
        mock_source_cls.return_value = fake_source({"solo": ["fix: x"]})

        outcome = run_pipeline(ReleaseConfig(root=tmp_path, remote_url=REMOTE))

        assert outcome.version == "1.0.1"
        assert '"solo[a]"' in (tmp_path / "pyproject.toml").read_text()

    def test_per_package_tag_prefix(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, project: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({"solo": ["feat: x"]})

        outcome = run_pipeline(
            ReleaseConfig(root=project, remote_url=REMOTE, tag_prefix="{name}-v")
        )

        assert outcome.tag == "solo-v0.10.0"

    def test_refactor_only_bumps_without_changelog(
        self, mock_source_cls: MagicMock, mock_step: MagicMock, project: Path, fake_source
    ) -> None:
        mock_source_cls.return_value = fake_source({"solo": ["refactor: tidy"]})

        outcome = run_pipeline(ReleaseConfig(root=project, remote_url=REMOTE))

        assert outcome.release is True
        assert outcome.version == "0.9.1"
        assert outcome.changelog == ""
        assert (project / "CHANGELOG.md").read_text() == "# Changelog\n"
