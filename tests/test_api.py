from __future__ import annotations

import os
from datetime import date
from pathlib import Path

import pytest

from release_pilot import ReleasePilot
from release_pilot import cli as cli_module
from release_pilot.changelog import CommitEntry
from release_pilot.config import ChangelogSettings, ProjectConfig, save_config
from release_pilot.sources import StaticTagSource


def _bootstrap_project(tmp_path: Path, config: ProjectConfig | None = None) -> Path:
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    save_config(config or ProjectConfig(), project_dir / ".pilot.yml")
    return project_dir


def test_python_api_next_version(tmp_path: Path) -> None:
    project_dir = _bootstrap_project(tmp_path, ProjectConfig(tag_prefix="v"))
    client = ReleasePilot(root=project_dir)

    assert client.context.project_root == project_dir.resolve()
    assert client.next_version("patch", tags=["v1.0.0", "v1.0.1"]) == "1.0.2"
    assert client.next_version("minor", tags=StaticTagSource(["v2.0.0"])) == "2.1.0"
    commits = [CommitEntry("a" * 40, "feat!: breaking")]
    assert client.next_version("auto", tags=["v1.4.0"], commits=commits) == "2.0.0"


def test_python_api_compare_and_calver(tmp_path: Path) -> None:
    client = ReleasePilot(root=_bootstrap_project(tmp_path))

    assert client.compare("1.0.0", "1.0.0-rc.1")
    assert not client.compare("0.9.0", "1.0.0")
    assert client.calver(tags=["24.12.0"], offset=0, now=date(2024, 12, 23)) == "24.12.1"


def test_python_api_changesets(tmp_path: Path) -> None:
    project_dir = _bootstrap_project(tmp_path)
    client = ReleasePilot(root=project_dir)

    path = client.prepend_changeset("1.0.0", "- first")
    assert path == project_dir.resolve() / "CHANGELOG.md"
    client.prepend_changeset("Unreleased")

    assert client.show_changeset("1.0.0").body == "- first"
    assert client.show_changeset("2.0.0", fallback_to_unreleased=True).name == "Unreleased"
    assert client.remove_changeset("Unreleased")
    assert not client.remove_changeset("Unreleased")


def test_python_api_generate_changelog(tmp_path: Path) -> None:
    client = ReleasePilot(root=_bootstrap_project(tmp_path, ProjectConfig(repository="acme/rocket")))

    result = client.generate_changelog(
        [CommitEntry("c" * 40, "fix: crash", author="dana")], mention_style="bold"
    )

    assert result.bump_type == "patch"
    assert result.body == (
        "### Bug Fixes\n\n"
        f"- fix: crash by **dana** in [cccccccc](https://github.com/acme/rocket/commit/{'c' * 40})"
    )


def test_python_api_update_pointers(tmp_path: Path) -> None:
    client = ReleasePilot(root=_bootstrap_project(tmp_path))
    version_file = tmp_path / "4.2.0.json"
    version_file.write_text("{}", encoding="utf-8")

    result = client.update_pointers(version_file, "4.2.0")

    assert result.updated == ["latest.json", "4.json", "4.2.json"]
    assert os.readlink(tmp_path / "4.2.json") == "4.2.0.json"


def test_python_api_plan_delegates(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    project_dir = _bootstrap_project(
        tmp_path, ProjectConfig(changelog=ChangelogSettings(policy="auto"))
    )
    client = ReleasePilot(root=project_dir)

    captured: dict[str, object] = {}

    def fake_run_release_plan(
        ctx: cli_module.CLIContext,
        *,
        version_arg: str | None,
        tag_source: StaticTagSource,
        commit_source: object,
        now: object = None,
        dry_run: bool = False,
    ) -> str:
        captured["ctx"] = ctx
        captured["version_arg"] = version_arg
        captured["tags"] = tag_source.list_tags()
        captured["dry_run"] = dry_run
        return "planned"

    monkeypatch.setattr("release_pilot.api.run_release_plan", fake_run_release_plan)

    assert client.plan("1.0.0", tags=["0.9.0"], dry_run=True) == "planned"
    assert captured["ctx"] is client.context
    assert captured["version_arg"] == "1.0.0"
    assert captured["tags"] == ["0.9.0"]
    assert captured["dry_run"] is True


def test_python_api_plan_and_workspace_order(tmp_path: Path) -> None:
    project_dir = _bootstrap_project(
        tmp_path, ProjectConfig(changelog=ChangelogSettings(policy="auto"))
    )
    client = ReleasePilot(root=project_dir)

    plan = client.plan("0.2.0", commits=[CommitEntry("d" * 40, "docs: readme")])

    assert plan.tag == "0.2.0"
    assert plan.changelog == "### Documentation\n\n- docs: readme in dddddddd"
    assert client.show_changeset("0.2.0").body == plan.changelog
    assert client.workspace_order() == []
