"""Integration-style tests for the release-pilot CLI."""

from __future__ import annotations

import json
import os
from pathlib import Path

import click
import pytest
import yaml
from click.testing import CliRunner

from release_pilot import __version__
from release_pilot.cli import cli, main


def write_yaml(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


def write_commits(path: Path, commits: list[dict[str, object]]) -> Path:
    path.write_text(json.dumps(commits), encoding="utf-8")
    return path


def _project(tmp_path: Path, config: dict[str, object] | None = None) -> Path:
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    if config is not None:
        write_yaml(project_dir / ".pilot.yml", config)
    return project_dir


def _last_line(output: str) -> str:
    return click.utils.strip_ansi(output).strip().splitlines()[-1]


def test_cli_version_option(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(["--version"])
    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.out.strip() == __version__


def test_version_next_explicit_and_bump(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path, {"tag_prefix": "v"})

    explicit = runner.invoke(cli, ["--root", str(project_dir), "version", "next", "1.2.3"])
    assert explicit.exit_code == 0, explicit.output
    assert _last_line(explicit.output) == "1.2.3"

    bump = runner.invoke(
        cli,
        ["--root", str(project_dir), "version", "next", "minor", "--tag", "v1.0.0", "--tag", "v0.9.0"],
    )
    assert bump.exit_code == 0, bump.output
    assert _last_line(bump.output) == "1.1.0"


def test_version_next_reads_tags_file(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)
    tags_file = project_dir / "tags.txt"
    tags_file.write_text("# tags\n1.4.0\n1.3.9\n", encoding="utf-8")

    result = runner.invoke(
        cli,
        ["--root", str(project_dir), "version", "next", "patch", "--tags-file", str(tags_file)],
    )

    assert result.exit_code == 0, result.output
    assert _last_line(result.output) == "1.4.1"


def test_version_next_rejects_v_prefix(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)

    result = runner.invoke(cli, ["--root", str(project_dir), "version", "next", "v1.2.3"])

    assert result.exit_code == 1
    assert 'Removing the "v" prefix' in result.output


def test_version_next_requires_version_under_manual_policy(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)

    result = runner.invoke(cli, ["--root", str(project_dir), "version", "next"])

    assert result.exit_code == 1
    assert "Version is required" in result.output


def test_version_next_auto_from_commits(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project_dir = _project(tmp_path, {"versioning": {"policy": "auto"}})
    commits = write_commits(
        project_dir / "commits.json",
        [
            {"hash": "b" * 40, "title": "feat: add flag"},
            {"hash": "a" * 40, "title": "fix: typo", "tags": ["1.0.0"]},
        ],
    )

    exit_code = main(
        ["--root", str(project_dir), "version", "next", "--tag", "1.0.0", "--commits", str(commits)]
    )

    captured = capsys.readouterr()
    assert exit_code == 0, captured.err
    assert captured.out.strip() == "1.1.0"
    assert "version bump: 1.0.0 -> 1.1.0 (minor bump)" in click.utils.strip_ansi(captured.err)


def test_version_compare(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["version", "compare", "1.0.0", "1.0.0-rc.1"]) == 0
    assert capsys.readouterr().out.strip() == "true"

    assert main(["version", "compare", "1.0.0-rc.1", "1.0.0"]) == 0
    assert capsys.readouterr().out.strip() == "false"

    assert main(["version", "compare", "1.0.0+a", "1.0.0+b"]) == 1
    assert "1.0.0+a" in capsys.readouterr().err


def test_version_calver(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)

    result = runner.invoke(
        cli,
        [
            "--root",
            str(project_dir),
            "version",
            "calver",
            "--tag",
            "24.12.0",
            "--tag",
            "24.12.1",
            "--offset",
            "0",
            "--now",
            "2024-12-23",
        ],
    )

    assert result.exit_code == 0, result.output
    assert _last_line(result.output) == "24.12.2"


def test_version_calver_uses_config(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(
        tmp_path, {"versioning": {"calver": {"offset": 0, "format": "%Y.%m"}}}
    )

    result = runner.invoke(
        cli, ["--root", str(project_dir), "version", "calver", "--now", "2024-03-07"]
    )

    assert result.exit_code == 0, result.output
    assert _last_line(result.output) == "2024.03.0"


def test_changeset_show(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project_dir = _project(tmp_path)
    (project_dir / "CHANGELOG.md").write_text(
        "# Changelog\n\n## Unreleased\n\n- next\n\n## 1.0.0\n\n- first\n", encoding="utf-8"
    )

    assert main(["--root", str(project_dir), "changeset", "show", "v1.0.0"]) == 0
    assert capsys.readouterr().out == "- first\n"

    assert main(["--root", str(project_dir), "changeset", "show", "2.0.0"]) == 1
    assert "No changelog entry found" in capsys.readouterr().err

    exit_code = main(
        ["--root", str(project_dir), "changeset", "show", "2.0.0", "--fallback-unreleased"]
    )
    assert exit_code == 0
    assert capsys.readouterr().out == "- next\n"


def test_changeset_show_pretty(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)
    (project_dir / "CHANGELOG.md").write_text("## 1.0.0\n\n- `code`\n", encoding="utf-8")

    result = runner.invoke(
        cli, ["--root", str(project_dir), "changeset", "show", "1.0.0", "--pretty"]
    )

    assert result.exit_code == 0, result.output


def test_changeset_remove_and_prepend(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path, {"changelog": {"path": "docs/CHANGES.md"}})
    changelog = project_dir / "docs" / "CHANGES.md"

    prepend = runner.invoke(
        cli, ["--root", str(project_dir), "changeset", "prepend", "1.0.0", "--body", "- first"]
    )
    assert prepend.exit_code == 0, prepend.output
    assert changelog.read_text(encoding="utf-8") == "## 1.0.0\n\n- first\n\n"

    body_file = project_dir / "body.md"
    body_file.write_text("- second\n", encoding="utf-8")
    prepend_file = runner.invoke(
        cli,
        ["--root", str(project_dir), "changeset", "prepend", "1.1.0", "--body-file", str(body_file)],
    )
    assert prepend_file.exit_code == 0, prepend_file.output
    assert changelog.read_text(encoding="utf-8") == (
        "## 1.1.0\n\n- second\n\n## 1.0.0\n\n- first\n\n"
    )

    remove = runner.invoke(cli, ["--root", str(project_dir), "changeset", "remove", "1.1.0"])
    assert remove.exit_code == 0, remove.output
    assert changelog.read_text(encoding="utf-8") == "## 1.0.0\n\n- first\n\n"

    missing = runner.invoke(cli, ["--root", str(project_dir), "changeset", "remove", "9.9.9"])
    assert missing.exit_code == 0
    assert "no changelog section titled '9.9.9'" in click.utils.strip_ansi(missing.output)


def test_changeset_prepend_rejects_both_bodies(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)
    body_file = project_dir / "body.md"
    body_file.write_text("x", encoding="utf-8")

    result = runner.invoke(
        cli,
        [
            "--root",
            str(project_dir),
            "changeset",
            "prepend",
            "1.0.0",
            "--body",
            "y",
            "--body-file",
            str(body_file),
        ],
    )

    assert result.exit_code == 1
    assert "only one of --body or --body-file" in result.output


def test_changeset_commands_honor_file_option(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)
    other = tmp_path / "OTHER.md"
    other.write_text("## 0.1.0\n\n- other\n", encoding="utf-8")

    result = runner.invoke(
        cli, ["--root", str(project_dir), "changeset", "show", "0.1.0", "--file", str(other)]
    )

    assert result.exit_code == 0, result.output
    assert _last_line(result.output) == "- other"


def test_changelog_generate_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project_dir = _project(tmp_path, {"repository": "acme/rocket"})
    commits = write_commits(
        project_dir / "commits.json",
        [
            {
                "hash": "a" * 40,
                "title": "feat: add api (#4)",
                "pr": {"number": 4, "title": "feat: add api", "author": "alice"},
            },
            {"hash": "b" * 40, "title": "misc cleanup", "body": "#skip-changelog"},
        ],
    )

    exit_code = main(
        ["--root", str(project_dir), "changelog", "generate", "--commits", str(commits), "--json"]
    )

    captured = capsys.readouterr()
    assert exit_code == 0, captured.err
    payload = json.loads(captured.out)
    assert payload == {
        "changelog": (
            "### New Features\n\n"
            "- feat: add api by @alice in [#4](https://github.com/acme/rocket/pull/4)"
        ),
        "bump_type": "minor",
        "total_commits": 1,
        "matched_commits": 1,
    }


def test_changelog_generate_options(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project_dir = _project(tmp_path)
    commits = write_commits(
        project_dir / "commits.json",
        [
            {"hash": "1" * 40, "title": "tweak one", "author": "alice"},
            {"hash": "2" * 40, "title": "tweak two", "author": "bob"},
            {"hash": "3" * 40, "title": "tweak three", "tags": ["v1.0.0"]},
        ],
    )

    exit_code = main(
        [
            "--root",
            str(project_dir),
            "changelog",
            "generate",
            "--commits",
            str(commits),
            "--since",
            "v1.0.0",
            "--mention-style",
            "bold",
            "--max-leftovers",
            "1",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 0, captured.err
    assert captured.out == "- tweak one by **alice** in 11111111\n\n_Plus 1 more_\n"


def test_changelog_generate_truncates(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project_dir = _project(tmp_path)
    commits = write_commits(
        project_dir / "commits.json",
        [{"hash": f"{index:040d}", "title": "x" * 200} for index in range(500)],
    )

    exit_code = main(
        [
            "--root",
            str(project_dir),
            "changelog",
            "generate",
            "--commits",
            str(commits),
            "--truncate",
            "--link",
            "https://example.com/changes",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 0, captured.err
    output = captured.out.rstrip("\n")
    assert len(output.encode("utf-8")) <= 64 * 1024
    assert output.endswith("[View full changelog](https://example.com/changes)")


def test_changelog_generate_requires_commits(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)

    result = runner.invoke(cli, ["--root", str(project_dir), "changelog", "generate"])

    assert result.exit_code == 1
    assert "--commits" in result.output


def test_release_config_warning_logged_once(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project_dir = _project(tmp_path)
    write_yaml(
        project_dir / ".github" / "release.yml",
        {"changelog": {"categories": [{"title": "Changes", "labels": ["*"]}]}},
    )
    commits = write_commits(project_dir / "commits.json", [{"hash": "a" * 40, "title": "x"}])

    exit_code = main(
        ["--root", str(project_dir), "changelog", "generate", "--commits", str(commits)]
    )

    captured = capsys.readouterr()
    assert exit_code == 0, captured.err
    assert captured.out == "### Changes\n\n- x in aaaaaaaa\n"
    assert captured.err.count("without a 'semver' field: 'Changes'") == 1


def test_invalid_config_reports_error(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path, {"changelog": {"policy": "sometimes"}})

    result = runner.invoke(cli, ["--root", str(project_dir), "version", "next", "1.0.0"])

    assert result.exit_code == 1
    assert "changelog.policy" in result.output


def _write_manifest(directory: Path, data: dict[str, object]) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps(data), encoding="utf-8")


def test_workspace_order(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project_dir = _project(tmp_path)
    _write_manifest(project_dir, {"name": "root", "private": True, "workspaces": ["packages/*"]})
    _write_manifest(project_dir / "packages" / "a-app", {"name": "app", "dependencies": {"lib": "1"}})
    _write_manifest(project_dir / "packages" / "b-lib", {"name": "lib"})
    _write_manifest(project_dir / "packages" / "c-demo", {"name": "demo", "private": True})

    assert main(["--root", str(project_dir), "workspace", "order"]) == 0
    assert capsys.readouterr().out == "lib\napp\n"

    assert main(["--root", str(project_dir), "workspace", "order", "--private"]) == 0
    assert capsys.readouterr().out == "lib\ndemo\napp\n"

    assert main(["--root", str(project_dir), "workspace", "order", "--json", "--exclude", "app"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == [
        {
            "name": "lib",
            "location": "packages/b-lib",
            "private": False,
            "public_access": False,
            "workspace_dependencies": [],
        }
    ]


def test_workspace_order_reports_cycles(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)
    _write_manifest(project_dir, {"name": "root", "workspaces": ["packages/*"]})
    _write_manifest(project_dir / "packages" / "a", {"name": "A", "dependencies": {"B": "1"}})
    _write_manifest(project_dir / "packages" / "b", {"name": "B", "dependencies": {"A": "1"}})

    result = runner.invoke(cli, ["--root", str(project_dir), "workspace", "order"])

    assert result.exit_code == 1
    assert "Circular dependency detected among workspace packages: A, B" in result.output


def test_workspace_order_rejects_invalid_pattern(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path)
    _write_manifest(project_dir, {"name": "root", "workspaces": ["packages/*"]})
    _write_manifest(project_dir / "packages" / "a", {"name": "A"})

    result = runner.invoke(cli, ["--root", str(project_dir), "workspace", "order", "--include", "("])

    assert result.exit_code == 1
    assert "Invalid package name pattern" in result.output


def test_pointers_update(tmp_path: Path) -> None:
    runner = CliRunner()
    releases = tmp_path / "releases"
    releases.mkdir()
    (releases / "2.0.0.json").write_text("{}", encoding="utf-8")
    (releases / "1.5.1.json").write_text("{}", encoding="utf-8")
    os.symlink("2.0.0.json", releases / "latest.json")

    result = runner.invoke(
        cli,
        ["pointers", "update", str(releases / "1.5.1.json"), "1.5.1", "--old-version", "2.0.0"],
    )

    assert result.exit_code == 0, result.output
    assert os.readlink(releases / "latest.json") == "2.0.0.json"
    assert os.readlink(releases / "1.json") == "1.5.1.json"
    assert os.readlink(releases / "1.5.json") == "1.5.1.json"
    assert "kept latest.json" in click.utils.strip_ansi(result.output)


def test_pointers_update_missing_file(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["pointers", "update", str(tmp_path / "3.0.0.json"), "3.0.0"])

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_release_plan_json_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project_dir = _project(
        tmp_path,
        {"tag_prefix": "v", "changelog": {"policy": "auto"}, "versioning": {"policy": "auto"}},
    )
    commits = write_commits(
        project_dir / "commits.json", [{"hash": "f" * 40, "title": "feat: plans", "author": "eve"}]
    )

    exit_code = main(
        [
            "--root",
            str(project_dir),
            "release",
            "plan",
            "--tag",
            "v1.0.0",
            "--commits",
            str(commits),
            "--dry-run",
            "--json",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 0, captured.err
    assert json.loads(captured.out) == {
        "version": "1.1.0",
        "tag": "v1.1.0",
        "previous_tag": "v1.0.0",
        "bump_type": "minor",
        "changelog": "### New Features\n\n- feat: plans by @eve in ffffffff",
        "publish_order": [],
    }
    assert not (project_dir / "CHANGELOG.md").exists()


def test_release_plan_writes_changelog(tmp_path: Path) -> None:
    runner = CliRunner()
    project_dir = _project(tmp_path, {"changelog": {"policy": "auto"}})

    result = runner.invoke(cli, ["--root", str(project_dir), "release", "plan", "0.1.0"])

    assert result.exit_code == 0, result.output
    assert (project_dir / "CHANGELOG.md").read_text(encoding="utf-8") == (
        "# Changelog\n\n## 0.1.0\n\n- No documented changes.\n\n"
    )
