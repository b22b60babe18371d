from __future__ import annotations

import os
from pathlib import Path

import pytest

from release_pilot.pointers import (
    read_pointer_version,
    read_symlink_target,
    update_pointers,
    write_symlink,
)
from release_pilot.versions import Version


def _publish(directory: Path, version: str) -> Path:
    path = directory / f"{version}.json"
    path.write_text(f'{{"version": "{version}"}}\n', encoding="utf-8")
    return path


def test_older_line_release_leaves_newer_pointers(tmp_path: Path) -> None:
    for version in ("1.0.0", "1.2.0", "2.0.0"):
        _publish(tmp_path, version)
    os.symlink("2.0.0.json", tmp_path / "latest.json")
    os.symlink("2.0.0.json", tmp_path / "2.json")
    os.symlink("1.2.0.json", tmp_path / "1.json")
    os.symlink("1.2.0.json", tmp_path / "1.2.json")
    os.symlink("1.0.0.json", tmp_path / "1.0.json")

    result = update_pointers(_publish(tmp_path, "1.5.1"), "1.5.1", old_version="2.0.0")

    assert result.target == "1.5.1.json"
    assert result.updated == ["1.json", "1.5.json"]
    assert result.skipped == ["latest.json"]
    assert os.readlink(tmp_path / "latest.json") == "2.0.0.json"
    assert os.readlink(tmp_path / "2.json") == "2.0.0.json"
    assert os.readlink(tmp_path / "1.json") == "1.5.1.json"
    assert os.readlink(tmp_path / "1.5.json") == "1.5.1.json"
    assert os.readlink(tmp_path / "1.2.json") == "1.2.0.json"


def test_first_release_creates_all_pointers(tmp_path: Path) -> None:
    result = update_pointers(_publish(tmp_path, "0.1.0"), "0.1.0")
    assert result.updated == ["latest.json", "0.json", "0.1.json"]
    for name in result.updated:
        assert os.readlink(tmp_path / name) == "0.1.0.json"
        assert (tmp_path / name).read_text(encoding="utf-8") == '{"version": "0.1.0"}\n'


def test_backport_does_not_move_minor_pointer(tmp_path: Path) -> None:
    _publish(tmp_path, "1.2.5")
    os.symlink("1.2.5.json", tmp_path / "1.2.json")

    result = update_pointers(_publish(tmp_path, "1.2.4"), "1.2.4", old_version="1.2.5")

    assert "1.2.json" in result.skipped
    assert os.readlink(tmp_path / "1.2.json") == "1.2.5.json"


def test_update_is_idempotent(tmp_path: Path) -> None:
    path = _publish(tmp_path, "3.1.0")
    first = update_pointers(path, "3.1.0")
    second = update_pointers(path, "3.1.0", old_version="3.1.0")
    assert first.updated == second.updated
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "3.1.0.json",
        "3.1.json",
        "3.json",
        "latest.json",
    ]


@pytest.mark.parametrize("order", [("1.2.3", "1.2.4"), ("1.2.4", "1.2.3")])
def test_pointers_end_at_highest_version(tmp_path: Path, order: tuple[str, str]) -> None:
    for version in order:
        update_pointers(_publish(tmp_path, version), version)
    assert os.readlink(tmp_path / "1.json") == "1.2.4.json"
    assert os.readlink(tmp_path / "1.2.json") == "1.2.4.json"


def test_missing_version_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        update_pointers(tmp_path / "9.9.9.json", "9.9.9")
    assert list(tmp_path.iterdir()) == []


def test_read_symlink_target(tmp_path: Path) -> None:
    assert read_symlink_target(tmp_path / "missing.json") is None
    os.symlink("gone.json", tmp_path / "dangling.json")
    assert read_symlink_target(tmp_path / "dangling.json") == "gone.json"
    (tmp_path / "plain.json").write_text("{}", encoding="utf-8")
    assert read_symlink_target(tmp_path / "plain.json") is None


def test_read_pointer_version(tmp_path: Path) -> None:
    os.symlink("1.4.2.json", tmp_path / "1.json")
    os.symlink("nightly.json", tmp_path / "latest.json")
    assert read_pointer_version(tmp_path / "1.json") == Version(1, 4, 2)
    assert read_pointer_version(tmp_path / "latest.json") is None


def test_write_symlink_replaces_atomically(tmp_path: Path) -> None:
    link = tmp_path / "latest.json"
    write_symlink(link, "a.json")
    write_symlink(link, "b.json")
    assert os.readlink(link) == "b.json"
    assert [p.name for p in tmp_path.iterdir()] == ["latest.json"]


def test_regular_file_pointer_is_replaced(tmp_path: Path) -> None:
    path = _publish(tmp_path, "2.0.0")
    (tmp_path / "latest.json").write_text("{}", encoding="utf-8")
    update_pointers(path, "2.0.0")
    assert os.readlink(tmp_path / "latest.json") == "2.0.0.json"
