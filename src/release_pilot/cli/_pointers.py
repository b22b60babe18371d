"""Pointer file commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from ..pointers import PointerUpdate, update_pointers
from ..utils import log_info, log_success
from ._core import translate_errors


def run_pointers_update(
    version_file: Path, new_version: str, old_version: Optional[str] = None
) -> PointerUpdate:
    """Update the pointers next to ``version_file``."""
    with translate_errors():
        return update_pointers(version_file, new_version, old_version)


@click.group("pointers")
def pointers_group() -> None:
    """Maintain latest/major/minor pointer files."""


@pointers_group.command("update")
@click.argument("version_file", type=click.Path(path_type=Path, dir_okay=False))
@click.argument("new_version")
@click.option("--old-version", help="The previous latest version.")
def pointers_update_cmd(
    version_file: Path,
    new_version: str,
    old_version: Optional[str],
) -> None:
    """Point latest.json, {major}.json and {major}.{minor}.json at VERSION_FILE.

    A pointer only moves when NEW_VERSION is at least the version it targets.
    """

    result = run_pointers_update(version_file, new_version, old_version)
    for name in result.updated:
        log_success(f"{name} -> {result.target}")
    for name in result.skipped:
        log_info(f"kept {name}, it targets a newer version")
