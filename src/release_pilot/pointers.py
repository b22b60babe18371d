"""Maintain ``latest.json``, ``{major}.json`` and ``{major}.{minor}.json`` pointers.

Pointers are relative symlinks next to the versioned file they point at, so
a directory of release metadata stays relocatable.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .utils import log_debug, log_warning
from .versions import Version, parse_version, try_parse_version, version_greater_or_equal

LATEST_POINTER = "latest.json"
POINTER_SUFFIX = ".json"


@dataclass
class PointerUpdate:
    """Pointer files that one update (re)pointed at the new version file."""

    target: str
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def read_symlink_target(path: Path) -> Optional[str]:
    """Return the target of the symlink at ``path``, or None if there is none."""
    try:
        # lstat sees dangling links, which exists() reports as missing.
        path.lstat()
    except FileNotFoundError:
        return None
    if not path.is_symlink():
        log_warning(f"pointer {path} is not a symlink and will be replaced")
        return None
    return os.readlink(path)


def write_symlink(path: Path, target: str) -> None:
    """Point ``path`` at ``target``, atomically replacing any existing entry."""
    temporary = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    os.symlink(target, temporary)
    try:
        os.replace(temporary, path)
    except OSError:
        temporary.unlink(missing_ok=True)
        raise


def read_pointer_version(path: Path) -> Optional[Version]:
    """Return the version a pointer currently targets.

    A pointer whose target does not name a version is treated as absent.
    """
    target = read_symlink_target(path)
    if target is None:
        return None
    name = Path(target).name
    if name.endswith(POINTER_SUFFIX):
        name = name[: -len(POINTER_SUFFIX)]
    version = try_parse_version(name)
    if version is None:
        log_warning(f"ignoring pointer {path}: target {target!r} does not name a version")
    return version


def pointer_names(version: Version) -> tuple[str, str]:
    """Return the major and minor pointer file names for ``version``."""
    return (
        f"{version.major}{POINTER_SUFFIX}",
        f"{version.major}.{version.minor}{POINTER_SUFFIX}",
    )


def update_pointers(
    version_file_path: Path,
    new_version: str,
    old_version: Optional[str] = None,
) -> PointerUpdate:
    """Re-point the pointers next to ``version_file_path`` where appropriate.

    ``latest.json`` moves when there is no ``old_version`` or the new version
    orders at or above it. The major and minor pointers compare against the
    version they currently target, so publishing a fix for an older line
    leaves newer lines alone.

    Raises:
        FileNotFoundError: If the version file does not exist yet.
        VersionParseError: If ``new_version`` or ``old_version`` is invalid.
        AmbiguousVersionOrderError: If a comparison has no defined order.
    """
    if not version_file_path.exists():
        raise FileNotFoundError(f"Version file {version_file_path} does not exist")

    parsed_new = parse_version(new_version)
    parsed_old = parse_version(old_version) if old_version else None
    directory = version_file_path.parent
    result = PointerUpdate(target=version_file_path.name)

    def _apply(name: str, current: Optional[Version]) -> None:
        if current is not None and not version_greater_or_equal(parsed_new, current):
            log_debug(f"keeping {name} at {current}, newer than {parsed_new}")
            result.skipped.append(name)
            return
        log_debug(f"pointing {name} at {result.target} (was {current or 'unset'})")
        write_symlink(directory / name, result.target)
        result.updated.append(name)

    _apply(LATEST_POINTER, parsed_old)
    for name in pointer_names(parsed_new):
        _apply(name, read_pointer_version(directory / name))
    return result
