"""Version commands: next version, comparison, and calendar versions."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Optional, Sequence

import click

from ..release import resolve_version
from ..sources import CommitSource, TagSource
from ..utils import emit_output
from ..versions import CalVerConfig, calculate_calver, parse_version, version_greater_or_equal
from ._core import (
    CLIContext,
    _as_date,
    _build_commit_source,
    _build_tag_source,
    commits_option,
    now_option,
    tag_options,
    translate_errors,
)


def run_version_next(
    ctx: CLIContext,
    *,
    version_arg: Optional[str],
    tag_source: TagSource,
    commit_source: CommitSource,
    now: Optional[datetime | date] = None,
) -> str:
    """Resolve the next version the way ``version next`` does."""
    config = ctx.ensure_config()
    release_config = ctx.ensure_release_config()
    with translate_errors():
        return resolve_version(
            version_arg,
            tag_source=tag_source,
            commit_source=commit_source,
            tag_prefix=config.tag_prefix,
            versioning=config.versioning,
            release_config=release_config,
            now=now,
        )


def run_version_compare(first: str, second: str) -> bool:
    """Return True if ``first`` orders at or above ``second``."""
    with translate_errors():
        return version_greater_or_equal(parse_version(first), parse_version(second))


def run_version_calver(
    ctx: CLIContext,
    *,
    tags: Sequence[str],
    offset: Optional[int] = None,
    date_format: Optional[str] = None,
    now: Optional[datetime | date] = None,
) -> str:
    """Compute the next calendar version from ``tags``."""
    config = ctx.ensure_config()
    configured = config.versioning.calver
    calver = CalVerConfig(
        offset_days=configured.offset_days if offset is None else offset,
        format=configured.format if date_format is None else date_format,
    )
    with translate_errors():
        return calculate_calver(tags, calver, now, tag_prefix=config.tag_prefix)


@click.group("version")
def version_group() -> None:
    """Work out and compare release versions."""


@version_group.command("next")
@click.argument("version", required=False)
@tag_options()
@commits_option()
@now_option()
@click.pass_obj
def version_next_cmd(
    ctx: CLIContext,
    version: Optional[str],
    tags: tuple[str, ...],
    tags_file: Optional[Path],
    commits_path: Optional[Path],
    now: Optional[datetime],
) -> None:
    """Print the version to release next.

    VERSION is an explicit version, a bump type (major, minor, patch), 'auto'
    to derive the bump from commits, or 'calver'. Without it, the versioning
    policy from .pilot.yml applies.
    """

    emit_output(
        run_version_next(
            ctx,
            version_arg=version,
            tag_source=_build_tag_source(tags, tags_file),
            commit_source=_build_commit_source(commits_path),
            now=_as_date(now),
        )
    )


@version_group.command("compare")
@click.argument("first")
@click.argument("second")
def version_compare_cmd(first: str, second: str) -> None:
    """Print 'true' if FIRST orders at or above SECOND, else 'false'.

    Fails when the two versions have no defined order, for example when they
    differ only in build metadata.
    """

    emit_output("true" if run_version_compare(first, second) else "false")


@version_group.command("calver")
@tag_options()
@click.option("--offset", type=click.IntRange(min=0), help="Days to subtract from today.")
@click.option("--format", "date_format", help="Date format, e.g. '%y.%-m'.")
@now_option()
@click.pass_obj
def version_calver_cmd(
    ctx: CLIContext,
    tags: tuple[str, ...],
    tags_file: Optional[Path],
    offset: Optional[int],
    date_format: Optional[str],
    now: Optional[datetime],
) -> None:
    """Print the next calendar version given the existing tags."""

    tag_source = _build_tag_source(tags, tags_file)
    emit_output(
        run_version_calver(
            ctx,
            tags=tag_source.list_tags(),
            offset=offset,
            date_format=date_format,
            now=_as_date(now),
        )
    )
