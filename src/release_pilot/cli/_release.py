"""Release planning command."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from ..release import ReleasePlan, plan_release
from ..sources import CommitSource, TagSource
from ..utils import emit_output, format_bold, log_info, print_renderable
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


def run_release_plan(
    ctx: CLIContext,
    *,
    version_arg: Optional[str],
    tag_source: TagSource,
    commit_source: CommitSource,
    now: Optional[datetime | date] = None,
    dry_run: bool = False,
) -> ReleasePlan:
    """Plan a release, updating the changelog unless ``dry_run`` is set."""
    config = ctx.ensure_config()
    release_config = ctx.ensure_release_config()
    with translate_errors():
        return plan_release(
            ctx.project_root,
            config,
            tag_source=tag_source,
            commit_source=commit_source,
            release_config=release_config,
            version_arg=version_arg,
            now=now,
            write_changelog=not dry_run,
        )


def _plan_to_dict(plan: ReleasePlan, project_root: Path) -> dict[str, object]:
    return {
        "version": plan.version,
        "tag": plan.tag,
        "previous_tag": plan.previous_tag,
        "bump_type": plan.bump_type,
        "changelog": plan.changelog,
        "publish_order": [
            {
                "name": package.name,
                "location": str(package.location.relative_to(project_root)),
            }
            for package in plan.publish_order
        ],
    }


def _render_plan(plan: ReleasePlan) -> None:
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Version", plan.version)
    table.add_row("Tag", plan.tag)
    table.add_row("Previous tag", plan.previous_tag or "-")
    table.add_row("Bump", plan.bump_type or "-")
    if plan.publish_order:
        lines = [
            f"{index}. {package.name}" for index, package in enumerate(plan.publish_order, 1)
        ]
        table.add_row("Publish order", "\n".join(lines))
    print_renderable(table)


@click.group("release")
def release_group() -> None:
    """Plan releases."""


@release_group.command("plan")
@click.argument("version", required=False)
@tag_options()
@commits_option()
@now_option()
@click.option("--dry-run", is_flag=True, help="Do not modify the changelog file.")
@click.option("--json", "as_json", is_flag=True, help="Emit the plan as JSON.")
@click.pass_obj
def release_plan_cmd(
    ctx: CLIContext,
    version: Optional[str],
    tags: tuple[str, ...],
    tags_file: Optional[Path],
    commits_path: Optional[Path],
    now: Optional[datetime],
    dry_run: bool,
    as_json: bool,
) -> None:
    """Resolve the next version, apply the changelog policy, and order packages.

    VERSION accepts the same values as 'version next'.
    """

    plan = run_release_plan(
        ctx,
        version_arg=version,
        tag_source=_build_tag_source(tags, tags_file),
        commit_source=_build_commit_source(commits_path),
        now=_as_date(now),
        dry_run=dry_run,
    )
    if as_json:
        emit_output(json.dumps(_plan_to_dict(plan, ctx.project_root), indent=2))
        return
    log_info(f"planned release {format_bold(plan.version)}")
    _render_plan(plan)
    if plan.changelog:
        emit_output(plan.changelog)
