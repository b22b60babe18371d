"""Changelog generation from commit records."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, cast

import click

from ..changelog import ChangelogResult, generate_changelog, truncate_for_output
from ..config import MENTION_STYLE_CHOICES, MentionStyle
from ..sources import CommitSource
from ..utils import emit_output, log_info
from ._core import CLIContext, _build_commit_source, commits_option, translate_errors


def run_changelog_generate(
    ctx: CLIContext,
    *,
    commit_source: CommitSource,
    since: Optional[str] = None,
    mention_style: Optional[MentionStyle] = None,
    max_leftovers: Optional[int] = None,
) -> ChangelogResult:
    """Render the changelog for the commits after ``since``."""
    config = ctx.ensure_config()
    release_config = ctx.ensure_release_config()
    with translate_errors():
        commits = commit_source.commits_since(since)
    result = generate_changelog(
        commits,
        release_config,
        repository=config.repository,
        mention_style=mention_style or config.changelog.mention_style,
        max_leftovers=max_leftovers,
    )
    log_info(
        f"{result.total_commits} commits, {result.matched_commits} with a version bump"
        + (f" ({result.bump_type})" if result.bump_type else "")
    )
    return result


@click.group("changelog")
def changelog_group() -> None:
    """Generate changelog sections from commits."""


@changelog_group.command("generate")
@commits_option()
@click.option("--since", help="Tag or commit hash of the previous release.")
@click.option(
    "--mention-style",
    type=click.Choice(MENTION_STYLE_CHOICES),
    default=None,
    help="Render authors as @mentions or bold names. Defaults to the config.",
)
@click.option(
    "--max-leftovers",
    type=click.IntRange(min=0),
    help="Show at most this many uncategorized commits.",
)
@click.option(
    "--truncate",
    is_flag=True,
    help="Limit the output to 64 KiB, e.g. for issue or release bodies.",
)
@click.option("--link", "link_url", help="URL of the full changelog for the truncation notice.")
@click.option("--json", "as_json", is_flag=True, help="Emit the result as JSON.")
@click.pass_obj
def changelog_generate_cmd(
    ctx: CLIContext,
    commits_path: Optional[Path],
    since: Optional[str],
    mention_style: Optional[str],
    max_leftovers: Optional[int],
    truncate: bool,
    link_url: Optional[str],
    as_json: bool,
) -> None:
    """Print the changelog section for commits since the last release."""

    if commits_path is None:
        raise click.ClickException("Provide the commits to summarize with --commits.")
    result = run_changelog_generate(
        ctx,
        commit_source=_build_commit_source(commits_path),
        since=since,
        mention_style=cast(Optional[MentionStyle], mention_style),
        max_leftovers=max_leftovers,
    )
    body = truncate_for_output(result.body, link_url) if truncate else result.body
    if as_json:
        payload = {
            "changelog": body,
            "bump_type": result.bump_type,
            "total_commits": result.total_commits,
            "matched_commits": result.matched_commits,
        }
        emit_output(json.dumps(payload, indent=2))
        return
    emit_output(body)
