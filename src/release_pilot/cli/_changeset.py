"""Changeset commands operating on the project's changelog file."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.markdown import Markdown

from ..changesets import (
    Changeset,
    find_changeset,
    prepend_changeset,
    read_changelog,
    remove_changeset,
    write_changelog,
)
from ..utils import emit_output, log_info, log_success, print_renderable
from ._core import CLIContext, changelog_file_option, translate_errors


def run_changeset_show(
    ctx: CLIContext,
    version: str,
    *,
    fallback_to_unreleased: bool = False,
    changelog_file: Optional[Path] = None,
) -> Changeset:
    """Return the changeset for ``version`` from the changelog."""
    path = ctx.changelog_path(changelog_file)
    with translate_errors():
        markdown = read_changelog(path)
    changeset = find_changeset(markdown, version, fallback_to_unreleased=fallback_to_unreleased)
    if changeset is None:
        raise click.ClickException(f"No changelog entry found for {version!r} in {path}.")
    return changeset


def run_changeset_remove(
    ctx: CLIContext, header: str, *, changelog_file: Optional[Path] = None
) -> bool:
    """Remove the changeset titled ``header``; return False if there was none."""
    path = ctx.changelog_path(changelog_file)
    with translate_errors():
        markdown = read_changelog(path)
        updated = remove_changeset(markdown, header)
        if updated == markdown:
            return False
        write_changelog(path, updated)
    return True


def run_changeset_prepend(
    ctx: CLIContext,
    name: str,
    body: str,
    *,
    changelog_file: Optional[Path] = None,
) -> Path:
    """Insert a new changeset above the newest one and return the changelog path."""
    path = ctx.changelog_path(changelog_file)
    with translate_errors():
        markdown = read_changelog(path) if path.exists() else ""
        write_changelog(path, prepend_changeset(markdown, Changeset(name=name, body=body)))
    return path


@click.group("changeset")
def changeset_group() -> None:
    """Read and edit release sections of the changelog."""


@changeset_group.command("show")
@click.argument("version")
@click.option(
    "--fallback-unreleased",
    is_flag=True,
    help="Use the 'Unreleased' section when no section matches the version.",
)
@click.option("--pretty", is_flag=True, help="Render the section as formatted Markdown.")
@changelog_file_option()
@click.pass_obj
def changeset_show_cmd(
    ctx: CLIContext,
    version: str,
    fallback_unreleased: bool,
    pretty: bool,
    changelog_file: Optional[Path],
) -> None:
    """Print the changelog section for VERSION."""

    changeset = run_changeset_show(
        ctx,
        version,
        fallback_to_unreleased=fallback_unreleased,
        changelog_file=changelog_file,
    )
    if pretty:
        print_renderable(Markdown(f"## {changeset.name}\n\n{changeset.body}"))
        return
    emit_output(changeset.body)


@changeset_group.command("remove")
@click.argument("header")
@changelog_file_option()
@click.pass_obj
def changeset_remove_cmd(ctx: CLIContext, header: str, changelog_file: Optional[Path]) -> None:
    """Remove the section titled exactly HEADER, if present."""

    if run_changeset_remove(ctx, header, changelog_file=changelog_file):
        log_success(f"removed changelog section '{header}'")
    else:
        log_info(f"no changelog section titled '{header}'")


@changeset_group.command("prepend")
@click.argument("name")
@click.option("--body", default=None, help="Markdown body of the new section.")
@click.option(
    "--body-file",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    help="File containing the Markdown body of the new section.",
)
@changelog_file_option()
@click.pass_obj
def changeset_prepend_cmd(
    ctx: CLIContext,
    name: str,
    body: Optional[str],
    body_file: Optional[Path],
    changelog_file: Optional[Path],
) -> None:
    """Add a section called NAME above the newest section."""

    if body is not None and body_file is not None:
        raise click.ClickException("Use only one of --body or --body-file, not both.")
    if body_file is not None:
        body = body_file.read_text(encoding="utf-8")
    path = run_changeset_prepend(ctx, name, body or "", changelog_file=changelog_file)
    log_success(f"added changelog section '{name}' to {path}")
