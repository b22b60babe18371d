"""Python-friendly facade for invoking release-pilot functionality."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Optional, Sequence, cast

from .changelog import ChangelogResult, CommitEntry
from .changesets import Changeset
from .cli import (
    CLIContext,
    create_cli_context,
    run_changelog_generate,
    run_changeset_prepend,
    run_changeset_remove,
    run_changeset_show,
    run_pointers_update,
    run_release_plan,
    run_version_calver,
    run_version_compare,
    run_version_next,
    run_workspace_order,
)
from .config import MentionStyle
from .pointers import PointerUpdate
from .release import ReleasePlan
from .sources import CommitSource, StaticCommitSource, StaticTagSource, TagSource
from .workspaces import WorkspacePackage


def _tag_source(tags: Sequence[str] | TagSource | None) -> TagSource:
    if tags is None:
        return StaticTagSource()
    if isinstance(tags, (list, tuple)):
        return StaticTagSource(list(tags))
    return cast(TagSource, tags)


def _commit_source(commits: Sequence[CommitEntry] | CommitSource | None) -> CommitSource:
    if commits is None:
        return StaticCommitSource()
    if isinstance(commits, (list, tuple)):
        return StaticCommitSource(list(commits))
    return cast(CommitSource, commits)


class ReleasePilot:
    """High-level helper that mirrors the CLI commands for Python callers.

    Tags and commits may be given as plain sequences or as objects
    implementing the ``TagSource`` and ``CommitSource`` protocols.
    """

    def __init__(
        self,
        *,
        root: Path | str | None = None,
        config: Path | str | None = None,
        debug: bool = False,
    ) -> None:
        resolved_root = Path(root) if root is not None else None
        resolved_config = Path(config) if config is not None else None
        self._ctx = create_cli_context(
            root=resolved_root,
            config=resolved_config,
            debug=debug,
        )

    @property
    def context(self) -> CLIContext:
        """Expose the underlying CLIContext for advanced scenarios."""

        return self._ctx

    def next_version(
        self,
        version: Optional[str] = None,
        *,
        tags: Sequence[str] | TagSource | None = None,
        commits: Sequence[CommitEntry] | CommitSource | None = None,
        now: Optional[datetime | date] = None,
    ) -> str:
        """Resolve the next version like ``release-pilot version next``."""

        return run_version_next(
            self._ctx,
            version_arg=version,
            tag_source=_tag_source(tags),
            commit_source=_commit_source(commits),
            now=now,
        )

    def compare(self, first: str, second: str) -> bool:
        """Return True if ``first`` orders at or above ``second``."""

        return run_version_compare(first, second)

    def calver(
        self,
        *,
        tags: Sequence[str] = (),
        offset: Optional[int] = None,
        date_format: Optional[str] = None,
        now: Optional[datetime | date] = None,
    ) -> str:
        """Compute the next calendar version, overriding config where given."""

        return run_version_calver(
            self._ctx, tags=tags, offset=offset, date_format=date_format, now=now
        )

    def show_changeset(self, version: str, *, fallback_to_unreleased: bool = False) -> Changeset:
        """Return the changelog section for ``version``."""

        return run_changeset_show(
            self._ctx, version, fallback_to_unreleased=fallback_to_unreleased
        )

    def remove_changeset(self, header: str) -> bool:
        """Remove the changelog section titled ``header``."""

        return run_changeset_remove(self._ctx, header)

    def prepend_changeset(self, name: str, body: str = "") -> Path:
        """Add a changelog section above the newest one."""

        return run_changeset_prepend(self._ctx, name, body)

    def generate_changelog(
        self,
        commits: Sequence[CommitEntry] | CommitSource,
        *,
        since: Optional[str] = None,
        mention_style: Optional[MentionStyle] = None,
        max_leftovers: Optional[int] = None,
    ) -> ChangelogResult:
        """Render a changelog section and bump analysis for ``commits``."""

        return run_changelog_generate(
            self._ctx,
            commit_source=_commit_source(commits),
            since=since,
            mention_style=mention_style,
            max_leftovers=max_leftovers,
        )

    def workspace_order(
        self,
        *,
        include: Optional[str] = None,
        exclude: Optional[str] = None,
        include_private: bool = False,
    ) -> list[WorkspacePackage]:
        """Return workspace packages in publish order."""

        return run_workspace_order(
            self._ctx, include=include, exclude=exclude, include_private=include_private
        )

    def update_pointers(
        self, version_file: Path | str, new_version: str, old_version: Optional[str] = None
    ) -> PointerUpdate:
        """Update latest/major/minor pointers next to ``version_file``."""

        return run_pointers_update(Path(version_file), new_version, old_version)

    def plan(
        self,
        version: Optional[str] = None,
        *,
        tags: Sequence[str] | TagSource | None = None,
        commits: Sequence[CommitEntry] | CommitSource | None = None,
        now: Optional[datetime | date] = None,
        dry_run: bool = False,
    ) -> ReleasePlan:
        """Plan a release like ``release-pilot release plan``."""

        return run_release_plan(
            self._ctx,
            version_arg=version,
            tag_source=_tag_source(tags),
            commit_source=_commit_source(commits),
            now=now,
            dry_run=dry_run,
        )
