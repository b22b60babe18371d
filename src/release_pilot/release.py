"""Decide what a release looks like: its version, changelog, and publish order."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Literal, Optional, cast

from .changelog import ChangelogResult, CommitEntry, generate_changelog
from .changesets import (
    CHANGELOG_TEMPLATE,
    DEFAULT_UNRELEASED_TITLE,
    Changeset,
    find_changeset,
    prepend_changeset,
    read_changelog,
    remove_changeset,
    write_changelog,
)
from .config import (
    DEFAULT_RELEASE_CONFIG,
    ChangelogPolicy,
    ProjectConfig,
    ReleaseConfig,
    VersioningConfig,
)
from .sources import CommitSource, TagSource
from .utils import log_debug, log_info
from .versions import (
    BUMP_TYPES,
    BumpType,
    calculate_calver,
    calculate_next_version,
    is_valid_version,
    latest_version,
    version_to_tag,
)
from .workspaces import WorkspacePackage, discover_workspaces, topological_sort_packages

VersionKeyword = Literal["auto", "calver"]
VERSION_KEYWORDS: tuple[VersionKeyword, ...] = ("auto", "calver")


class ReleaseError(ValueError):
    """Raised when a release cannot proceed as configured."""


def check_version_argument(version: str) -> None:
    """Ensure ``version`` is a keyword, a bump type, or a valid version.

    Raises:
        ReleaseError: With a hint when a ``v`` prefix is the likely culprit.
    """
    if version in VERSION_KEYWORDS or version in BUMP_TYPES or is_valid_version(version):
        return
    message = f'Invalid version or version part specified: "{version}"'
    if version.startswith("v") and is_valid_version(version[1:]):
        message += '. Removing the "v" prefix will likely fix the issue'
    raise ReleaseError(message)


def validate_bump_analysis(result: ChangelogResult) -> BumpType:
    """Return the bump type from ``result`` or explain why there is none."""
    if result.total_commits == 0:
        raise ReleaseError(
            "Cannot determine the version automatically: no commits found since the "
            "last release."
        )
    if result.bump_type is None:
        raise ReleaseError(
            "Cannot determine the version automatically: none of the "
            f"{result.total_commits} commits matched a category with a 'semver' field. "
            "Specify the version explicitly or add 'semver' to your release categories."
        )
    return result.bump_type


def resolve_version(
    version_arg: Optional[str],
    *,
    tag_source: TagSource,
    commit_source: CommitSource,
    tag_prefix: str = "",
    versioning: Optional[VersioningConfig] = None,
    release_config: ReleaseConfig = DEFAULT_RELEASE_CONFIG,
    now: Optional[datetime | date] = None,
) -> str:
    """Resolve the version to release.

    ``version_arg`` may be an explicit version, ``major``/``minor``/``patch``,
    ``auto`` or ``calver``. Without one, the versioning policy decides.
    """
    versioning = versioning or VersioningConfig()
    version = (version_arg or "").strip()
    if not version:
        log_debug(f"no version specified, using versioning policy: {versioning.policy}")
        if versioning.policy == "manual":
            raise ReleaseError(
                "Version is required. Either specify a version argument or set "
                "versioning.policy to 'auto' or 'calver' in .pilot.yml"
            )
        version = versioning.policy

    check_version_argument(version)

    if version == "calver":
        return calculate_calver(
            tag_source.list_tags(), versioning.calver, now, tag_prefix=tag_prefix
        )

    if version != "auto" and version not in BUMP_TYPES:
        return version

    latest = latest_version(tag_source.list_tags(), tag_prefix)
    current = str(latest[0]) if latest is not None else "0.0.0"
    if version == "auto":
        since = latest[1] if latest is not None else None
        result = generate_changelog(commit_source.commits_since(since), release_config)
        bump_type = validate_bump_analysis(result)
    else:
        bump_type = cast(BumpType, version)
    new_version = calculate_next_version(current, bump_type)
    log_info(f"version bump: {current} -> {new_version} ({bump_type} bump)")
    return new_version


def resolve_changelog_path(project_root: Path, path: Path) -> Path:
    """Return the changelog location, which must lie inside ``project_root``."""
    root = project_root.resolve()
    resolved = (root / path).resolve()
    if resolved != root and root not in resolved.parents:
        raise ReleaseError(f'Invalid changelog path: "{path}"')
    return resolved


def prepare_changelog(
    path: Path,
    new_version: str,
    *,
    policy: ChangelogPolicy,
    body_factory: Callable[[], str],
    write: bool = True,
) -> Optional[str]:
    """Apply the changelog policy for ``new_version`` and return its section body.

    ``simple`` only checks that a non-empty section exists. ``auto`` creates
    the changelog when needed, fills an empty section from
    ``body_factory``, and renames an ``Unreleased`` section to the version.
    With ``write`` disabled the file is left untouched.
    """
    if policy == "none":
        log_debug('changelog policy is "none", nothing to do')
        return None
    if policy not in ("simple", "auto"):
        raise ReleaseError(f'Invalid changelog policy: "{policy}"')

    if path.exists():
        markdown = read_changelog(path)
    elif policy == "auto":
        log_info(f"creating changelog file: {path}")
        markdown = CHANGELOG_TEMPLATE
    else:
        raise ReleaseError(f'Changelog does not exist: "{path}"')

    changeset = find_changeset(markdown, new_version, fallback_to_unreleased=policy == "auto")
    if policy == "simple":
        if changeset is None or not changeset.body:
            raise ReleaseError(f'No changelog entry found for version "{new_version}"')
        return changeset.body

    if changeset is None:
        changeset = Changeset(name=new_version, body="")
    replace_section: Optional[str] = None
    if not changeset.body:
        replace_section = changeset.name
        changeset.body = body_factory()
    if changeset.name == DEFAULT_UNRELEASED_TITLE:
        replace_section = changeset.name
        changeset.name = new_version

    if replace_section is not None:
        markdown = remove_changeset(markdown, replace_section)
        markdown = prepend_changeset(markdown, changeset)
    if write:
        log_debug(f"updating {path} for version {new_version}")
        write_changelog(path, markdown)
    return changeset.body


@dataclass
class ReleasePlan:
    """Everything decided for a release before anything is published."""

    version: str
    tag: str
    previous_tag: Optional[str] = None
    bump_type: Optional[BumpType] = None
    changelog: Optional[str] = None
    publish_order: list[WorkspacePackage] = field(default_factory=list)


class _MemoizedCommitSource:
    def __init__(self, source: CommitSource) -> None:
        self._source = source
        self._cache: dict[Optional[str], list[CommitEntry]] = {}

    def commits_since(self, revision: Optional[str]) -> list[CommitEntry]:
        if revision not in self._cache:
            self._cache[revision] = self._source.commits_since(revision)
        return self._cache[revision]


def plan_release(
    project_root: Path,
    config: ProjectConfig,
    *,
    tag_source: TagSource,
    commit_source: CommitSource,
    release_config: ReleaseConfig = DEFAULT_RELEASE_CONFIG,
    version_arg: Optional[str] = None,
    now: Optional[datetime | date] = None,
    write_changelog: bool = True,
) -> ReleasePlan:
    """Resolve the version, apply the changelog policy, and order packages.

    Private workspace packages are left out of the publish order.
    """
    commits = _MemoizedCommitSource(commit_source)
    previous = latest_version(tag_source.list_tags(), config.tag_prefix)
    previous_tag = previous[1] if previous is not None else None

    version = resolve_version(
        version_arg,
        tag_source=tag_source,
        commit_source=commits,
        tag_prefix=config.tag_prefix,
        versioning=config.versioning,
        release_config=release_config,
        now=now,
    )

    analysis: Optional[ChangelogResult] = None

    def _analysis() -> ChangelogResult:
        nonlocal analysis
        if analysis is None:
            analysis = generate_changelog(
                commits.commits_since(previous_tag),
                release_config,
                repository=config.repository,
                mention_style=config.changelog.mention_style,
            )
        return analysis

    changelog_path = resolve_changelog_path(project_root, config.changelog.path)
    body = prepare_changelog(
        changelog_path,
        version,
        policy=config.changelog.policy,
        body_factory=lambda: _analysis().body,
        write=write_changelog,
    )

    ordered = topological_sort_packages(discover_workspaces(project_root).packages)
    requested = (version_arg or "").strip() or config.versioning.policy
    bump_type: Optional[BumpType] = None
    if requested in BUMP_TYPES:
        bump_type = cast(BumpType, requested)
    elif requested == "auto":
        bump_type = _analysis().bump_type
    return ReleasePlan(
        version=version,
        tag=version_to_tag(version, config.tag_prefix),
        previous_tag=previous_tag,
        bump_type=bump_type,
        changelog=body,
        publish_order=[package for package in ordered if not package.private],
    )
