"""Configuration helpers for release-pilot.

Two files configure a project:

* ``.pilot.yml`` at the project root holds project settings (repository,
  tag prefix, changelog and versioning policies).
* ``.github/release.yml`` holds the changelog categories in GitHub's release
  notes format, extended with ``commit_patterns`` and ``semver``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Collection, Literal, Mapping, MutableMapping, Optional, cast

import yaml

from .changesets import DEFAULT_CHANGELOG_PATH
from .utils import log_debug, normalize_string_choices
from .versions import BUMP_TYPES, BumpType, CalVerConfig

ChangelogPolicy = Literal["none", "simple", "auto"]
VersioningPolicy = Literal["manual", "auto", "calver"]
MentionStyle = Literal["mention", "bold"]

CONFIG_RELATIVE_PATH = Path(".pilot.yml")
RELEASE_CONFIG_RELATIVE_PATH = Path(".github") / "release.yml"
RELEASE_CONFIG_DOCS_URL = (
    "https://docs.github.com/en/repositories/releasing-projects-on-github/"
    "automatically-generated-release-notes"
)

CHANGELOG_POLICY_CHOICES: tuple[ChangelogPolicy, ...] = ("none", "simple", "auto")
VERSIONING_POLICY_CHOICES: tuple[VersioningPolicy, ...] = ("manual", "auto", "calver")
MENTION_STYLE_CHOICES: tuple[MentionStyle, ...] = ("mention", "bold")

_REPOSITORY_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")


def default_config_path(project_root: Path) -> Path:
    """Return the default config path for a project root."""
    return project_root / CONFIG_RELATIVE_PATH


def release_config_path(project_root: Path) -> Path:
    """Return the release categories path for a project root."""
    return project_root / RELEASE_CONFIG_RELATIVE_PATH


@dataclass
class ChangelogSettings:
    """How the changelog file is maintained during a release."""

    path: Path = DEFAULT_CHANGELOG_PATH
    policy: ChangelogPolicy = "none"
    scope_grouping: bool = False
    mention_style: MentionStyle = "mention"


@dataclass
class VersioningConfig:
    """How the next version is chosen when none is given explicitly."""

    policy: VersioningPolicy = "manual"
    calver: CalVerConfig = field(default_factory=CalVerConfig)


@dataclass
class ProjectConfig:
    """Structured representation of ``.pilot.yml``."""

    repository: Optional[str] = None
    tag_prefix: str = ""
    changelog: ChangelogSettings = field(default_factory=ChangelogSettings)
    versioning: VersioningConfig = field(default_factory=VersioningConfig)


def _read_yaml_mapping(path: Path, what: str) -> MutableMapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, MutableMapping):
        raise ValueError(f"{what} root must be a mapping")
    return raw


def _optional_mapping(raw: Mapping[str, Any], key: str, option: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Config option '{option}' must be a mapping.")
    return value


def _optional_bool(raw: Mapping[str, Any], key: str, option: str, default: bool) -> bool:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config option '{option}' must be a boolean.")
    return value


def _optional_choice(
    raw: Mapping[str, Any], key: str, option: str, choices: tuple[str, ...], default: str
) -> str:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"Config option '{option}' must be a string.")
    normalized = value.strip().lower()
    if normalized not in choices:
        allowed = ", ".join(choices)
        raise ValueError(f"Config option '{option}' must be one of: {allowed}")
    return normalized


def load_config(path: Path) -> ProjectConfig:
    """Load the project configuration from disk."""
    raw = _read_yaml_mapping(path, "Config")

    repository_raw = raw.get("repository")
    repository: Optional[str] = None
    if repository_raw is not None:
        if not isinstance(repository_raw, str):
            raise ValueError("Config option 'repository' must be a string.")
        repository = repository_raw.strip() or None
        if repository is not None and not _REPOSITORY_PATTERN.match(repository):
            raise ValueError("Config option 'repository' must have the form 'owner/name'.")

    tag_prefix_raw = raw.get("tag_prefix", "")
    if tag_prefix_raw is None:
        tag_prefix_raw = ""
    if not isinstance(tag_prefix_raw, str):
        raise ValueError("Config option 'tag_prefix' must be a string.")

    changelog_raw = _optional_mapping(raw, "changelog", "changelog")
    path_raw = changelog_raw.get("path")
    changelog_path = DEFAULT_CHANGELOG_PATH
    if path_raw is not None:
        if not isinstance(path_raw, str) or not path_raw.strip():
            raise ValueError("Config option 'changelog.path' must be a non-empty string.")
        changelog_path = Path(path_raw.strip())
    changelog = ChangelogSettings(
        path=changelog_path,
        policy=cast(
            ChangelogPolicy,
            _optional_choice(
                changelog_raw, "policy", "changelog.policy", CHANGELOG_POLICY_CHOICES, "none"
            ),
        ),
        scope_grouping=_optional_bool(
            changelog_raw, "scope_grouping", "changelog.scope_grouping", False
        ),
        mention_style=cast(
            MentionStyle,
            _optional_choice(
                changelog_raw,
                "mention_style",
                "changelog.mention_style",
                MENTION_STYLE_CHOICES,
                "mention",
            ),
        ),
    )

    versioning_raw = _optional_mapping(raw, "versioning", "versioning")
    calver_raw = _optional_mapping(versioning_raw, "calver", "versioning.calver")
    calver = CalVerConfig()
    offset_raw = calver_raw.get("offset")
    if offset_raw is not None:
        if isinstance(offset_raw, bool) or not isinstance(offset_raw, int) or offset_raw < 0:
            raise ValueError(
                "Config option 'versioning.calver.offset' must be a non-negative integer."
            )
        calver.offset_days = offset_raw
    format_raw = calver_raw.get("format")
    if format_raw is not None:
        if not isinstance(format_raw, str) or not format_raw.strip():
            raise ValueError("Config option 'versioning.calver.format' must be a non-empty string.")
        calver.format = format_raw.strip()
    versioning = VersioningConfig(
        policy=cast(
            VersioningPolicy,
            _optional_choice(
                versioning_raw,
                "policy",
                "versioning.policy",
                VERSIONING_POLICY_CHOICES,
                "manual",
            ),
        ),
        calver=calver,
    )

    return ProjectConfig(
        repository=repository,
        tag_prefix=tag_prefix_raw,
        changelog=changelog,
        versioning=versioning,
    )


def load_project_config(project_root: Path) -> ProjectConfig:
    """Load the project config, falling back to defaults when none exists."""
    config_path = default_config_path(project_root)
    if not config_path.exists():
        log_debug(f"no config at {config_path}, using defaults")
        return ProjectConfig()
    return load_config(config_path)


def dump_config(config: ProjectConfig) -> dict[str, Any]:
    """Convert a ProjectConfig into a plain dictionary suitable for YAML output."""
    data: dict[str, Any] = {}
    if config.repository:
        data["repository"] = config.repository
    if config.tag_prefix:
        data["tag_prefix"] = config.tag_prefix

    changelog: dict[str, Any] = {}
    if config.changelog.path != DEFAULT_CHANGELOG_PATH:
        changelog["path"] = config.changelog.path.as_posix()
    if config.changelog.policy != "none":
        changelog["policy"] = config.changelog.policy
    if config.changelog.scope_grouping:
        changelog["scope_grouping"] = True
    if config.changelog.mention_style != "mention":
        changelog["mention_style"] = config.changelog.mention_style
    if changelog:
        data["changelog"] = changelog

    versioning: dict[str, Any] = {}
    if config.versioning.policy != "manual":
        versioning["policy"] = config.versioning.policy
    calver: dict[str, Any] = {}
    if config.versioning.calver.offset_days != CalVerConfig.offset_days:
        calver["offset"] = config.versioning.calver.offset_days
    if config.versioning.calver.format != CalVerConfig.format:
        calver["format"] = config.versioning.calver.format
    if calver:
        versioning["calver"] = calver
    if versioning:
        data["versioning"] = versioning
    return data


def save_config(config: ProjectConfig, path: Path) -> None:
    """Write the configuration to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dump_config(config), handle, sort_keys=False)


@dataclass(frozen=True)
class Exclusions:
    """Labels and authors that keep a change out of a changelog or category."""

    labels: frozenset[str] = frozenset()
    authors: frozenset[str] = frozenset()

    def matches(self, labels: Collection[str], authors: Collection[str]) -> bool:
        if any(label in self.labels for label in labels):
            return True
        return any(author in self.authors for author in authors)


@dataclass(frozen=True)
class Category:
    """A changelog section and the rules that put changes into it."""

    title: str
    labels: tuple[str, ...] = ()
    commit_patterns: tuple[re.Pattern[str], ...] = ()
    semver: Optional[BumpType] = None
    exclude: Exclusions = field(default_factory=Exclusions)

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.labels


@dataclass(frozen=True)
class ReleaseConfig:
    """Changelog categories and global exclusions."""

    categories: tuple[Category, ...] = ()
    exclude: Exclusions = field(default_factory=Exclusions)
    scope_grouping: bool = False


@dataclass(frozen=True)
class ReleaseConfigResolution:
    """A resolved release config plus any warnings found while loading it.

    ``source`` is None when the built-in default is in use.
    """

    config: ReleaseConfig
    warnings: tuple[str, ...] = ()
    source: Optional[Path] = None


def _patterns(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


DEFAULT_RELEASE_CONFIG = ReleaseConfig(
    categories=(
        Category(
            title="Breaking Changes",
            labels=("breaking-change",),
            commit_patterns=_patterns(r"^\w+(?:\([^()\r\n]+\))?!:"),
            semver="major",
        ),
        Category(
            title="New Features",
            labels=("feature", "enhancement"),
            commit_patterns=_patterns(r"^feat\b"),
            semver="minor",
        ),
        Category(
            title="Bug Fixes",
            labels=("bug",),
            commit_patterns=_patterns(r"^fix\b"),
            semver="patch",
        ),
        Category(
            title="Documentation",
            labels=("documentation",),
            commit_patterns=_patterns(r"^docs?\b"),
            semver="patch",
        ),
        Category(
            title="Build / dependencies / internal",
            commit_patterns=_patterns(
                r"^(?:build|ref|chore|ci|refactor|perf|test|style|deps)\b"
            ),
            semver="patch",
        ),
    ),
)


def _parse_exclusions(raw: object, where: str) -> Exclusions:
    if raw is None:
        return Exclusions()
    if not isinstance(raw, Mapping):
        raise ValueError(f"Release config option '{where}.exclude' must be a mapping.")
    return Exclusions(
        labels=frozenset(normalize_string_choices(raw.get("labels"))),
        authors=frozenset(normalize_string_choices(raw.get("authors"))),
    )


def _parse_category(raw: object, index: int) -> Category:
    if not isinstance(raw, Mapping):
        raise ValueError(f"Release config category #{index + 1} must be a mapping.")
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValueError(f"Release config category #{index + 1} is missing a 'title'.")
    title = title.strip()
    where = f"categories[{title}]"

    patterns: list[re.Pattern[str]] = []
    for pattern in normalize_string_choices(raw.get("commit_patterns")):
        try:
            patterns.append(re.compile(pattern, re.IGNORECASE))
        except re.error as exc:
            raise ValueError(
                f"Release config category '{title}' has an invalid commit pattern "
                f"{pattern!r}: {exc}"
            ) from exc

    semver_raw = raw.get("semver")
    semver: Optional[BumpType] = None
    if semver_raw is not None:
        if not isinstance(semver_raw, str) or semver_raw.strip().lower() not in BUMP_TYPES:
            allowed = ", ".join(BUMP_TYPES)
            raise ValueError(f"Release config option '{where}.semver' must be one of: {allowed}")
        semver = cast(BumpType, semver_raw.strip().lower())

    return Category(
        title=title,
        labels=normalize_string_choices(raw.get("labels")),
        commit_patterns=tuple(patterns),
        semver=semver,
        exclude=_parse_exclusions(raw.get("exclude"), where),
    )


def load_release_config(path: Path, *, scope_grouping: bool = False) -> ReleaseConfig:
    """Load changelog categories from a ``release.yml`` file."""
    raw = _read_yaml_mapping(path, "Release config")
    changelog_raw = raw.get("changelog")
    if changelog_raw is None:
        return ReleaseConfig(scope_grouping=scope_grouping)
    if not isinstance(changelog_raw, Mapping):
        raise ValueError("Release config option 'changelog' must be a mapping.")

    categories_raw = changelog_raw.get("categories") or []
    if not isinstance(categories_raw, list):
        raise ValueError("Release config option 'changelog.categories' must be a list.")

    return ReleaseConfig(
        categories=tuple(
            _parse_category(category, index) for index, category in enumerate(categories_raw)
        ),
        exclude=_parse_exclusions(changelog_raw.get("exclude"), "changelog"),
        scope_grouping=scope_grouping,
    )


def resolve_release_config(
    project_root: Path, *, scope_grouping: bool = False
) -> ReleaseConfigResolution:
    """Load the project's release config or fall back to the built-in default.

    Custom configs are checked for categories without a ``semver`` field;
    those never influence automatic version bumps, so they are reported in a
    single warning.
    """
    path = release_config_path(project_root)
    if not path.is_file():
        log_debug(f"no release config at {path}, using conventional commit defaults")
        return ReleaseConfigResolution(
            config=replace(DEFAULT_RELEASE_CONFIG, scope_grouping=scope_grouping)
        )

    config = load_release_config(path, scope_grouping=scope_grouping)
    missing = [category.title for category in config.categories if category.semver is None]
    warnings: tuple[str, ...] = ()
    if missing:
        names = ", ".join(f"'{title}'" for title in missing)
        warnings = (
            f"release config {path} has categories without a 'semver' field: {names}. "
            "Commits in these categories do not affect automatic version bumps. "
            f"See {RELEASE_CONFIG_DOCS_URL} for the release.yml format.",
        )
    return ReleaseConfigResolution(config=config, warnings=warnings, source=path)
