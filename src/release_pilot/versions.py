"""Semantic and calendar version handling.

Versions are parsed permissively from free text (tags, changelog headings,
pointer file names). Ordering is deliberately partial: when two versions
differ only in ways that have no agreed-upon precedence (build metadata or
non-numeric pre-release tags), comparison fails instead of guessing which one
is "latest".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Literal, Optional

from .utils import log_debug, log_info

BumpType = Literal["major", "minor", "patch"]
BUMP_TYPES: tuple[BumpType, ...] = ("major", "minor", "patch")

_SEMVER_PATTERN = re.compile(
    r"\bv?(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)"
    r"(?:-?([\da-z-]+(?:\.[\da-z-]+)*))?"
    r"(?:\+([\da-z-]+(?:\.[\da-z-]+)*))?\b",
    re.IGNORECASE | re.ASCII,
)
_PREVIEW_PATTERN = re.compile(
    r"(?:^|[^a-z])(preview|pre|rc|dev|alpha|beta|unstable|a|b)(?:[^a-z]|$)",
    re.IGNORECASE,
)
_CALVER_DIRECTIVE = re.compile(r"%-?.")


class VersionParseError(ValueError):
    """Raised when text does not contain a valid version."""


class AmbiguousVersionOrderError(ValueError):
    """Raised when two versions have no well-defined ordering."""


class CalVerFormatError(ValueError):
    """Raised for unsupported directives in a CalVer date format."""


@dataclass(frozen=True)
class Version:
    """A parsed semantic version.

    ``pre`` also holds numeric post-release suffixes such as the ``1`` in
    ``1.2.3-1``; those are not pre-releases in meaning.
    """

    major: int
    minor: int
    patch: int
    pre: Optional[str] = None
    build: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += f"-{self.pre}"
        if self.build:
            text += f"+{self.build}"
        return text

    @property
    def is_prerelease(self) -> bool:
        return bool(self.pre) and not self.pre.isdigit()


def get_version(text: str) -> Optional[str]:
    """Extract a version substring from ``text`` with any leading ``v`` removed."""
    match = _SEMVER_PATTERN.search(text)
    if match is None:
        return None
    found = match.group(0)
    if found[0] in "vV":
        return found[1:]
    return found


def is_valid_version(text: str) -> bool:
    """Return True if ``text`` is exactly a version string."""
    return bool(text) and text == get_version(text)


def parse_version(text: str) -> Version:
    """Parse the first version found in ``text``."""
    match = _SEMVER_PATTERN.search(text)
    if match is None:
        raise VersionParseError(f"not a valid version: {text!r}")
    major, minor, patch, pre, build = match.groups()
    return Version(
        major=int(major),
        minor=int(minor),
        patch=int(patch),
        pre=pre or None,
        build=build or None,
    )


def try_parse_version(text: str) -> Optional[Version]:
    """Return the parsed version, or None if ``text`` holds none."""
    try:
        return parse_version(text)
    except VersionParseError:
        return None


def is_preview_release(text: str) -> bool:
    """Return True if ``text`` is a valid version carrying a pre-release keyword."""
    if not is_valid_version(text):
        return False
    pre = parse_version(text).pre
    if not pre or pre.isdigit():
        return False
    return _PREVIEW_PATTERN.search(pre) is not None


def version_greater_or_equal(v1: Version, v2: Version) -> bool:
    """Return True if ``v1`` orders at or above ``v2``.

    Raises:
        AmbiguousVersionOrderError: If the two versions differ only in build
            metadata or in non-numeric pre-release tags.
    """
    if v1.major != v2.major:
        return v1.major > v2.major
    if v1.minor != v2.minor:
        return v1.minor > v2.minor
    if v1.patch != v2.patch:
        return v1.patch > v2.patch
    if not v1.pre and v2.pre:
        return True
    if v1.pre and not v2.pre:
        return False
    if v1.pre == v2.pre:
        if v1.build == v2.build:
            return True
    elif v1.pre and v2.pre and v1.pre.isdigit() and v2.pre.isdigit():
        if int(v1.pre) != int(v2.pre):
            return int(v1.pre) > int(v2.pre)
    raise AmbiguousVersionOrderError(f'Cannot compare the two versions: "{v1}" and "{v2}"')


def version_to_tag(version: str, tag_prefix: str = "") -> str:
    """Return the git tag name for ``version``."""
    return f"{tag_prefix}{version}"


def tag_to_version(tag: str, tag_prefix: str = "") -> Optional[str]:
    """Return the version named by ``tag``, or None if it is not a version tag."""
    if tag_prefix and not tag.startswith(tag_prefix):
        return None
    candidate = tag[len(tag_prefix) :]
    if not is_valid_version(candidate):
        return None
    return candidate


def latest_version(tags: Iterable[str], tag_prefix: str = "") -> Optional[tuple[Version, str]]:
    """Return the greatest version among ``tags`` together with its tag."""
    best: Optional[tuple[Version, str]] = None
    for tag in tags:
        candidate = tag_to_version(tag, tag_prefix)
        if candidate is None:
            continue
        parsed = parse_version(candidate)
        if best is None or version_greater_or_equal(parsed, best[0]):
            best = (parsed, tag)
    return best


def calculate_next_version(current: str, bump_type: BumpType) -> str:
    """Apply ``bump_type`` to ``current`` and return the new version string.

    A pre-release is bumped to its own release when the bump would not move
    past it, so ``1.0.0-rc.1`` patch-bumps to ``1.0.0``.
    """
    if bump_type not in BUMP_TYPES:
        raise ValueError(f"Unknown bump type: {bump_type!r}")
    base = parse_version(current or "0.0.0")
    major, minor, patch = base.major, base.minor, base.patch
    pending = base.is_prerelease
    if bump_type == "major":
        if not (pending and minor == 0 and patch == 0):
            major += 1
        minor = patch = 0
    elif bump_type == "minor":
        if not (pending and patch == 0):
            minor += 1
        patch = 0
    elif not pending:
        patch += 1
    return str(Version(major, minor, patch))


@dataclass
class CalVerConfig:
    """Configuration for calendar versioning."""

    offset_days: int = 14
    format: str = "%y.%-m"


DEFAULT_CALVER_CONFIG = CalVerConfig()


def format_calver_date(value: date, fmt: str) -> str:
    """Format ``value`` with the restricted strftime subset used for CalVer.

    Supported directives: ``%y``, ``%Y``, ``%m``, ``%-m``, ``%d``, ``%-d``.
    """
    replacements = {
        "%Y": str(value.year),
        "%y": str(value.year)[-2:],
        "%m": f"{value.month:02d}",
        "%-m": str(value.month),
        "%d": f"{value.day:02d}",
        "%-d": str(value.day),
    }

    def _replace(match: re.Match[str]) -> str:
        directive = match.group(0)
        if directive not in replacements:
            raise CalVerFormatError(f"Unsupported CalVer directive {directive!r} in {fmt!r}")
        return replacements[directive]

    return _CALVER_DIRECTIVE.sub(_replace, fmt)


def calculate_calver(
    existing_tags: Iterable[str],
    config: CalVerConfig = DEFAULT_CALVER_CONFIG,
    now: Optional[datetime | date] = None,
    *,
    tag_prefix: str = "",
) -> str:
    """Return the next calendar version given the tags that already exist."""
    if now is None:
        now = datetime.now()
    current = now.date() if isinstance(now, datetime) else now
    target = current - timedelta(days=config.offset_days)
    date_part = format_calver_date(target, config.format)
    log_debug(f"CalVer: using date {target.isoformat()}, date part: {date_part}")

    tag_start = f"{tag_prefix}{date_part}."
    patch = 0
    for tag in existing_tags:
        if not tag.startswith(tag_start):
            continue
        suffix = tag[len(tag_start) :]
        if suffix.isdecimal() and suffix.isascii() and int(suffix) >= patch:
            patch = int(suffix) + 1

    version = f"{date_part}.{patch}"
    log_info(f"CalVer: determined version {version}")
    return version
