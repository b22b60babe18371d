"""Turn commits and their pull requests into a changelog section.

Commits are filtered (magic words, global exclusions), sorted into the
categories of a :class:`~release_pilot.config.ReleaseConfig`, and rendered
as Markdown. The same pass determines which version bump the changes call
for.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .changesets import markdown_header
from .config import Category, MentionStyle, ReleaseConfig
from .utils import indent_lines, log_debug, normalize_markdown
from .versions import BUMP_TYPES, BumpType

SKIP_CHANGELOG_MAGIC_WORD = "#skip-changelog"
BODY_IN_CHANGELOG_MAGIC_WORD = "#body-in-changelog"

# GitHub and GitLab prefer 8 characters over git's default 7.
SHORT_SHA_LENGTH = 8
SUBSECTION_HEADER_LEVEL = 3
SCOPE_HEADER_LEVEL = 4
OTHER_SECTION_TITLE = "Other"
MAX_OUTPUT_BYTES = 64 * 1024
TRUNCATION_NOTICE = "\n\n---\n_Changelog truncated._"

_CONVENTIONAL_TITLE = re.compile(
    r"^(?P<type>\w+)(?:\((?P<scope>[^()\r\n]+)\))?(?P<breaking>!)?:\s*(?P<subject>.+)$"
)
_LEADING_UNDERSCORE = re.compile(r"(^| )_")


@dataclass(frozen=True)
class PullRequest:
    """Pull request metadata associated with a commit."""

    number: int
    title: str
    body: str = ""
    labels: tuple[str, ...] = ()
    author: Optional[str] = None


@dataclass(frozen=True)
class CommitEntry:
    """A commit since the previous release."""

    hash: str
    title: str
    body: str = ""
    author: Optional[str] = None
    pr: Optional[PullRequest] = None

    @property
    def labels(self) -> tuple[str, ...]:
        return self.pr.labels if self.pr is not None else ()

    @property
    def authors(self) -> tuple[str, ...]:
        names = [self.author]
        if self.pr is not None:
            names.append(self.pr.author)
        return tuple(name for name in names if name)

    @property
    def display_title(self) -> str:
        return self.pr.title if self.pr is not None and self.pr.title else self.title


@dataclass
class ChangelogResult:
    """Rendered changelog plus the version bump its changes call for.

    ``total_commits`` counts commits not skipped via the magic word;
    ``matched_commits`` counts those claimed by a category with ``semver``.
    """

    body: str
    bump_type: Optional[BumpType] = None
    total_commits: int = 0
    matched_commits: int = 0


@dataclass
class _Section:
    title: str
    entries: list[CommitEntry] = field(default_factory=list)


def is_skipped(commit: CommitEntry) -> bool:
    """Return True if the commit or its pull request opts out of the changelog."""
    if SKIP_CHANGELOG_MAGIC_WORD in commit.body:
        return True
    return commit.pr is not None and SKIP_CHANGELOG_MAGIC_WORD in commit.pr.body


def is_excluded(commit: CommitEntry, config: ReleaseConfig) -> bool:
    """Return True if the global exclusions drop the commit."""
    return config.exclude.matches(commit.labels, commit.authors)


def _claims(category: Category, commit: CommitEntry) -> bool:
    return not category.exclude.matches(commit.labels, commit.authors)


def match_category(commit: CommitEntry, config: ReleaseConfig) -> Optional[Category]:
    """Return the category that claims ``commit``, if any.

    Labels take precedence over commit patterns across all categories. A
    wildcard category claims whatever the other categories leave over.
    """
    regular = [category for category in config.categories if not category.is_wildcard]
    wildcard = next((category for category in config.categories if category.is_wildcard), None)

    labels = set(commit.labels)
    if labels:
        for category in regular:
            if labels.intersection(category.labels) and _claims(category, commit):
                return category

    title = commit.display_title
    for category in regular:
        if any(pattern.search(title) for pattern in category.commit_patterns):
            if _claims(category, commit):
                return category

    if wildcard is not None and _claims(wildcard, commit):
        return wildcard
    return None


def conventional_scope(title: str) -> Optional[str]:
    """Return the scope of a conventional commit title like ``fix(api): ...``."""
    match = _CONVENTIONAL_TITLE.match(title)
    if match is None or match.group("scope") is None:
        return None
    return match.group("scope").strip() or None


def escape_leading_underscores(text: str) -> str:
    """Escape underscores that would otherwise start Markdown emphasis."""
    return _LEADING_UNDERSCORE.sub(r"\1\\_", text)


def format_mention(author: str, mention_style: MentionStyle = "mention") -> str:
    if mention_style == "bold":
        return f"**{author}**"
    return f"@{author}"


def format_link(commit: CommitEntry, repository: Optional[str] = None) -> str:
    """Return a link to the commit's pull request, or to the commit itself."""
    if commit.pr is not None:
        number = commit.pr.number
        if repository:
            return f"[#{number}](https://github.com/{repository}/pull/{number})"
        return f"#{number}"
    short_sha = commit.hash[:SHORT_SHA_LENGTH]
    if repository:
        return f"[{short_sha}](https://github.com/{repository}/commit/{commit.hash})"
    return short_sha


def _strip_pr_reference(title: str, number: int) -> str:
    suffix = f"(#{number})"
    stripped = title.rstrip()
    if stripped.endswith(suffix):
        return stripped[: -len(suffix)].rstrip()
    return title


def _changelog_body(commit: CommitEntry) -> str:
    if commit.pr is not None and BODY_IN_CHANGELOG_MAGIC_WORD in commit.pr.body:
        body = commit.pr.body
    elif BODY_IN_CHANGELOG_MAGIC_WORD in commit.body:
        body = commit.body
    else:
        return ""
    return normalize_markdown(body.replace(BODY_IN_CHANGELOG_MAGIC_WORD, ""))


def format_entry(
    commit: CommitEntry,
    *,
    repository: Optional[str] = None,
    mention_style: MentionStyle = "mention",
) -> str:
    """Render a single changelog bullet for ``commit``."""
    title = commit.display_title
    if commit.pr is not None:
        title = _strip_pr_reference(title, commit.pr.number)
    text = f"- {escape_leading_underscores(title)}"

    author = commit.pr.author if commit.pr is not None and commit.pr.author else commit.author
    if author:
        text += f" by {format_mention(author, mention_style)}"
    text += f" in {format_link(commit, repository)}"

    body = _changelog_body(commit)
    if body:
        text += "\n" + indent_lines(body, "  ")
    return text


def _render_entries(
    entries: Sequence[CommitEntry],
    *,
    repository: Optional[str],
    mention_style: MentionStyle,
) -> str:
    return "\n".join(
        format_entry(entry, repository=repository, mention_style=mention_style)
        for entry in entries
    )


def _render_section(
    section: _Section,
    *,
    scope_grouping: bool,
    repository: Optional[str],
    mention_style: MentionStyle,
) -> list[str]:
    blocks = [markdown_header(SUBSECTION_HEADER_LEVEL, section.title)]
    if not scope_grouping:
        blocks.append(
            _render_entries(section.entries, repository=repository, mention_style=mention_style)
        )
        return blocks

    unscoped: list[CommitEntry] = []
    scoped: dict[str, list[CommitEntry]] = {}
    for entry in section.entries:
        scope = conventional_scope(entry.display_title)
        if scope is None:
            unscoped.append(entry)
        else:
            scoped.setdefault(scope, []).append(entry)

    if unscoped:
        blocks.append(_render_entries(unscoped, repository=repository, mention_style=mention_style))
    for scope, entries in scoped.items():
        blocks.append(markdown_header(SCOPE_HEADER_LEVEL, scope))
        blocks.append(_render_entries(entries, repository=repository, mention_style=mention_style))
    return blocks


def _highest_bump(found: Iterable[BumpType]) -> Optional[BumpType]:
    found_set = set(found)
    for bump_type in BUMP_TYPES:
        if bump_type in found_set:
            return bump_type
    return None


def generate_changelog(
    commits: Iterable[CommitEntry],
    config: ReleaseConfig,
    *,
    repository: Optional[str] = None,
    mention_style: MentionStyle = "mention",
    max_leftovers: Optional[int] = None,
) -> ChangelogResult:
    """Build the changelog section and bump analysis for ``commits``.

    Commits that no category claims are listed under ``Other``. That heading
    only appears when at least one category section precedes it.
    """
    sections: dict[str, _Section] = {}
    leftovers: list[CommitEntry] = []
    bumps: list[BumpType] = []
    total = 0

    for commit in commits:
        if is_skipped(commit):
            continue
        total += 1
        if is_excluded(commit, config):
            log_debug(f"excluding commit {commit.hash[:SHORT_SHA_LENGTH]} from changelog")
            continue
        category = match_category(commit, config)
        if category is None:
            leftovers.append(commit)
            continue
        sections.setdefault(category.title, _Section(category.title)).entries.append(commit)
        if category.semver is not None:
            bumps.append(category.semver)

    blocks: list[str] = []
    # Categories render in declared order, not in order of first match.
    for title in dict.fromkeys(category.title for category in config.categories):
        section = sections.get(title)
        if section is None:
            continue
        blocks.extend(
            _render_section(
                section,
                scope_grouping=config.scope_grouping,
                repository=repository,
                mention_style=mention_style,
            )
        )

    if leftovers:
        if blocks:
            blocks.append(markdown_header(SUBSECTION_HEADER_LEVEL, OTHER_SECTION_TITLE))
        shown = leftovers if max_leftovers is None else leftovers[:max_leftovers]
        blocks.append(_render_entries(shown, repository=repository, mention_style=mention_style))
        if len(shown) < len(leftovers):
            blocks.append(f"_Plus {len(leftovers) - len(shown)} more_")

    return ChangelogResult(
        body="\n\n".join(blocks),
        bump_type=_highest_bump(bumps),
        total_commits=total,
        matched_commits=len(bumps),
    )


def truncate_for_output(
    text: str, link_url: Optional[str] = None, max_bytes: int = MAX_OUTPUT_BYTES
) -> str:
    """Return ``text`` cut down to at most ``max_bytes`` UTF-8 bytes.

    Truncated output ends with a notice, linking to ``link_url`` when given.
    The notice counts against the budget and the cut never splits a code
    point.
    """
    encoded = text.encode("utf-8", errors="replace")
    if len(encoded) <= max_bytes:
        return encoded.decode("utf-8")

    notice = TRUNCATION_NOTICE
    if link_url:
        notice += f" [View full changelog]({link_url})"
    encoded_notice = notice.encode("utf-8")
    budget = max_bytes - len(encoded_notice)
    if budget <= 0:
        return encoded_notice[:max(max_bytes, 0)].decode("utf-8", errors="ignore")

    cut = budget
    # Back up over continuation bytes to the start of the split code point.
    while cut > 0 and encoded[cut] & 0xC0 == 0x80:
        cut -= 1
    return encoded[:cut].decode("utf-8") + notice
