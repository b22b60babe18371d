"""Where tags and commits come from.

The release logic only needs two narrow interfaces. This module defines them
and ships implementations backed by plain files, which is how the CLI feeds
data that another tool (a CI step, a git hook) has already collected.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from .changelog import CommitEntry, PullRequest
from .utils import normalize_string_choices

DEFAULT_HEAD_REVISION = "HEAD"


class TagSource(Protocol):
    """Supplies the repository's tags, in no particular order."""

    def list_tags(self) -> list[str]: ...

    def current_head_revision(self) -> str: ...


class CommitSource(Protocol):
    """Supplies commits with their pull request metadata already resolved."""

    def commits_since(self, revision: Optional[str]) -> list[CommitEntry]: ...


@dataclass
class StaticTagSource:
    """A fixed list of tags."""

    tags: list[str] = field(default_factory=list)
    head: str = DEFAULT_HEAD_REVISION

    def list_tags(self) -> list[str]:
        return list(self.tags)

    def current_head_revision(self) -> str:
        return self.head


@dataclass
class StaticCommitSource:
    """A fixed list of commits, all of which count as unreleased."""

    commits: list[CommitEntry] = field(default_factory=list)

    def commits_since(self, revision: Optional[str]) -> list[CommitEntry]:
        return list(self.commits)


def load_tags_file(path: Path) -> list[str]:
    """Read one tag per line, ignoring blank lines and ``#`` comments."""
    tags: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        candidate = line.strip()
        if candidate and not candidate.startswith("#"):
            tags.append(candidate)
    return tags


def _require_string(data: Mapping[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} is missing '{key}'")
    return value.strip()


def _optional_string(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def pull_request_from_dict(data: Mapping[str, Any]) -> PullRequest:
    """Build a PullRequest from a decoded JSON record."""
    number = data.get("number")
    if isinstance(number, str) and number.strip().lstrip("#").isdigit():
        number = int(number.strip().lstrip("#"))
    if isinstance(number, bool) or not isinstance(number, int):
        raise ValueError("Pull request record is missing a numeric 'number'")

    labels_raw = data.get("labels")
    if isinstance(labels_raw, list):
        names = [label.get("name") if isinstance(label, Mapping) else label for label in labels_raw]
        labels_raw = [name for name in names if name is not None]
    return PullRequest(
        number=number,
        title=str(data.get("title") or ""),
        body=str(data.get("body") or ""),
        labels=normalize_string_choices(labels_raw),
        author=_optional_string(data, "author"),
    )


def commit_entry_from_dict(data: Mapping[str, Any]) -> CommitEntry:
    """Build a CommitEntry from a decoded JSON record."""
    if not isinstance(data, Mapping):
        raise ValueError("Commit record must be an object")
    pr_raw = data.get("pr")
    if pr_raw is not None and not isinstance(pr_raw, Mapping):
        raise ValueError("Commit record option 'pr' must be an object")
    return CommitEntry(
        hash=_require_string(data, "hash", "Commit record"),
        title=_require_string(data, "title", "Commit record"),
        body=str(data.get("body") or ""),
        author=_optional_string(data, "author"),
        pr=pull_request_from_dict(pr_raw) if pr_raw is not None else None,
    )


@dataclass
class JsonCommitSource:
    """Commits read from a JSON file, newest first.

    The file holds either an array of commit records or an object with a
    ``commits`` array. A record may list the ``tags`` pointing at it, which
    lets :meth:`commits_since` stop at a release tag.
    """

    path: Path
    _records: Optional[list[Mapping[str, Any]]] = field(default=None, repr=False)

    def _load(self) -> list[Mapping[str, Any]]:
        if self._records is None:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if isinstance(data, Mapping):
                data = data.get("commits")
            if not isinstance(data, list):
                raise ValueError(f"{self.path} must contain a list of commits")
            self._records = data
        return self._records

    def commits_since(self, revision: Optional[str]) -> list[CommitEntry]:
        commits: list[CommitEntry] = []
        for record in self._load():
            if revision is not None and isinstance(record, Mapping):
                tags = normalize_string_choices(record.get("tags"))
                if record.get("hash") == revision or revision in tags:
                    break
            commits.append(commit_entry_from_dict(record))
        return commits
