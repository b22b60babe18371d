"""Locate, extract, remove, and insert release sections in changelog Markdown.

Two heading styles delimit changesets::

    ## 1.2.3

and::

    1.2.3
    -----

A changeset runs from its heading up to the next heading of either style, or
to the end of the document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Literal, Optional

from .utils import indent_lines
from .versions import try_parse_version

DEFAULT_CHANGELOG_PATH = Path("CHANGELOG.md")
DEFAULT_UNRELEASED_TITLE = "Unreleased"
DEFAULT_CHANGESET_BODY = "- No documented changes."
CHANGELOG_TEMPLATE = "# Changelog\n"
VERSION_HEADER_LEVEL = 2

HeadingStyle = Literal["atx", "setext"]

_ATX_HEADING = re.compile(r"^( *)## +(\S.*?) *(?:##)? *$")
_SETEXT_UNDERLINE = re.compile(r"^ *-{2,} *$")
_TRAILING_PARENTHETICAL = re.compile(r"\(.*\)$")


@dataclass(frozen=True)
class Heading:
    """A changeset heading found in a Markdown document.

    ``start`` is the offset of the heading's first character (including its
    indentation); ``end`` is the offset just past the heading and any blank
    lines that follow it.
    """

    style: HeadingStyle
    title: str
    padding: str
    start: int
    end: int


@dataclass
class Changeset:
    """A single changeset with name and description."""

    name: str
    body: str


@dataclass
class ChangesetLocation:
    """Where a changeset lives inside a Markdown document."""

    start: Heading
    end: Optional[Heading]
    padding: str


def _line_bounds(markdown: str, pos: int) -> tuple[int, int]:
    """Return the end of the line starting at ``pos`` and the start of the next one."""
    newline = markdown.find("\n", pos)
    if newline == -1:
        return len(markdown), len(markdown)
    return newline, newline + 1


def _skip_blank_lines(markdown: str, pos: int) -> int:
    while pos < len(markdown) and markdown[pos] == "\n":
        pos += 1
    return pos


def iter_headings(markdown: str) -> Iterator[Heading]:
    """Yield changeset headings in document order."""
    pos = 0
    length = len(markdown)
    while pos < length:
        line_end, next_start = _line_bounds(markdown, pos)
        line = markdown[pos:line_end]

        atx = _ATX_HEADING.match(line)
        if atx is not None:
            padding, title = atx.group(1), atx.group(2)
            yield Heading("atx", title, padding, pos, _skip_blank_lines(markdown, next_start))
            pos = _skip_blank_lines(markdown, next_start)
            continue

        if line.strip() and next_start < length:
            underline_end, after_underline = _line_bounds(markdown, next_start)
            if _SETEXT_UNDERLINE.match(markdown[next_start:underline_end]):
                stripped = line.lstrip(" ")
                padding = line[: len(line) - len(stripped)]
                end = _skip_blank_lines(markdown, after_underline)
                yield Heading("setext", stripped.rstrip(), padding, pos, end)
                pos = end
                continue

        pos = next_start


def locate_changeset(
    markdown: str, predicate: Callable[[str], bool]
) -> Optional[ChangesetLocation]:
    """Return the first heading whose title satisfies ``predicate``.

    The location also records the heading that follows it, so the section
    body is everything in between.
    """
    headings = iter_headings(markdown)
    for heading in headings:
        if predicate(heading.title):
            return ChangesetLocation(
                start=heading,
                end=next(headings, None),
                padding=heading.padding,
            )
    return None


def extract_changeset(markdown: str, location: ChangesetLocation) -> Changeset:
    """Return the changeset at ``location``.

    A trailing parenthetical on the title (usually a release date) is not
    part of the name.
    """
    end = location.end.start if location.end is not None else len(markdown)
    body = markdown[location.start.end : end].strip()
    name = _TRAILING_PARENTHETICAL.sub("", location.start.title).strip()
    return Changeset(name=name, body=body)


def find_changeset(
    markdown: str, tag: str, fallback_to_unreleased: bool = False
) -> Optional[Changeset]:
    """Return the changeset for the version named by ``tag``, if any.

    With ``fallback_to_unreleased``, an ``Unreleased`` section is returned
    when no section matches the version.
    """
    version = try_parse_version(tag)
    if version is None:
        return None

    location = locate_changeset(markdown, lambda title: try_parse_version(title) == version)
    if location is None and fallback_to_unreleased:
        location = locate_changeset(markdown, lambda title: title == DEFAULT_UNRELEASED_TITLE)
    if location is None:
        return None
    return extract_changeset(markdown, location)


def remove_changeset(markdown: str, header: str) -> str:
    """Return ``markdown`` without the changeset titled exactly ``header``."""
    location = locate_changeset(markdown, lambda title: title == header)
    if location is None:
        return markdown
    end = location.end.start if location.end is not None else len(markdown)
    return markdown[: location.start.start] + markdown[end:]


def _escape_markdown_pound(text: str) -> str:
    return text.replace("#", "&#35;")


def markdown_header(level: int, text: str) -> str:
    """Return an ATX heading of ``level`` with ``#`` in the text escaped."""
    return f"{'#' * level} {_escape_markdown_pound(text)}"


def prepend_changeset(markdown: str, changeset: Changeset) -> str:
    """Insert ``changeset`` before the top-most existing changeset.

    The new section copies the heading style and indentation of that
    changeset so existing formatting is kept. Without any changeset the
    section is appended as an ATX heading.
    """
    location = locate_changeset(markdown, bool)
    reference = location.start if location is not None else None
    padding = reference.padding if reference is not None else ""

    if reference is not None and reference.style == "setext":
        header = f"{padding}{changeset.name}\n{padding}{'-' * len(changeset.name)}"
    else:
        header = f"{padding}{markdown_header(VERSION_HEADER_LEVEL, changeset.name)}"
    body = indent_lines(changeset.body.strip() or DEFAULT_CHANGESET_BODY, padding)
    section = f"{header}\n\n{body}\n\n"

    if reference is None:
        if markdown.strip():
            markdown = markdown.rstrip("\n") + "\n\n"
        return markdown + section
    return markdown[: reference.start] + section + markdown[reference.start :]


def read_changelog(path: Path) -> str:
    """Return the changelog contents at ``path``."""
    return path.read_text(encoding="utf-8")


def write_changelog(path: Path, markdown: str) -> None:
    """Write ``markdown`` to the changelog at ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(markdown, encoding="utf-8")
