"""Core CLI infrastructure: context, shared options, and the entry point."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from importlib.metadata import PackageNotFoundError, version as metadata_version
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

import click
import yaml

from .. import __version__ as package_version
from ..config import (
    ProjectConfig,
    ReleaseConfig,
    ReleaseConfigResolution,
    default_config_path,
    load_config,
    resolve_release_config,
)
from ..release import resolve_changelog_path
from ..sources import (
    CommitSource,
    JsonCommitSource,
    StaticCommitSource,
    StaticTagSource,
    load_tags_file,
)
from ..utils import (
    abort_on_user_interrupt,
    configure_logging,
    log_debug,
    log_warning,
)
from ..workspaces import DependencyCycleError

F = TypeVar("F", bound=Callable[..., Any])

__all__ = [
    "CLIContext",
    "VERSION_FLAGS",
    "create_cli_context",
    "cli",
    "changelog_file_option",
    "commits_option",
    "now_option",
    "tag_options",
    "translate_errors",
    "_build_commit_source",
    "_build_tag_source",
    "_create_cli_group",
    "main",
]

VERSION_FLAGS = {"--version", "-V"}


def _resolve_cli_version() -> str:
    try:
        return metadata_version("release-pilot")
    except PackageNotFoundError:
        return package_version


@contextmanager
def translate_errors() -> Iterator[None]:
    """Turn library errors into click errors so they print without a traceback."""
    try:
        yield
    except (ValueError, yaml.YAMLError, DependencyCycleError, OSError) as error:
        raise click.ClickException(str(error)) from error


def tag_options() -> Callable[[F], F]:
    """Shared --tag/--tags-file options for commands that need existing tags.

    Used by: version next, version calver, release plan
    """

    def decorator(f: F) -> F:
        f = click.option(
            "--tags-file",
            type=click.Path(path_type=Path, dir_okay=False, exists=True),
            help="File listing existing tags, one per line.",
        )(f)
        return click.option(
            "--tag",
            "tags",
            multiple=True,
            help="An existing tag. Repeat for several tags.",
        )(f)

    return decorator


def commits_option() -> Callable[[F], F]:
    """Shared --commits option pointing at a JSON file of commit records."""

    def decorator(f: F) -> F:
        return click.option(
            "--commits",
            "commits_path",
            type=click.Path(path_type=Path, dir_okay=False, exists=True),
            help="JSON file with the commits since the last release, newest first.",
        )(f)

    return decorator


def changelog_file_option() -> Callable[[F], F]:
    """Shared --file option to point changeset commands at another changelog."""

    def decorator(f: F) -> F:
        return click.option(
            "--file",
            "changelog_file",
            type=click.Path(path_type=Path, dir_okay=False),
            help="Changelog to operate on. Defaults to the configured changelog path.",
        )(f)

    return decorator


def now_option() -> Callable[[F], F]:
    """Shared --now option to pin the date used for calendar versions."""

    def decorator(f: F) -> F:
        return click.option(
            "--now",
            type=click.DateTime(formats=["%Y-%m-%d"]),
            help="Date to compute calendar versions for (YYYY-MM-DD). Defaults to today.",
        )(f)

    return decorator


def _build_tag_source(tags: Sequence[str], tags_file: Optional[Path]) -> StaticTagSource:
    collected = list(tags)
    if tags_file is not None:
        with translate_errors():
            collected.extend(load_tags_file(tags_file))
    return StaticTagSource(collected)


def _build_commit_source(commits_path: Optional[Path]) -> CommitSource:
    if commits_path is None:
        return StaticCommitSource()
    return JsonCommitSource(commits_path)


def _as_date(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value is not None else None


@dataclass
class CLIContext:
    """Shared command context.

    The project and release configs are loaded at most once per invocation,
    and release config warnings are logged when it is first resolved.
    """

    project_root: Path
    config_path: Path
    _config: Optional[ProjectConfig] = None
    _release_config: Optional[ReleaseConfigResolution] = None

    def ensure_config(self) -> ProjectConfig:
        if self._config is None:
            if not self.config_path.exists():
                log_debug(f"no config at {self.config_path}, using defaults")
                self._config = ProjectConfig()
            else:
                try:
                    self._config = load_config(self.config_path)
                except (ValueError, yaml.YAMLError) as error:
                    raise click.ClickException(str(error)) from error
        return self._config

    def ensure_release_config(self) -> ReleaseConfig:
        if self._release_config is None:
            config = self.ensure_config()
            try:
                resolution = resolve_release_config(
                    self.project_root, scope_grouping=config.changelog.scope_grouping
                )
            except (ValueError, yaml.YAMLError) as error:
                raise click.ClickException(str(error)) from error
            for warning in resolution.warnings:
                log_warning(warning)
            self._release_config = resolution
        return self._release_config.config

    def changelog_path(self, override: Optional[Path] = None) -> Path:
        """Return the changelog file, honoring an explicit path from the command line."""
        if override is not None:
            return override
        with translate_errors():
            return resolve_changelog_path(self.project_root, self.ensure_config().changelog.path)


def _resolve_project_root(value: Path) -> Path:
    resolved = value.resolve()
    for candidate in [resolved] + list(resolved.parents):
        if default_config_path(candidate).exists():
            return candidate
    return resolved


def create_cli_context(
    *,
    root: Path | None = None,
    config: Optional[Path] = None,
    debug: bool = False,
) -> CLIContext:
    """Return a CLIContext using the same resolution logic as the CLI entry point."""

    configure_logging(debug)

    resolved_root = _resolve_project_root(root if root is not None else Path("."))
    config_path = config.resolve() if config else default_config_path(resolved_root)
    log_debug(f"resolved project root: {resolved_root}")
    log_debug(f"using config path: {config_path}")
    return CLIContext(project_root=resolved_root, config_path=config_path)


# Assigned in the package __init__ once all commands are defined.
cli: click.Group = None  # type: ignore[assignment]


def _create_cli_group() -> click.Group:
    """Create the main CLI group. Called after all commands are defined."""

    @click.group(context_settings={"help_option_names": ["-h", "--help"]})
    @click.option(
        "--root",
        type=click.Path(path_type=Path, exists=True, file_okay=False),
        help="Project root containing .pilot.yml and the changelog.",
    )
    @click.option(
        "--config",
        type=click.Path(path_type=Path, dir_okay=False),
        help="Path to an explicit project config YAML file.",
    )
    @click.option(
        "--debug",
        "-d",
        is_flag=True,
        help="Enable debug logging.",
    )
    @click.pass_context
    def _cli(
        ctx: click.Context,
        root: Path | None,
        config: Optional[Path],
        debug: bool,
    ) -> None:
        """Plan releases: versions, changelogs, publish order, and pointers."""

        ctx.obj = create_cli_context(root=root, config=config, debug=debug)

    return click.version_option(version=_resolve_cli_version())(_cli)


def main(argv: list[str] | None = None) -> int:
    """Entry point for console_scripts."""
    # Import cli here to avoid circular import at module load time
    from . import cli

    args = list(argv) if argv is not None else list(sys.argv[1:])

    if any(flag in args for flag in VERSION_FLAGS):
        click.echo(_resolve_cli_version())
        return 0

    try:
        cli.main(args=args, prog_name="release-pilot", standalone_mode=False)
    except click.ClickException as exc:
        exc.show(file=sys.stderr)
        exit_code = getattr(exc, "exit_code", 1)
        return exit_code if isinstance(exit_code, int) else 1
    except click.exceptions.Abort as exc:
        try:
            abort_on_user_interrupt(exc)
        except click.exceptions.Exit as exit_exc:
            return exit_exc.exit_code if isinstance(exit_exc.exit_code, int) else 130
    except KeyboardInterrupt as exc:
        try:
            abort_on_user_interrupt(exc)
        except click.exceptions.Exit as exit_exc:
            exit_code = getattr(exit_exc, "exit_code", 130)
            return exit_code if isinstance(exit_code, int) else 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0
    return 0
