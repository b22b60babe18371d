"""CLI package for release-pilot.

This package contains the modular CLI implementation:
- _core.py: CLIContext, shared options, main entry point
- _version.py: version command group
- _changeset.py: changeset command group
- _changelog.py: changelog generation
- _workspace.py: workspace ordering
- _pointers.py: pointer file maintenance
- _release.py: release planning
"""

from __future__ import annotations

# Re-export core types and utilities
from ._core import (
    CLIContext,
    VERSION_FLAGS,
    create_cli_context,
    translate_errors,
    _create_cli_group,
    main,
)

from ._version import (
    run_version_calver,
    run_version_compare,
    run_version_next,
    version_group,
)

from ._changeset import (
    changeset_group,
    run_changeset_prepend,
    run_changeset_remove,
    run_changeset_show,
)

from ._changelog import (
    changelog_group,
    run_changelog_generate,
)

from ._workspace import (
    run_workspace_order,
    workspace_group,
)

from ._pointers import (
    pointers_group,
    run_pointers_update,
)

from ._release import (
    release_group,
    run_release_plan,
)

# Create the main CLI group
cli = _create_cli_group()

# Register all commands with the cli group
cli.add_command(version_group)
cli.add_command(changeset_group)
cli.add_command(changelog_group)
cli.add_command(workspace_group)
cli.add_command(pointers_group)
cli.add_command(release_group)


__all__ = [
    # Core
    "cli",
    "main",
    "CLIContext",
    "VERSION_FLAGS",
    "create_cli_context",
    "translate_errors",
    # Version
    "version_group",
    "run_version_next",
    "run_version_compare",
    "run_version_calver",
    # Changeset
    "changeset_group",
    "run_changeset_show",
    "run_changeset_remove",
    "run_changeset_prepend",
    # Changelog
    "changelog_group",
    "run_changelog_generate",
    # Workspace
    "workspace_group",
    "run_workspace_order",
    # Pointers
    "pointers_group",
    "run_pointers_update",
    # Release
    "release_group",
    "run_release_plan",
]
