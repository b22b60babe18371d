"""Workspace commands for monorepos."""

from __future__ import annotations

import json
from typing import Optional

import click

from ..utils import emit_output, log_info
from ..workspaces import (
    WorkspacePackage,
    discover_workspaces,
    filter_workspace_packages,
    topological_sort_packages,
)
from ._core import CLIContext, translate_errors


def run_workspace_order(
    ctx: CLIContext,
    *,
    include: Optional[str] = None,
    exclude: Optional[str] = None,
    include_private: bool = False,
) -> list[WorkspacePackage]:
    """Return the project's workspace packages in publish order."""
    with translate_errors():
        discovery = discover_workspaces(ctx.project_root)
        ordered = topological_sort_packages(discovery.packages)
        selected = filter_workspace_packages(ordered, include, exclude)
    log_info(f"found {len(discovery.packages)} {discovery.kind} workspace packages")
    if include_private:
        return selected
    return [package for package in selected if not package.private]


@click.group("workspace")
def workspace_group() -> None:
    """Inspect monorepo workspace packages."""


@workspace_group.command("order")
@click.option("--include", help="Regular expression a package name must match.")
@click.option("--exclude", help="Regular expression that drops matching package names.")
@click.option("--private", "include_private", is_flag=True, help="Include private packages.")
@click.option("--json", "as_json", is_flag=True, help="Emit packages as JSON.")
@click.pass_obj
def workspace_order_cmd(
    ctx: CLIContext,
    include: Optional[str],
    exclude: Optional[str],
    include_private: bool,
    as_json: bool,
) -> None:
    """Print workspace packages so that dependencies come first."""

    packages = run_workspace_order(
        ctx, include=include, exclude=exclude, include_private=include_private
    )
    if as_json:
        payload = [
            {
                "name": package.name,
                "location": str(package.location.relative_to(ctx.project_root)),
                "private": package.private,
                "public_access": package.has_public_access,
                "workspace_dependencies": list(package.workspace_dependencies),
            }
            for package in packages
        ]
        emit_output(json.dumps(payload, indent=2))
        return
    for package in packages:
        emit_output(package.name)
