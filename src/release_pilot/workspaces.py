"""Monorepo workspace discovery and publish ordering."""

from __future__ import annotations

import json
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping, Optional, Sequence

import yaml

from .utils import log_debug, log_warning

WorkspaceKind = Literal["npm", "yarn", "pnpm", "none"]

PACKAGE_MANIFEST = "package.json"
PNPM_WORKSPACE_FILE = "pnpm-workspace.yaml"
YARN_LOCK_FILE = "yarn.lock"
# devDependencies are not needed at publish time and never constrain the order.
DEPENDENCY_FIELDS = ("dependencies", "peerDependencies", "optionalDependencies")


class DependencyCycleError(RuntimeError):
    """Raised when workspace packages depend on each other in a cycle."""

    def __init__(self, packages: Iterable[str]) -> None:
        self.packages = tuple(sorted(packages))
        super().__init__(
            "Circular dependency detected among workspace packages: "
            + ", ".join(self.packages)
        )


@dataclass(frozen=True)
class WorkspacePackage:
    """A package inside a monorepo workspace."""

    name: str
    location: Path
    private: bool = False
    has_public_access: bool = False
    workspace_dependencies: tuple[str, ...] = ()


@dataclass
class WorkspaceDiscoveryResult:
    """The workspace manager in use and the packages it declares."""

    kind: WorkspaceKind
    packages: list[WorkspacePackage] = field(default_factory=list)


def topological_sort_packages(packages: Sequence[WorkspacePackage]) -> list[WorkspacePackage]:
    """Return ``packages`` ordered so dependencies precede their dependents.

    Packages that become ready at the same time keep their input order.

    Raises:
        ValueError: If two packages share a name.
        DependencyCycleError: If the dependencies form a cycle. The error
            names every package that could not be ordered.
    """
    by_name: dict[str, WorkspacePackage] = {}
    for package in packages:
        if package.name in by_name:
            raise ValueError(f"Duplicate workspace package name: {package.name}")
        by_name[package.name] = package

    in_degree = {name: 0 for name in by_name}
    dependents: dict[str, list[str]] = {name: [] for name in by_name}
    for package in packages:
        for dependency in dict.fromkeys(package.workspace_dependencies):
            if dependency not in by_name:
                continue
            in_degree[package.name] += 1
            dependents[dependency].append(package.name)

    queue = deque(name for name, degree in in_degree.items() if degree == 0)
    ordered: list[WorkspacePackage] = []
    while queue:
        name = queue.popleft()
        ordered.append(by_name[name])
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(ordered) < len(packages):
        raise DependencyCycleError(name for name, degree in in_degree.items() if degree > 0)
    return ordered


def filter_workspace_packages(
    packages: Iterable[WorkspacePackage],
    include: Optional[str | re.Pattern[str]] = None,
    exclude: Optional[str | re.Pattern[str]] = None,
) -> list[WorkspacePackage]:
    """Return packages whose names pass the include and exclude patterns.

    The exclude pattern wins when both match.
    """
    include_re = _compile_name_pattern(include)
    exclude_re = _compile_name_pattern(exclude)
    selected: list[WorkspacePackage] = []
    for package in packages:
        if exclude_re is not None and exclude_re.search(package.name):
            continue
        if include_re is not None and not include_re.search(package.name):
            continue
        selected.append(package)
    return selected


def _compile_name_pattern(
    pattern: Optional[str | re.Pattern[str]],
) -> Optional[re.Pattern[str]]:
    if not isinstance(pattern, str):
        return pattern
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid package name pattern {pattern!r}: {exc}") from exc


def _read_manifest(directory: Path) -> Optional[dict[str, Any]]:
    path = directory / PACKAGE_MANIFEST
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log_warning(f"skipping unreadable manifest {path}: {exc}")
        return None
    if not isinstance(data, dict):
        log_warning(f"skipping manifest {path}: root must be an object")
        return None
    return data


def _dependency_names(manifest: Mapping[str, Any]) -> list[str]:
    names: dict[str, None] = {}
    for field_name in DEPENDENCY_FIELDS:
        section = manifest.get(field_name)
        if isinstance(section, Mapping):
            names.update(dict.fromkeys(str(name) for name in section))
    return list(names)


def _normalize_glob(pattern: str) -> str:
    pattern = pattern.strip()
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.rstrip("/")


def _glob_directories(root: Path, patterns: Sequence[str]) -> list[Path]:
    included: dict[Path, None] = {}
    excluded: set[Path] = set()
    for raw_pattern in patterns:
        negated = raw_pattern.strip().startswith("!")
        pattern = _normalize_glob(raw_pattern.strip().lstrip("!"))
        if not pattern:
            continue
        for match in sorted(root.glob(pattern)):
            if not match.is_dir() or "node_modules" in match.relative_to(root).parts:
                continue
            if negated:
                excluded.add(match)
            else:
                included.setdefault(match, None)
    return [path for path in included if path not in excluded]


def resolve_workspace_globs(root: Path, patterns: Sequence[str]) -> list[WorkspacePackage]:
    """Return the named packages matched by workspace ``patterns``.

    Dependencies are restricted to packages found by the same patterns.
    """
    found: list[tuple[Path, dict[str, Any]]] = []
    for directory in _glob_directories(root, patterns):
        manifest = _read_manifest(directory)
        if manifest is None or not isinstance(manifest.get("name"), str):
            continue
        found.append((directory, manifest))

    names = {manifest["name"] for _, manifest in found}
    packages: list[WorkspacePackage] = []
    for directory, manifest in found:
        publish_config = manifest.get("publishConfig")
        access = publish_config.get("access") if isinstance(publish_config, Mapping) else None
        packages.append(
            WorkspacePackage(
                name=manifest["name"],
                location=directory,
                private=bool(manifest.get("private", False)),
                has_public_access=access == "public",
                workspace_dependencies=tuple(
                    name for name in _dependency_names(manifest) if name in names
                ),
            )
        )
    return packages


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _discover_pnpm(root: Path) -> Optional[WorkspaceDiscoveryResult]:
    path = root / PNPM_WORKSPACE_FILE
    if not path.is_file():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        log_warning(f"failed to parse {path}: {exc}")
        return None
    patterns = _string_list(raw.get("packages")) if isinstance(raw, Mapping) else []
    if not patterns:
        return None
    packages = resolve_workspace_globs(root, patterns)
    log_debug(f"discovered {len(packages)} pnpm workspace packages from {', '.join(patterns)}")
    return WorkspaceDiscoveryResult("pnpm", packages)


def _discover_npm_or_yarn(root: Path) -> Optional[WorkspaceDiscoveryResult]:
    manifest = _read_manifest(root)
    if manifest is None:
        return None
    workspaces = manifest.get("workspaces")
    if isinstance(workspaces, Mapping):
        patterns = _string_list(workspaces.get("packages"))
    else:
        patterns = _string_list(workspaces)
    if not patterns:
        return None
    kind: WorkspaceKind = "yarn" if (root / YARN_LOCK_FILE).exists() else "npm"
    packages = resolve_workspace_globs(root, patterns)
    log_debug(f"discovered {len(packages)} {kind} workspace packages from {', '.join(patterns)}")
    return WorkspaceDiscoveryResult(kind, packages)


def discover_workspaces(root: Path) -> WorkspaceDiscoveryResult:
    """Discover workspace packages below ``root``.

    pnpm's workspace file is checked first, then the ``workspaces`` field of
    the root ``package.json``.
    """
    for discover in (_discover_pnpm, _discover_npm_or_yarn):
        result = discover(root)
        if result is not None:
            return result
    return WorkspaceDiscoveryResult("none")
