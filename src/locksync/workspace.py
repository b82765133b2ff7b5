"""Workspace topology and the unit of work a sync operates on.

A sync runs either against a concrete project (one distributable root
member) or against a purely virtual workspace root that only aggregates
members. The two cases are modeled as separate types and dispatched on with
``isinstance``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from packaging.utils import canonicalize_name

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore

from .constants import Constants
from .errors import WorkspaceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceMember:
    """A package that belongs to the workspace."""
    name: str
    path: Path
    is_package: bool


@dataclass(frozen=True)
class Workspace:
    """Workspace root plus its members keyed by normalized name."""
    root: Path
    members: Mapping[str, WorkspaceMember]

    def __hash__(self) -> int:
        return hash((self.root, tuple(sorted(self.members))))

    def virtual_members(self) -> frozenset:
        """Names of members that are never built or installed."""
        return frozenset(name for name, member in self.members.items() if not member.is_package)

    def with_current_project(self, name: str) -> "ProjectUnit":
        """Select ``name`` as the concrete project to sync."""
        normalized = canonicalize_name(name)
        if normalized not in self.members:
            raise WorkspaceError(f"Package `{name}` not found in workspace")
        return ProjectUnit(workspace=self, project_name=normalized)


@dataclass(frozen=True)
class ProjectUnit:
    """A concrete project: a workspace with a root package."""
    workspace: Workspace
    project_name: str

    def roots(self) -> Tuple[str, ...]:
        return (self.project_name,)


@dataclass(frozen=True)
class VirtualUnit:
    """A virtual workspace root with no package of its own."""
    workspace: Workspace

    def roots(self) -> Tuple[str, ...]:
        return tuple(sorted(self.workspace.members))


UnitOfWork = Union[ProjectUnit, VirtualUnit]


def _load_pyproject(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return toml.load(f) or {}
    except FileNotFoundError as e:
        raise WorkspaceError(f"No `{Constants.PYPROJECT_FILE}` found at `{path.parent}`") from e
    except toml.TOMLDecodeError as e:
        raise WorkspaceError(f"Failed to parse `{path}`: {e}") from e


def is_package(pyproject: Mapping[str, Any]) -> bool:
    """A project is a package if it is explicitly marked as one, or has a build system."""
    explicit = pyproject.get("tool", {}).get("uv", {}).get("package")
    if explicit is not None:
        return bool(explicit)
    return "build-system" in pyproject


def _member_from(directory: Path, pyproject: Mapping[str, Any]) -> Optional[WorkspaceMember]:
    project = pyproject.get("project")
    if not isinstance(project, dict) or "name" not in project:
        return None
    return WorkspaceMember(
        name=canonicalize_name(project["name"]),
        path=directory,
        is_package=is_package(pyproject),
    )


def discover_workspace(path: Union[str, Path]) -> Workspace:
    """Discover the workspace rooted at ``path``.

    Reads the root ``pyproject.toml`` and every directory matched by
    ``[tool.uv.workspace] members`` (minus ``exclude``).

    Args:
        path: Directory holding the workspace root ``pyproject.toml``.

    Returns:
        The discovered Workspace.
    """
    root = Path(path).resolve()
    root_pyproject = _load_pyproject(root / Constants.PYPROJECT_FILE)
    members: Dict[str, WorkspaceMember] = {}

    root_member = _member_from(root, root_pyproject)
    if root_member is not None:
        members[root_member.name] = root_member

    settings = root_pyproject.get("tool", {}).get("uv", {}).get("workspace", {}) or {}
    excluded = set()
    for pattern in settings.get("exclude", []) or []:
        excluded.update(p.resolve() for p in root.glob(pattern))

    for pattern in settings.get("members", []) or []:
        for directory in sorted(root.glob(pattern)):
            directory = directory.resolve()
            if directory in excluded or not directory.is_dir():
                continue
            pyproject_path = directory / Constants.PYPROJECT_FILE
            if not pyproject_path.is_file():
                raise WorkspaceError(
                    f"Workspace member `{directory}` is missing a `{Constants.PYPROJECT_FILE}`"
                )
            member = _member_from(directory, _load_pyproject(pyproject_path))
            if member is None:
                raise WorkspaceError(f"Workspace member `{directory}` has no `[project]` name")
            members[member.name] = member

    if not members:
        raise WorkspaceError(f"No project or workspace members found at `{root}`")
    logger.debug("Discovered workspace at %s with members: %s", root, ", ".join(sorted(members)))
    return Workspace(root=root, members=members)


def discover_unit(path: Union[str, Path], package: Optional[str] = None) -> UnitOfWork:
    """Discover the unit of work for ``path``.

    With ``package``, that member becomes the current project. Otherwise the
    root is a concrete project when it declares ``[project]`` and a virtual
    workspace root when it does not.
    """
    workspace = discover_workspace(path)
    if package:
        return workspace.with_current_project(package)
    root_pyproject = _load_pyproject(workspace.root / Constants.PYPROJECT_FILE)
    root_member = _member_from(workspace.root, root_pyproject)
    if root_member is None:
        return VirtualUnit(workspace=workspace)
    return ProjectUnit(workspace=workspace, project_name=root_member.name)
