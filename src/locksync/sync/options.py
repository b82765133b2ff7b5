"""Selection criteria and install scope options supplied by the command layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

from packaging.utils import canonicalize_name

from ..constants import Constants
from ..workspace import ProjectUnit, UnitOfWork
from .resolution import Resolution


class Modifications(Enum):
    """Whether a sync may remove packages the resolution does not mention."""
    SUFFICIENT = "sufficient"
    EXACT = "exact"


@dataclass(frozen=True)
class ExtrasSpecification:
    """Which optional-dependency groups of the root packages to include."""
    extras: FrozenSet[str] = frozenset()
    all_extras: bool = False

    @classmethod
    def from_args(cls, extras: Optional[Iterable[str]] = None, all_extras: bool = False) -> "ExtrasSpecification":
        return cls(
            extras=frozenset(canonicalize_name(e) for e in extras or ()),
            all_extras=all_extras,
        )

    def select(self, available: Iterable[str]) -> Tuple[str, ...]:
        """Extras to activate given the ones a package declares."""
        if self.all_extras:
            return tuple(sorted(available))
        return tuple(sorted(self.extras))


@dataclass(frozen=True)
class SelectionCriteria:
    """Extras and dev-group inclusion for building a resolution."""
    extras: ExtrasSpecification = field(default_factory=ExtrasSpecification)
    dev: bool = True

    def dev_groups(self) -> Tuple[str, ...]:
        return (Constants.DEV_DEPENDENCIES,) if self.dev else ()


@dataclass(frozen=True)
class InstallOptions:
    """Which part of the resolution the user wants touched."""
    no_install_project: bool = False
    no_install_workspace: bool = False
    no_install_package: FrozenSet[str] = frozenset()
    only_package: Optional[str] = None

    @classmethod
    def from_args(
        cls,
        no_install_project: bool = False,
        no_install_workspace: bool = False,
        no_install_package: Optional[Iterable[str]] = None,
        only_package: Optional[str] = None,
    ) -> "InstallOptions":
        return cls(
            no_install_project=no_install_project,
            no_install_workspace=no_install_workspace,
            no_install_package=frozenset(canonicalize_name(p) for p in no_install_package or ()),
            only_package=canonicalize_name(only_package) if only_package else None,
        )

    def filter_resolution(
        self,
        resolution: Resolution,
        unit: UnitOfWork,
        graph: Optional[Resolution] = None,
    ) -> Resolution:
        """Narrow ``resolution`` to what was asked for. Never adds entries.

        ``graph`` is the resolution before any earlier filter ran. The
        only-package closure walks it, so dependencies reached through an
        already removed package are still kept.
        """
        keep = resolution.names()
        if self.only_package is not None:
            keep = keep & _closure(graph if graph is not None else resolution, self.only_package)
        excluded = set(self.no_install_package)
        if self.no_install_project and isinstance(unit, ProjectUnit):
            excluded.add(unit.project_name)
        if self.no_install_workspace:
            excluded.update(unit.workspace.members)
        return resolution.filter(lambda dist: dist.name in keep and dist.name not in excluded)


def _closure(resolution: Resolution, name: str) -> FrozenSet[str]:
    """``name`` plus everything it depends on, within ``resolution``."""
    seen = set()
    stack = [name]
    while stack:
        current = stack.pop()
        if current in seen or current not in resolution:
            continue
        seen.add(current)
        stack.extend(resolution[current].dependencies)
    return frozenset(seen)
