"""Materialize a Resolution from a lockfile for one runtime.

Starting at the unit of work's root packages, the lock graph is walked
breadth-first. An edge is followed only when its marker holds for the
runtime, and a package's optional-dependency groups are visited only when an
edge (or the user, for root packages) activates the matching extra.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List, Mapping, Optional, Set, Tuple

from packaging.tags import Tag

from ..common.logging_utils import extra_context, is_debug_enabled
from ..constants import SourceKinds
from ..errors import ResolutionConstructionFailure
from ..lockfile.model import Dependency, Lock, LockedPackage
from ..workspace import UnitOfWork
from .options import ExtrasSpecification
from .resolution import DistKind, ResolvedDist, Resolution

logger = logging.getLogger(__name__)

# (locked package, activated extra or None for the base dependencies)
_Node = Tuple[LockedPackage, Optional[str]]


def build_resolution(
    lock: Lock,
    unit: UnitOfWork,
    markers: Mapping[str, str],
    tags: Tuple[Tag, ...],
    extras: ExtrasSpecification,
    dev_groups: Tuple[str, ...],
) -> Resolution:
    """Build the Resolution for ``unit`` under the given markers, tags and extras.

    Args:
        lock: The parsed lockfile.
        unit: Project or virtual workspace whose members are the roots.
        markers: Marker environment of the runtime.
        tags: Compatible wheel tags of the runtime, most preferred first.
        extras: Extras requested for the root packages.
        dev_groups: Development groups to include for the root packages.

    Returns:
        Resolution with one entry per reachable package.

    Raises:
        ResolutionConstructionFailure: A root or dependency is missing from
            the lock, an edge is ambiguous, two locked versions of one
            package apply to the runtime, or a package has no installable
            representation.
    """
    queue: Deque[_Node] = deque()
    seen: Set[Tuple[object, Optional[str]]] = set()
    edges: Dict[str, Set[str]] = {}

    def enqueue(package: LockedPackage, extra: Optional[str]) -> None:
        if (package.key, extra) not in seen:
            seen.add((package.key, extra))
            queue.append((package, extra))

    def follow(dep: Dependency, source: str, extra: Optional[str]) -> None:
        if not dep.evaluate(markers, extra):
            return
        matches = lock.resolve(dep)
        if not matches:
            raise ResolutionConstructionFailure(
                source, f"depends on `{dep.name}`, which is missing from the lockfile"
            )
        if len(matches) > 1:
            raise ResolutionConstructionFailure(
                source,
                f"depends on `{dep.name}`, which is locked {len(matches)} times, "
                "but the dependency does not name a version",
            )
        target = matches[0]
        edges.setdefault(source, set()).add(target.name)
        enqueue(target, None)
        for dep_extra in dep.extras:
            enqueue(target, dep_extra)

    for root_name in unit.roots():
        root = lock.find_by_name(root_name)
        if root is None:
            raise ResolutionConstructionFailure(root_name, "workspace member is missing from the lockfile")
        enqueue(root, None)
        for extra in extras.select(root.optional_dependencies):
            enqueue(root, extra)
        for group in dev_groups:
            for dep in root.dev_dependencies.get(group, ()):
                follow(dep, root.name, None)

    reached: Dict[str, LockedPackage] = {}
    while queue:
        package, extra = queue.popleft()
        previous = reached.get(package.name)
        if previous is not None and previous.key != package.key:
            raise ResolutionConstructionFailure(
                package.name,
                f"both {previous.version} and {package.version} are required on the current platform",
            )
        reached[package.name] = package
        if extra is None:
            deps = package.dependencies
        else:
            deps = package.optional_dependencies.get(extra, ())
        for dep in deps:
            follow(dep, package.name, extra)

    dists: List[ResolvedDist] = []
    for name, package in reached.items():
        dist = _to_dist(package, tags, tuple(sorted(edges.get(name, ()))))
        if is_debug_enabled(logger):
            logger.debug(
                "Selected %s %s (%s)",
                dist.name,
                dist.version,
                dist.kind.value,
                extra=extra_context(
                    event="dist_selected",
                    component="build",
                    package=dist.name,
                    outcome=dist.kind.value,
                ),
            )
        dists.append(dist)
    return Resolution(dists)


def _to_dist(package: LockedPackage, tags: Tuple[Tag, ...], dependencies: Tuple[str, ...]) -> ResolvedDist:
    """Choose how ``package`` is installed: best wheel, then sdist, then local source."""
    if package.source.is_local and not package.wheels and package.sdist is None:
        return ResolvedDist(
            name=package.name,
            version=package.version,
            source=package.source,
            kind=DistKind.LOCAL,
            dependencies=dependencies,
        )

    wheel = package.best_wheel(tags)
    if wheel is not None:
        return ResolvedDist(
            name=package.name,
            version=package.version,
            source=package.source,
            kind=DistKind.WHEEL,
            artifact=wheel,
            dependencies=dependencies,
        )

    if package.sdist is not None:
        return ResolvedDist(
            name=package.name,
            version=package.version,
            source=package.source,
            kind=DistKind.SDIST,
            artifact=package.sdist,
            dependencies=dependencies,
        )

    if package.source.kind in (SourceKinds.GIT.value, SourceKinds.URL.value):
        # Git checkouts and direct source URLs are built from the source itself.
        return ResolvedDist(
            name=package.name,
            version=package.version,
            source=package.source,
            kind=DistKind.SDIST,
            dependencies=dependencies,
        )

    if package.wheels:
        reason = "no wheel is compatible with the current platform and no source distribution is available"
    else:
        reason = "the lockfile has neither wheels nor a source distribution for it"
    raise ResolutionConstructionFailure(package.name, reason)
