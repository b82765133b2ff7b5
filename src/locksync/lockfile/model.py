"""Data models for a parsed lockfile."""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from packaging.markers import Marker
from packaging.specifiers import SpecifierSet
from packaging.tags import Tag
from packaging.utils import InvalidWheelFilename, canonicalize_name, parse_wheel_filename

from ..constants import Constants, SourceKinds

_GIT_REFERENCE_KEYS = ("rev", "tag", "branch")


@dataclass(frozen=True)
class Artifact:
    """A downloadable wheel or source distribution pinned by the lockfile."""
    url: Optional[str]
    hash: Optional[str] = None
    size: Optional[int] = None
    path: Optional[str] = None

    @property
    def filename(self) -> str:
        """Last path component of the artifact location."""
        location = self.url or self.path or ""
        return location.rstrip("/").rsplit("/", 1)[-1].split("#", 1)[0]

    def wheel_tags(self) -> frozenset:
        """Compatibility tags encoded in a wheel filename (empty for sdists)."""
        try:
            _, _, _, tags = parse_wheel_filename(self.filename)
        except InvalidWheelFilename:
            return frozenset()
        return frozenset(tags)


@dataclass(frozen=True)
class GitReference:
    """A git source split into repository, requested reference and locked commit."""
    repository: str
    reference: str
    commit: Optional[str] = None


@dataclass(frozen=True)
class Source:
    """Where a locked package comes from (``registry``, ``git``, ``editable``...)."""
    kind: str
    location: str

    @property
    def is_local(self) -> bool:
        return self.kind in Constants.LOCAL_SOURCE_KINDS

    def git_reference(self) -> Optional[GitReference]:
        """Parse ``https://host/repo?rev=v1#<commit>``; None for non-git sources."""
        if self.kind != SourceKinds.GIT.value:
            return None
        parts = urllib.parse.urlsplit(self.location)
        query = urllib.parse.parse_qs(parts.query)
        reference = "HEAD"
        for key in _GIT_REFERENCE_KEYS:
            if query.get(key):
                reference = query[key][0]
                break
        repository = urllib.parse.urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
        return GitReference(repository, reference, parts.fragment or None)

    def __str__(self) -> str:
        return f"{self.kind}+{self.location}"


@dataclass(frozen=True)
class Dependency:
    """An edge in the lock graph, optionally gated by a marker and activating extras.

    ``version`` and ``source`` are only present when the lockfile holds more
    than one entry for ``name`` (a forked resolution) and pick the exact one.
    """
    name: str
    marker: Optional[str] = None
    extras: Tuple[str, ...] = ()
    version: Optional[str] = None
    source: Optional[Source] = None

    def evaluate(self, environment: Mapping[str, str], extra: Optional[str] = None) -> bool:
        """Return True when this edge applies in ``environment``."""
        if not self.marker:
            return True
        env = dict(environment)
        # Marker.evaluate requires an "extra" key whenever the marker mentions one.
        env["extra"] = extra or ""
        return Marker(self.marker).evaluate(env)


@dataclass(frozen=True)
class LockedPackage:
    """A single ``[[package]]`` entry of the lockfile."""
    name: str
    version: Optional[str]
    source: Source
    dependencies: Tuple[Dependency, ...] = ()
    optional_dependencies: Mapping[str, Tuple[Dependency, ...]] = field(default_factory=dict)
    dev_dependencies: Mapping[str, Tuple[Dependency, ...]] = field(default_factory=dict)
    sdist: Optional[Artifact] = None
    wheels: Tuple[Artifact, ...] = ()

    @property
    def key(self) -> Tuple[str, Optional[str], Source]:
        """Identity of the entry; unique within a lockfile."""
        return (self.name, self.version, self.source)

    def __hash__(self) -> int:
        return hash(self.key)

    def best_wheel(self, tags: Tuple[Tag, ...]) -> Optional[Artifact]:
        """Pick the wheel whose tags rank highest in the runtime's preference order."""
        priority: Dict[Tag, int] = {tag: index for index, tag in enumerate(tags)}
        best: Optional[Artifact] = None
        best_rank: Optional[int] = None
        for wheel in self.wheels:
            ranks = [priority[tag] for tag in wheel.wheel_tags() if tag in priority]
            if not ranks:
                continue
            rank = min(ranks)
            if best_rank is None or rank < best_rank:
                best, best_rank = wheel, rank
        return best


@dataclass(frozen=True)
class Lock:
    """An immutable, previously solved dependency graph."""
    version: int
    requires_python: Optional[SpecifierSet] = None
    environments: Tuple[str, ...] = ()
    packages: Tuple[LockedPackage, ...] = ()

    def supported_environments(self) -> Tuple[str, ...]:
        return self.environments

    def packages_named(self, name: str) -> Tuple[LockedPackage, ...]:
        """Every entry for ``name`` (normalized); more than one in a forked lock."""
        wanted = canonicalize_name(name)
        return tuple(package for package in self.packages if package.name == wanted)

    def find_by_name(self, name: str) -> Optional[LockedPackage]:
        """Return the first locked package called ``name`` (normalized), if any."""
        matches = self.packages_named(name)
        return matches[0] if matches else None

    def resolve(self, dependency: Dependency) -> Tuple[LockedPackage, ...]:
        """Entries a dependency edge may point at, narrowed by its version and source."""
        return tuple(
            package
            for package in self.packages_named(dependency.name)
            if (dependency.version is None or package.version == dependency.version)
            and (dependency.source is None or package.source == dependency.source)
        )

    def package_names(self) -> frozenset:
        return frozenset(package.name for package in self.packages)
