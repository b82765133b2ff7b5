"""Immutable package -> distribution mapping derived from a lockfile."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from ..lockfile.model import Artifact, Source


class DistKind(Enum):
    """How a resolved distribution will be installed."""
    WHEEL = "wheel"
    SDIST = "sdist"
    LOCAL = "local"


@dataclass(frozen=True)
class ResolvedDist:
    """A concrete distribution selected for one package."""
    name: str
    version: Optional[str]
    source: Source
    kind: DistKind
    artifact: Optional[Artifact] = None
    dependencies: Tuple[str, ...] = ()

    @property
    def hash(self) -> Optional[str]:
        return self.artifact.hash if self.artifact else None

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "version": self.version,
            "source": str(self.source),
            "kind": self.kind.value,
            "filename": self.artifact.filename if self.artifact else None,
            "hash": self.hash,
        }


class Resolution(Mapping[str, ResolvedDist]):
    """Read-only mapping from package name to ResolvedDist.

    Transformations such as ``filter`` return a new Resolution and leave the
    original untouched.
    """

    __slots__ = ("_dists",)

    def __init__(self, dists: Iterable[ResolvedDist] = ()):
        self._dists: Dict[str, ResolvedDist] = {
            dist.name: dist for dist in sorted(dists, key=lambda d: d.name)
        }

    def __getitem__(self, name: str) -> ResolvedDist:
        return self._dists[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._dists)

    def __len__(self) -> int:
        return len(self._dists)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resolution):
            return NotImplemented
        return self._dists == other._dists

    def __hash__(self) -> int:
        return hash(tuple(self._dists.values()))

    def __repr__(self) -> str:
        return f"Resolution({', '.join(self._dists)})"

    def distributions(self) -> Tuple[ResolvedDist, ...]:
        return tuple(self._dists.values())

    def names(self) -> frozenset:
        return frozenset(self._dists)

    def filter(self, predicate: Callable[[ResolvedDist], bool]) -> "Resolution":
        """Return a new Resolution keeping only the dists matching ``predicate``."""
        return Resolution(dist for dist in self._dists.values() if predicate(dist))
