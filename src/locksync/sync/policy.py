"""Build isolation and hash checking policy for a sync."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from ..constants import Constants
from ..errors import MissingHashError
from ..runtime import Runtime
from ..settings import InstallerSettings
from .resolution import Resolution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Isolated:
    """Every build runs in a fresh, isolated environment."""

    def is_isolated(self, name: str) -> bool:  # pylint: disable=unused-argument
        return True


@dataclass(frozen=True)
class Shared:
    """Builds reuse the packages installed in the runtime."""
    runtime: Runtime

    def is_isolated(self, name: str) -> bool:  # pylint: disable=unused-argument
        return False


@dataclass(frozen=True)
class SharedPackage:
    """Only the named packages build against the runtime; the rest stay isolated."""
    runtime: Runtime
    packages: FrozenSet[str]

    def is_isolated(self, name: str) -> bool:
        return name not in self.packages


BuildIsolation = Union[Isolated, Shared, SharedPackage]


def select_build_isolation(settings: InstallerSettings, runtime: Runtime) -> BuildIsolation:
    """Determine whether to enable build isolation."""
    if settings.no_build_isolation:
        return Shared(runtime)
    if settings.no_build_isolation_package:
        return SharedPackage(runtime, frozenset(settings.no_build_isolation_package))
    return Isolated()


class HashCheckingMode(Enum):
    """How strictly distribution hashes are checked."""
    VERIFY = "verify"
    REQUIRE = "require"


@dataclass(frozen=True)
class HashStrategy:
    """Expected digests per package, checked by the installer before unpacking."""
    mode: HashCheckingMode
    digests: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_resolution(cls, resolution: Resolution, mode: HashCheckingMode) -> "HashStrategy":
        """Collect the hashes of ``resolution``.

        Remote distributions (registry and direct URL sources) must carry a
        hash; local paths and git checkouts are pinned by location or commit.

        Raises:
            MissingHashError: A remote distribution has no hash.
        """
        missing = []
        digests: Dict[str, str] = {}
        for dist in resolution.distributions():
            if dist.hash:
                digests[dist.name] = dist.hash
            elif dist.source.kind in Constants.HASHED_SOURCE_KINDS:
                missing.append(dist.name)
        if missing:
            raise MissingHashError(missing)
        return cls(mode=mode, digests=tuple(sorted(digests.items())))

    def expected(self, name: str) -> Optional[str]:
        return dict(self.digests).get(name)

    def allows(self, name: str, digest: str) -> bool:
        """Return True when ``digest`` matches what the lockfile pinned for ``name``."""
        expected = self.expected(name)
        if expected is None:
            return self.mode is HashCheckingMode.VERIFY
        return expected == digest
