"""The interpreter/platform target a lockfile is synchronized into."""

from __future__ import annotations

import platform
import sysconfig
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from packaging.markers import default_environment
from packaging.tags import Tag, sys_tags
from packaging.version import Version


@dataclass(frozen=True)
class Runtime:
    """Interpreter version, platform, marker environment, tags and site directory.

    ``tags`` are ordered by preference, most specific first, as produced by
    ``packaging.tags.sys_tags``.
    """
    python_version: Version
    platform: str
    markers: Dict[str, str] = field(hash=False, compare=False)
    tags: Tuple[Tag, ...] = ()
    site: Path = Path(".")

    def __post_init__(self):
        # Marker evaluation falls back to the host interpreter for missing keys.
        missing = sorted(set(default_environment()) - set(self.markers))
        if missing:
            raise ValueError(f"Runtime markers are missing: {', '.join(missing)}")

    @classmethod
    def current(cls, site: Optional[Path] = None) -> "Runtime":
        """Describe the running interpreter."""
        markers = dict(default_environment())
        return cls(
            python_version=Version(platform.python_version()),
            platform=sysconfig.get_platform(),
            markers=markers,
            tags=tuple(sys_tags()),
            site=Path(site) if site else Path(sysconfig.get_paths()["purelib"]),
        )

    @classmethod
    def from_markers(
        cls,
        markers: Dict[str, str],
        tags: Tuple[Tag, ...] = (),
        site: Path = Path("."),
    ) -> "Runtime":
        """Build a Runtime from an explicit marker environment."""
        return cls(
            python_version=Version(markers["python_full_version"]),
            platform=markers.get("sys_platform", ""),
            markers=dict(markers),
            tags=tuple(tags),
            site=Path(site),
        )
