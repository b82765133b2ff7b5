"""Installer interface and a dry-run installer that computes the change set."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from packaging.utils import canonicalize_name

from .common.logging_utils import safe_url
from .loggers import InstallLogger
from .registry.flat_index import FlatIndex
from .runtime import Runtime
from .state import SharedState
from .sync.options import InstallOptions, Modifications
from .sync.policy import BuildIsolation, HashStrategy
from .sync.resolution import Resolution, ResolvedDist

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallRequest:
    """Everything the installer needs to make the runtime match a resolution."""
    resolution: Resolution
    runtime: Runtime
    install_options: InstallOptions
    hasher: HashStrategy
    build_isolation: BuildIsolation
    flat_index: FlatIndex
    state: SharedState
    modifications: Modifications = Modifications.SUFFICIENT
    reinstall: bool = False
    link_mode: str = "copy"
    compile_bytecode: bool = False
    index_url: Optional[str] = None
    # Always empty for sync; kept on the request so installers need no special case.
    build_constraints: Tuple[str, ...] = ()
    dry_run: bool = False


@dataclass
class InstallReport:
    """Packages changed (or that would change) by an install."""
    installed: List[str] = field(default_factory=list)
    reinstalled: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    def summary_lines(self) -> List[str]:
        lines = []
        for label, names in (
            ("Install", self.installed),
            ("Reinstall", self.reinstalled),
            ("Remove", self.removed),
        ):
            if names:
                lines.append(f"{label}: {', '.join(names)}")
        if not lines:
            lines.append(f"Audited {len(self.unchanged)} package(s); nothing to do")
        return lines

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "installed": list(self.installed),
            "reinstalled": list(self.reinstalled),
            "removed": list(self.removed),
            "unchanged": list(self.unchanged),
        }


class Installer(Protocol):
    """Performs (or plans) the filesystem changes for a sync."""

    async def install(self, request: InstallRequest, install_logger: InstallLogger) -> InstallReport:
        ...


def _read_vcs_commit(dist_info: Path) -> Optional[str]:
    """Commit recorded in ``direct_url.json`` for a VCS install, if any."""
    path = dist_info / "direct_url.json"
    if not path.is_file():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return None
    vcs_info = data.get("vcs_info") if isinstance(data, dict) else None
    if not isinstance(vcs_info, dict):
        return None
    return vcs_info.get("commit_id")


class SitePackages:
    """Distributions already installed in a site directory."""

    def __init__(self, installed: Dict[str, str], commits: Optional[Dict[str, str]] = None):
        self._installed = dict(installed)
        self._commits = dict(commits or {})

    @classmethod
    def from_runtime(cls, runtime: Runtime) -> "SitePackages":
        """Read ``*.dist-info`` directories from the runtime's site directory."""
        installed: Dict[str, str] = {}
        commits: Dict[str, str] = {}
        site = Path(runtime.site)
        if not site.is_dir():
            logger.debug("Site directory %s does not exist; treating it as empty", site)
            return cls(installed)
        for entry in site.glob("*.dist-info"):
            stem = entry.name[: -len(".dist-info")]
            if "-" not in stem:
                continue
            name, version = stem.split("-", 1)
            name = canonicalize_name(name)
            installed[name] = version
            commit = _read_vcs_commit(entry)
            if commit:
                commits[name] = commit
        return cls(installed, commits)

    def get(self, name: str) -> Optional[str]:
        return self._installed.get(name)

    def commit(self, name: str) -> Optional[str]:
        """Commit an installed VCS distribution was built from."""
        return self._commits.get(name)

    def names(self) -> frozenset:
        return frozenset(self._installed)


def _locked_commit(dist: ResolvedDist, state: SharedState) -> Optional[str]:
    reference = dist.source.git_reference()
    if reference is None:
        return None
    return state.git.resolve(reference.repository, reference.reference) or reference.commit


class DryRunInstaller:
    """Computes what an install would change without touching the filesystem."""

    async def install(self, request: InstallRequest, install_logger: InstallLogger) -> InstallReport:
        logger.debug(
            "Planning install from %s with link mode %s%s",
            safe_url(request.index_url) if request.index_url else "the lockfile sources",
            request.link_mode,
            ", compiling bytecode" if request.compile_bytecode else "",
        )
        site_packages = SitePackages.from_runtime(request.runtime)
        report = InstallReport()
        for dist in request.resolution.distributions():
            current = site_packages.get(dist.name)
            if current is None:
                report.installed.append(dist.name)
            elif request.reinstall or self._is_stale(dist, current, site_packages, request.state):
                report.reinstalled.append(dist.name)
            else:
                report.unchanged.append(dist.name)
        if request.modifications is Modifications.EXACT:
            report.removed = sorted(site_packages.names() - request.resolution.names())
        install_logger.on_complete(report)
        return report

    @staticmethod
    def _is_stale(dist: ResolvedDist, current: str, site_packages: SitePackages, state: SharedState) -> bool:
        if dist.version is not None and current != dist.version:
            return True
        locked = _locked_commit(dist, state)
        installed = site_packages.commit(dist.name)
        return locked is not None and installed is not None and locked != installed
