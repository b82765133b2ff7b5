"""Error taxonomy for lockfile reconciliation.

Every failure the sync pipeline can produce derives from ``LockSyncError``.
Compatibility errors carry both sides of the mismatch so the command layer
can print a short, specific diagnostic.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence


class LockSyncError(Exception):
    """Base class for all reconciliation failures."""


class LockfileError(LockSyncError):
    """Raised when a lockfile is absent, unreadable or malformed."""


class WorkspaceError(LockSyncError):
    """Raised when the workspace or a requested member cannot be found."""


class ConfigError(LockSyncError):
    """Raised for invalid configuration files or option combinations."""


class LockedInterpreterIncompatibility(LockSyncError):
    """The runtime interpreter is outside the lockfile's ``requires-python``."""

    def __init__(self, version: str, requires_python: str):
        self.version = str(version)
        self.requires_python = str(requires_python)
        super().__init__(
            f"The current Python version ({self.version}) is not compatible with "
            f"the locked Python requirement: `{self.requires_python}`"
        )


class LockedPlatformIncompatibility(LockSyncError):
    """The runtime markers match none of the lockfile's supported environments."""

    def __init__(self, environments: Sequence[str]):
        self.environments: List[str] = list(environments)
        rendered = ", ".join(f"`{env}`" for env in self.environments)
        super().__init__(
            f"The current platform is not compatible with the lockfile's supported "
            f"environments: {rendered}"
        )


class ResolutionConstructionFailure(LockSyncError):
    """A locked package cannot be materialized for the runtime."""

    def __init__(self, package: str, reason: str):
        self.package = package
        self.reason = reason
        super().__init__(f"Failed to resolve `{package}` from the lockfile: {reason}")


class MissingHashError(LockSyncError):
    """Remote distributions without a hash were found while hash checking is on."""

    def __init__(self, packages: Iterable[str]):
        self.packages = sorted(packages)
        super().__init__(
            "Hash verification requires a hash for every remote distribution, "
            f"but none was found for: {', '.join(self.packages)}"
        )


class NoSolutionDuringLocking(LockSyncError):
    """The solver proved the requirements unsatisfiable.

    This is a user-actionable outcome rather than an internal fault, so it is
    reported with ``report()`` instead of a traceback.
    """

    def __init__(self, explanation: str, header: str = "No solution found when resolving dependencies:"):
        self.header = header
        self.explanation = explanation
        super().__init__(explanation)

    def report(self) -> str:
        """Render the long-form explanation shown to the user."""
        lines = [f"error: {self.header}"]
        for line in self.explanation.strip().splitlines():
            lines.append(f"  ╰─▶ {line}" if len(lines) == 1 else f"      {line}")
        return "\n".join(lines) + "\n"


class InstallOrBuildFailure(LockSyncError):
    """Anything raised by the installer while dispatching a sync."""


class RegistryError(LockSyncError):
    """A registry or find-links location could not be reached."""
