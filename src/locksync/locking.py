"""Obtaining the lockfile a sync runs against.

The dependency solver itself lives outside this package and is reached
through the ``Locker`` protocol. A solver that proves the requirements
unsatisfiable raises ``NoSolutionDuringLocking``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from .constants import Constants
from .errors import LockfileError
from .lockfile.io import read_lock
from .lockfile.model import Lock
from .runtime import Runtime
from .settings import InstallerSettings
from .state import SharedState
from .workspace import Workspace

logger = logging.getLogger(__name__)


class Locker(Protocol):
    """Produces a Lock for a workspace, e.g. by running a solver."""

    async def lock(
        self,
        workspace: Workspace,
        runtime: Runtime,
        settings: InstallerSettings,
        state: SharedState,
    ) -> Lock:
        ...


class LockfileLocker:
    """A Locker that returns the lockfile already on disk without solving."""

    def __init__(self, lockfile: Optional[Path] = None):
        self._lockfile = lockfile

    async def lock(
        self,
        workspace: Workspace,
        runtime: Runtime,
        settings: InstallerSettings,
        state: SharedState,
    ) -> Lock:
        return read_lock(lockfile_path(workspace, self._lockfile))


def lockfile_path(workspace: Workspace, lockfile: Optional[Path] = None) -> Path:
    """Explicit lockfile path, or the default one at the workspace root."""
    return Path(lockfile) if lockfile else workspace.root / Constants.LOCKFILE_NAME


async def do_safe_lock(
    locked: bool,
    frozen: bool,
    workspace: Workspace,
    runtime: Runtime,
    settings: InstallerSettings,
    state: SharedState,
    locker: Locker,
    lockfile: Optional[Path] = None,
) -> Lock:
    """Return the Lock to sync against.

    Args:
        locked: Require the lockfile to already be up to date.
        frozen: Use the lockfile as-is without consulting the locker.
        workspace: Workspace being synced.
        runtime: Target runtime.
        settings: Installer settings passed to the locker.
        state: Shared caches reused by the later sync phase.
        locker: Solver-backed Locker.
        lockfile: Explicit lockfile path.

    Raises:
        LockfileError: The lockfile is missing (``frozen``) or stale (``locked``).
        NoSolutionDuringLocking: Propagated unchanged from the locker.
    """
    path = lockfile_path(workspace, lockfile)
    if frozen:
        logger.debug("Using frozen lockfile %s", path)
        lock = read_lock(path)
        seed_git_cache(lock, state)
        return lock

    lock = await locker.lock(workspace, runtime, settings, state)
    if locked:
        existing = read_lock(path)
        if existing != lock:
            raise LockfileError(
                f"The lockfile at `{path.name}` needs to be updated, but `--locked` was provided. "
                "To update the lockfile, run the lock command without `--locked`."
            )
    seed_git_cache(lock, state)
    return lock


def seed_git_cache(lock: Lock, state: SharedState) -> int:
    """Record the commit each locked git source was pinned to.

    Returns the number of references recorded.
    """
    seeded = 0
    for package in lock.packages:
        reference = package.source.git_reference()
        if reference is None or reference.commit is None:
            continue
        state.git.insert(reference.repository, reference.reference, reference.commit)
        seeded += 1
    if seeded:
        logger.debug("Seeded %d git reference(s) from the lockfile", seeded)
    return seeded
