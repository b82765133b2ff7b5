"""Sync orchestration: validate, resolve, filter, select policy, dispatch.

The pipeline is strictly linear. Each stage runs once, in order, and any
failure stops the whole sync; nothing reaches the installer until every check
before ``DISPATCHING`` has passed.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, TextIO, Union

from ..common.logging_utils import extra_context, is_debug_enabled
from ..constants import ExitCodes
from ..errors import InstallOrBuildFailure, LockSyncError, NoSolutionDuringLocking
from ..install import InstallReport, InstallRequest, Installer
from ..lockfile.model import Lock
from ..locking import Locker, do_safe_lock
from ..loggers import DefaultInstallLogger, InstallLogger
from ..registry.flat_index import FlatIndex, FlatIndexClient
from ..runtime import Runtime
from ..settings import InstallerSettings
from ..state import SharedState
from ..workspace import UnitOfWork, discover_unit
from .build import build_resolution
from .filters import filter_pipeline
from .options import InstallOptions, Modifications, SelectionCriteria
from .policy import BuildIsolation, HashCheckingMode, HashStrategy, select_build_isolation
from .resolution import Resolution
from .validate import validate_lock

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """Stages of one sync, in the order they run."""
    VALIDATING = "validating"
    RESOLVING = "resolving"
    FILTERING = "filtering"
    POLICY_SELECTING = "policy_selecting"
    DISPATCHING = "dispatching"
    DONE = "done"
    FAILED = "failed"


_ORDER = [
    SyncState.VALIDATING,
    SyncState.RESOLVING,
    SyncState.FILTERING,
    SyncState.POLICY_SELECTING,
    SyncState.DISPATCHING,
    SyncState.DONE,
]


class SyncOrchestrator:
    """Tracks the stage of a sync and enforces the linear order."""

    def __init__(self):
        self.history: List[SyncState] = []
        self.failure: Optional[str] = None

    @property
    def state(self) -> Optional[SyncState]:
        return self.history[-1] if self.history else None

    def enter(self, state: SyncState) -> None:
        """Move to ``state``; stages may be skipped but never revisited."""
        current = self.state
        if current is SyncState.FAILED or current is SyncState.DONE:
            raise RuntimeError(f"Sync already finished ({current.value})")
        if current is not None and _ORDER.index(state) <= _ORDER.index(current):
            raise RuntimeError(f"Cannot move from {current.value} to {state.value}")
        self.history.append(state)
        if is_debug_enabled(logger):
            logger.debug(
                "Sync state: %s",
                state.value,
                extra=extra_context(
                    event="state_transition",
                    component="pipeline",
                    action=state.value,
                    previous=current.value if current else None,
                ),
            )

    def fail(self, error: BaseException) -> None:
        """Record ``error`` as the terminal outcome."""
        if self.state is SyncState.FAILED:
            return
        self.failure = type(error).__name__
        self.history.append(SyncState.FAILED)
        logger.debug(
            "Sync failed while %s: %s",
            self.history[-2].value if len(self.history) > 1 else "starting",
            error,
            extra=extra_context(event="state_transition", component="pipeline", outcome=self.failure),
        )


@dataclass(frozen=True)
class SyncPlan:
    """The reconciled resolution plus the policies to install it with."""
    resolution: Resolution
    build_isolation: BuildIsolation
    hasher: HashStrategy


def reconcile(
    lock: Lock,
    runtime: Runtime,
    unit: UnitOfWork,
    criteria: SelectionCriteria,
    install_options: InstallOptions,
    settings: InstallerSettings,
    orchestrator: Optional[SyncOrchestrator] = None,
) -> SyncPlan:
    """Derive what must be installed for ``runtime`` from ``lock``.

    Args:
        lock: The lockfile to reconcile.
        runtime: Target interpreter and platform.
        unit: Project or virtual workspace being synced.
        criteria: Extras and dev-group selection.
        install_options: User-requested install scope.
        settings: Installer settings (build isolation).
        orchestrator: Optional state tracker, shared with ``do_sync``.

    Returns:
        SyncPlan ready to dispatch.

    Raises:
        LockSyncError: Any compatibility, resolution or hash failure.
    """
    orchestrator = orchestrator or SyncOrchestrator()
    try:
        # Validate that the Python version and platform are supported by the lockfile.
        orchestrator.enter(SyncState.VALIDATING)
        validate_lock(lock, runtime)

        orchestrator.enter(SyncState.RESOLVING)
        resolution = build_resolution(
            lock,
            unit,
            runtime.markers,
            runtime.tags,
            criteria.extras,
            criteria.dev_groups(),
        )

        # Always skip virtual members before applying the install scope.
        orchestrator.enter(SyncState.FILTERING)
        resolution = filter_pipeline(resolution, unit, install_options)

        # TODO: make the hash checking mode configurable once installers accept a lax mode.
        orchestrator.enter(SyncState.POLICY_SELECTING)
        build_isolation = select_build_isolation(settings, runtime)
        hasher = HashStrategy.from_resolution(resolution, HashCheckingMode.VERIFY)
    except LockSyncError as err:
        orchestrator.fail(err)
        raise

    return SyncPlan(resolution=resolution, build_isolation=build_isolation, hasher=hasher)


async def do_sync(
    unit: UnitOfWork,
    runtime: Runtime,
    lock: Lock,
    criteria: SelectionCriteria,
    install_options: InstallOptions,
    modifications: Modifications,
    settings: InstallerSettings,
    state: SharedState,
    installer: Installer,
    install_logger: Optional[InstallLogger] = None,
    orchestrator: Optional[SyncOrchestrator] = None,
) -> InstallReport:
    """Sync a lockfile with a runtime.

    Raises:
        LockSyncError: From reconciliation, or ``InstallOrBuildFailure``
            wrapping anything the installer raised.
    """
    install_logger = install_logger or DefaultInstallLogger()
    orchestrator = orchestrator or SyncOrchestrator()
    plan = reconcile(lock, runtime, unit, criteria, install_options, settings, orchestrator)
    install_logger.on_plan(plan.resolution)

    orchestrator.enter(SyncState.DISPATCHING)
    try:
        # Resolve the flat indexes from `--find-links`.
        entries = await FlatIndexClient(state).fetch(settings.find_links)
        flat_index = FlatIndex.from_entries(entries, runtime.tags, plan.hasher)

        request = InstallRequest(
            resolution=plan.resolution,
            runtime=runtime,
            install_options=install_options,
            hasher=plan.hasher,
            build_isolation=plan.build_isolation,
            flat_index=flat_index,
            state=state,
            modifications=modifications,
            reinstall=settings.reinstall,
            link_mode=settings.link_mode,
            compile_bytecode=settings.compile_bytecode,
            index_url=settings.index_url,
        )
        try:
            report = await installer.install(request, install_logger)
        except LockSyncError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise InstallOrBuildFailure(f"Failed to install the resolution: {exc}") from exc
    except LockSyncError as err:
        orchestrator.fail(err)
        install_logger.on_failure(err)
        raise

    orchestrator.enter(SyncState.DONE)
    return report


@dataclass
class SyncOutcome:
    """Exit status of a sync command plus its report, when it got that far."""
    status: ExitCodes
    report: Optional[InstallReport] = None
    orchestrator: SyncOrchestrator = field(default_factory=SyncOrchestrator)


async def sync(
    project_dir: Union[str, Path],
    runtime: Runtime,
    locker: Locker,
    installer: Installer,
    criteria: SelectionCriteria,
    install_options: InstallOptions,
    settings: InstallerSettings,
    modifications: Modifications = Modifications.EXACT,
    locked: bool = False,
    frozen: bool = False,
    package: Optional[str] = None,
    lockfile: Optional[Path] = None,
    install_logger: Optional[InstallLogger] = None,
    stream: Optional[TextIO] = None,
) -> SyncOutcome:
    """Sync the project environment.

    A solver-reported "no solution" is printed as a report on ``stream``
    (stderr by default) and yields ``ExitCodes.FAILURE``. Every other failure
    propagates as a ``LockSyncError``.
    """
    unit = discover_unit(project_dir, package)

    # Initialize the shared state once; locking and syncing both use it.
    state = SharedState()

    try:
        lock = await do_safe_lock(
            locked,
            frozen,
            unit.workspace,
            runtime,
            settings,
            state,
            locker,
            lockfile,
        )
    except NoSolutionDuringLocking as err:
        (stream or sys.stderr).write(err.report())
        return SyncOutcome(status=ExitCodes.FAILURE)

    outcome = SyncOutcome(status=ExitCodes.SUCCESS)
    outcome.report = await do_sync(
        unit,
        runtime,
        lock,
        criteria,
        install_options,
        modifications,
        settings,
        state,
        installer,
        install_logger,
        outcome.orchestrator,
    )
    return outcome
