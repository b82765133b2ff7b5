"""Tests for the sync orchestration."""

import asyncio
import io

import pytest
import requests

from locksync.constants import ExitCodes
from locksync.errors import (
    InstallOrBuildFailure,
    LockedInterpreterIncompatibility,
    LockedPlatformIncompatibility,
    MissingHashError,
    NoSolutionDuringLocking,
    ResolutionConstructionFailure,
)
from locksync.install import DryRunInstaller, InstallReport
from locksync.lockfile.io import parse_lock
from locksync.settings import InstallerSettings
from locksync.state import SharedState
from locksync.sync.options import InstallOptions, Modifications, SelectionCriteria
from locksync.sync.pipeline import SyncOrchestrator, SyncState, do_sync, reconcile, sync
from locksync.sync.policy import Isolated, SharedPackage

from conftest import WORKSPACE_LOCK, make_runtime

NO_HASH_LOCK = """version = 1

[[package]]
name = "app"
version = "0.1.0"
source = { editable = "." }
dependencies = [{ name = "idna" }]

[[package]]
name = "idna"
version = "3.7"
source = { registry = "https://pypi.org/simple" }
wheels = [{ url = "https://example.org/idna-3.7-py3-none-any.whl" }]
"""


class RecordingInstaller:
    """Installer that records requests instead of installing."""

    def __init__(self, error=None):
        self.requests = []
        self.error = error

    async def install(self, request, install_logger):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        report = InstallReport(installed=sorted(request.resolution))
        install_logger.on_complete(report)
        return report


class RecordingLogger:
    """InstallLogger collecting event names."""

    def __init__(self):
        self.events = []

    def on_plan(self, resolution):
        self.events.append("plan")

    def on_complete(self, report):
        self.events.append("complete")

    def on_failure(self, error):
        self.events.append("failure")


def _no_network(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("network access is not allowed here")

    monkeypatch.setattr(requests, "get", fail)


def _do_sync(lock, unit, runtime, installer, settings=InstallerSettings(), orchestrator=None, install_logger=None):
    return asyncio.run(
        do_sync(
            unit,
            runtime,
            lock,
            SelectionCriteria(dev=False),
            InstallOptions(),
            Modifications.EXACT,
            settings,
            SharedState(),
            installer,
            install_logger or RecordingLogger(),
            orchestrator,
        )
    )


class TestSyncOrchestrator:
    """Test the stage machine."""

    def test_linear_order(self):
        """Test stages move forward only."""
        orchestrator = SyncOrchestrator()
        orchestrator.enter(SyncState.VALIDATING)
        orchestrator.enter(SyncState.RESOLVING)
        with pytest.raises(RuntimeError, match="Cannot move"):
            orchestrator.enter(SyncState.VALIDATING)

    def test_no_reentry_after_failure(self):
        """Test a failed sync cannot continue."""
        orchestrator = SyncOrchestrator()
        orchestrator.enter(SyncState.VALIDATING)
        orchestrator.fail(ValueError("x"))
        assert orchestrator.state is SyncState.FAILED
        assert orchestrator.failure == "ValueError"
        with pytest.raises(RuntimeError, match="already finished"):
            orchestrator.enter(SyncState.RESOLVING)


class TestReconcile:
    """Test reconciliation without dispatch."""

    def _reconcile(self, lock, unit, runtime, settings=InstallerSettings(), orchestrator=None):
        return reconcile(lock, runtime, unit, SelectionCriteria(dev=False), InstallOptions(), settings, orchestrator)

    def test_interpreter_mismatch_stops_before_resolving(self, project_unit):
        """Test an incompatible interpreter fails in the validating stage."""
        lock = parse_lock('version = 1\nrequires-python = ">=3.9,<3.12"\n')
        orchestrator = SyncOrchestrator()
        with pytest.raises(LockedInterpreterIncompatibility):
            self._reconcile(lock, project_unit, make_runtime(python="3.8"), orchestrator=orchestrator)
        assert orchestrator.history == [SyncState.VALIDATING, SyncState.FAILED]

    def test_platform_mismatch(self, project_unit):
        """Test an unsupported platform fails in the validating stage."""
        lock = parse_lock("version = 1\nenvironments = [\"sys_platform == 'linux'\"]\n")
        with pytest.raises(LockedPlatformIncompatibility):
            self._reconcile(lock, project_unit, make_runtime("darwin"))

    def test_plan(self, workspace_lock, project_unit):
        """Test a compatible lock yields the filtered resolution and policies."""
        plan = self._reconcile(workspace_lock, project_unit, make_runtime("linux"))
        assert plan.resolution.names() == frozenset({"app", "requests", "idna"})
        assert plan.build_isolation == Isolated()
        assert plan.hasher.expected("idna").startswith("sha256:")

    def test_shared_package_isolation(self, workspace_lock, project_unit):
        """Test the exclusion set selects SharedPackage for the runtime."""
        runtime = make_runtime("linux")
        settings = InstallerSettings(no_build_isolation_package=frozenset({"nativepkg"}))
        plan = self._reconcile(workspace_lock, project_unit, runtime, settings)
        assert plan.build_isolation == SharedPackage(runtime, frozenset({"nativepkg"}))

    def test_full_history(self, workspace_lock, project_unit):
        """Test every stage up to policy selection runs once, in order."""
        orchestrator = SyncOrchestrator()
        self._reconcile(workspace_lock, project_unit, make_runtime("linux"), orchestrator=orchestrator)
        assert orchestrator.history == [
            SyncState.VALIDATING,
            SyncState.RESOLVING,
            SyncState.FILTERING,
            SyncState.POLICY_SELECTING,
        ]

    def test_missing_hash_fails_policy_stage(self, project_unit):
        """Test a remote dist without a hash fails before dispatch."""
        orchestrator = SyncOrchestrator()
        with pytest.raises(MissingHashError):
            self._reconcile(parse_lock(NO_HASH_LOCK), project_unit, make_runtime("linux"), orchestrator=orchestrator)
        assert orchestrator.history[-2:] == [SyncState.POLICY_SELECTING, SyncState.FAILED]


class TestDoSync:
    """Test dispatch to the installer."""

    def test_dispatch(self, workspace_lock, project_unit, linux_runtime):
        """Test the installer receives the reconciled request."""
        installer = RecordingInstaller()
        orchestrator = SyncOrchestrator()
        settings = InstallerSettings(
            reinstall=True, link_mode="hardlink", compile_bytecode=True, index_url="https://mirror.example.org/simple",
        )
        install_logger = RecordingLogger()
        report = _do_sync(
            workspace_lock, project_unit, linux_runtime, installer,
            settings=settings, orchestrator=orchestrator, install_logger=install_logger,
        )

        assert report.installed == ["app", "idna", "requests"]
        (request,) = installer.requests
        assert request.modifications is Modifications.EXACT
        assert request.build_constraints == ()
        assert request.runtime is linux_runtime
        assert request.reinstall is True
        assert request.link_mode == "hardlink"
        assert request.compile_bytecode is True
        assert request.index_url == "https://mirror.example.org/simple"
        assert orchestrator.state is SyncState.DONE
        assert install_logger.events == ["plan", "complete"]

    def test_validation_failure_never_dispatches(self, project_unit, monkeypatch):
        """Test nothing is fetched or installed when validation fails."""
        _no_network(monkeypatch)
        installer = RecordingInstaller()
        lock = parse_lock('version = 1\nrequires-python = ">=3.12"\n')
        settings = InstallerSettings(find_links=("https://example.org/wheels/",))
        with pytest.raises(LockedInterpreterIncompatibility):
            _do_sync(lock, project_unit, make_runtime(python="3.11.4"), installer, settings=settings)
        assert installer.requests == []

    def test_resolution_failure_never_dispatches(self, project_unit):
        """Test a package with no usable artifact aborts the sync."""
        lock = parse_lock("""version = 1

[[package]]
name = "app"
version = "0.1.0"
source = { editable = "." }
dependencies = [{ name = "winonly" }]

[[package]]
name = "winonly"
version = "1.0.0"
source = { registry = "https://pypi.org/simple" }
wheels = [{ url = "https://example.org/winonly-1.0.0-cp311-cp311-win_amd64.whl", hash = "sha256:00" }]
""")
        installer = RecordingInstaller()
        with pytest.raises(ResolutionConstructionFailure):
            _do_sync(lock, project_unit, make_runtime("linux"), installer)
        assert installer.requests == []

    def test_hash_failure_never_dispatches(self, project_unit):
        """Test a missing hash aborts the sync before the installer runs."""
        installer = RecordingInstaller()
        with pytest.raises(MissingHashError):
            _do_sync(parse_lock(NO_HASH_LOCK), project_unit, make_runtime("linux"), installer)
        assert installer.requests == []

    def test_installer_error_wrapped(self, workspace_lock, project_unit, linux_runtime):
        """Test arbitrary installer errors become InstallOrBuildFailure."""
        orchestrator = SyncOrchestrator()
        install_logger = RecordingLogger()
        with pytest.raises(InstallOrBuildFailure) as excinfo:
            _do_sync(
                workspace_lock, project_unit, linux_runtime, RecordingInstaller(error=OSError("disk full")),
                orchestrator=orchestrator, install_logger=install_logger,
            )
        assert isinstance(excinfo.value.__cause__, OSError)
        assert orchestrator.history[-2:] == [SyncState.DISPATCHING, SyncState.FAILED]
        assert install_logger.events == ["plan", "failure"]

    def test_find_links_feed_flat_index(self, workspace_lock, project_unit, linux_runtime, tmp_path):
        """Test find-links entries reach the installer request."""
        wheels = tmp_path / "wheels"
        wheels.mkdir()
        (wheels / "idna-3.7-py3-none-any.whl").write_bytes(b"")
        installer = RecordingInstaller()
        _do_sync(
            workspace_lock, project_unit, linux_runtime, installer,
            settings=InstallerSettings(find_links=(str(wheels),)),
        )
        assert [e.filename for e in installer.requests[0].flat_index.get("idna")] == ["idna-3.7-py3-none-any.whl"]


def _write_project(root):
    (root / "pyproject.toml").write_text(
        '[project]\nname = "app"\nversion = "0.1.0"\n\n'
        '[build-system]\nrequires = ["hatchling"]\nbuild-backend = "hatchling.build"\n\n'
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    helpers = root / "packages" / "helpers"
    helpers.mkdir(parents=True)
    (helpers / "pyproject.toml").write_text('[project]\nname = "helpers"\nversion = "0.1.0"\n')
    (root / "uv.lock").write_text(WORKSPACE_LOCK)


class FailingLocker:
    """Locker whose solver finds no solution."""

    async def lock(self, workspace, runtime, settings, state):
        raise NoSolutionDuringLocking("Because app depends on idna>=99 and no versions of idna match, app cannot be installed.")


class TestSync:
    """Test the command-level entry point."""

    def test_success(self, tmp_path, linux_runtime):
        """Test a frozen sync of a project with a virtual member."""
        project = tmp_path / "project"
        project.mkdir()
        _write_project(project)
        (linux_runtime.site / "stale-1.0.dist-info").mkdir()

        outcome = asyncio.run(
            sync(
                project,
                linux_runtime,
                FailingLocker(),
                DryRunInstaller(),
                SelectionCriteria(dev=False),
                InstallOptions(),
                InstallerSettings(),
                frozen=True,
            )
        )
        assert outcome.status is ExitCodes.SUCCESS
        assert outcome.report.installed == ["app", "idna", "requests"]
        assert outcome.report.removed == ["stale"]
        assert outcome.orchestrator.state is SyncState.DONE

    def test_no_solution_reported(self, tmp_path, linux_runtime):
        """Test a solver failure is printed as a report and exits with FAILURE."""
        project = tmp_path / "project"
        project.mkdir()
        _write_project(project)
        stream = io.StringIO()

        outcome = asyncio.run(
            sync(
                project,
                linux_runtime,
                FailingLocker(),
                RecordingInstaller(),
                SelectionCriteria(),
                InstallOptions(),
                InstallerSettings(),
                stream=stream,
            )
        )
        assert outcome.status is ExitCodes.FAILURE
        assert outcome.report is None
        assert stream.getvalue().startswith("error: No solution found when resolving dependencies:")
        assert "idna>=99" in stream.getvalue()
