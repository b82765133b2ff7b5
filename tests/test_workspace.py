"""Tests for workspace discovery."""

import pytest

from locksync.errors import WorkspaceError
from locksync.workspace import ProjectUnit, VirtualUnit, discover_unit, discover_workspace, is_package

BUILD_SYSTEM = '[build-system]\nrequires = ["hatchling"]\nbuild-backend = "hatchling.build"\n'


def _write_project(directory, name, extra=""):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "pyproject.toml").write_text(f'[project]\nname = "{name}"\nversion = "0.1.0"\n{extra}')


class TestIsPackage:
    """Test the package/virtual classification."""

    def test_build_system_means_package(self):
        """Test a build system makes a project a package."""
        assert is_package({"project": {"name": "a"}, "build-system": {}})

    def test_no_build_system_is_virtual(self):
        """Test a project without a build system is virtual."""
        assert not is_package({"project": {"name": "a"}})

    def test_explicit_flag_wins(self):
        """Test tool.uv.package overrides the build-system rule."""
        assert not is_package({"build-system": {}, "tool": {"uv": {"package": False}}})
        assert is_package({"tool": {"uv": {"package": True}}})


class TestDiscoverWorkspace:
    """Test reading workspace members from disk."""

    def test_members_and_exclude(self, tmp_path):
        """Test member globs are expanded and excluded paths skipped."""
        _write_project(
            tmp_path,
            "app",
            BUILD_SYSTEM + '\n[tool.uv.workspace]\nmembers = ["packages/*"]\nexclude = ["packages/legacy"]\n',
        )
        _write_project(tmp_path / "packages" / "helpers", "helpers")
        _write_project(tmp_path / "packages" / "Core_Lib", "Core_Lib", BUILD_SYSTEM)
        _write_project(tmp_path / "packages" / "legacy", "legacy")

        workspace = discover_workspace(tmp_path)
        assert set(workspace.members) == {"app", "helpers", "core-lib"}
        assert workspace.virtual_members() == frozenset({"helpers"})
        assert workspace.root == tmp_path.resolve()

    def test_member_without_pyproject(self, tmp_path):
        """Test a member directory needs a pyproject.toml."""
        _write_project(tmp_path, "app", '[tool.uv.workspace]\nmembers = ["packages/*"]\n')
        (tmp_path / "packages" / "empty").mkdir(parents=True)
        with pytest.raises(WorkspaceError, match="missing a `pyproject.toml`"):
            discover_workspace(tmp_path)

    def test_missing_pyproject(self, tmp_path):
        """Test a directory without pyproject.toml is not a workspace."""
        with pytest.raises(WorkspaceError, match="No `pyproject.toml`"):
            discover_workspace(tmp_path)

    def test_with_current_project(self, tmp_path):
        """Test selecting a member by name, and an unknown name."""
        _write_project(tmp_path, "app", BUILD_SYSTEM)
        workspace = discover_workspace(tmp_path)
        assert workspace.with_current_project("App") == ProjectUnit(workspace, "app")
        with pytest.raises(WorkspaceError, match="Package `nope` not found in workspace"):
            workspace.with_current_project("nope")


class TestDiscoverUnit:
    """Test choosing between a project and a virtual root."""

    def test_project_root(self, tmp_path):
        """Test a root with [project] is a concrete project."""
        _write_project(tmp_path, "app", BUILD_SYSTEM)
        unit = discover_unit(tmp_path)
        assert isinstance(unit, ProjectUnit)
        assert unit.roots() == ("app",)

    def test_virtual_root(self, tmp_path):
        """Test a root without [project] is a virtual workspace."""
        (tmp_path / "pyproject.toml").write_text('[tool.uv.workspace]\nmembers = ["libs/*"]\n')
        _write_project(tmp_path / "libs" / "b", "b", BUILD_SYSTEM)
        _write_project(tmp_path / "libs" / "a", "a", BUILD_SYSTEM)
        unit = discover_unit(tmp_path)
        assert isinstance(unit, VirtualUnit)
        assert unit.roots() == ("a", "b")

    def test_package_selects_member(self, tmp_path):
        """Test --package makes a member the current project."""
        (tmp_path / "pyproject.toml").write_text('[tool.uv.workspace]\nmembers = ["libs/*"]\n')
        _write_project(tmp_path / "libs" / "a", "a", BUILD_SYSTEM)
        unit = discover_unit(tmp_path, package="a")
        assert isinstance(unit, ProjectUnit)
        assert unit.project_name == "a"
