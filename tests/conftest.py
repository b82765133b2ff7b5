"""Shared fixtures: a small workspace lockfile and Linux/macOS runtimes."""

from pathlib import Path

import pytest
from packaging.tags import Tag

from locksync.lockfile.io import parse_lock
from locksync.runtime import Runtime
from locksync.workspace import ProjectUnit, VirtualUnit, Workspace, WorkspaceMember

PYPI = "https://files.pythonhosted.org/packages"

WORKSPACE_LOCK = f"""version = 1
requires-python = ">=3.9"

[[package]]
name = "app"
version = "0.1.0"
source = {{ editable = "." }}
dependencies = [
    {{ name = "helpers" }},
    {{ name = "requests" }},
]

[package.optional-dependencies]
socks = [{{ name = "pysocks" }}]

[package.dev-dependencies]
dev = [{{ name = "pytest" }}]

[[package]]
name = "helpers"
version = "0.1.0"
source = {{ virtual = "packages/helpers" }}
dependencies = [{{ name = "idna" }}]

[[package]]
name = "requests"
version = "2.32.3"
source = {{ registry = "https://pypi.org/simple" }}
dependencies = [
    {{ name = "idna" }},
    {{ name = "colorama", marker = "sys_platform == 'win32'" }},
]
sdist = {{ url = "{PYPI}/requests-2.32.3.tar.gz", hash = "sha256:55365417734eb18255590a9ff9eb97e9e1da868d4ccd6402399eaf68af20a760" }}
wheels = [
    {{ url = "{PYPI}/requests-2.32.3-py3-none-any.whl", hash = "sha256:70761cfe03c773ceb22aa2f671b4757976145175cdfca038c02654d061d6dcc6" }},
]

[[package]]
name = "idna"
version = "3.7"
source = {{ registry = "https://pypi.org/simple" }}
wheels = [
    {{ url = "{PYPI}/idna-3.7-py3-none-any.whl", hash = "sha256:82fee1fc78add43492d3a1898bfa6d8a904cc97d8427f683ed8e798d07761aa0" }},
]

[[package]]
name = "colorama"
version = "0.4.6"
source = {{ registry = "https://pypi.org/simple" }}
wheels = [
    {{ url = "{PYPI}/colorama-0.4.6-py2.py3-none-any.whl", hash = "sha256:4f1d9991f5acc0ca119f9d443620b77f9d6b33703e51011c16baf57afb285fc6" }},
]

[[package]]
name = "pysocks"
version = "1.7.1"
source = {{ registry = "https://pypi.org/simple" }}
wheels = [
    {{ url = "{PYPI}/PySocks-1.7.1-py3-none-any.whl", hash = "sha256:2725bd0a9925919b9b51739eea5f9e2bae91e83288108a9ad338b2e3a4435ee5" }},
]

[[package]]
name = "pytest"
version = "8.2.0"
source = {{ registry = "https://pypi.org/simple" }}
dependencies = [{{ name = "iniconfig" }}]
wheels = [
    {{ url = "{PYPI}/pytest-8.2.0-py3-none-any.whl", hash = "sha256:1733f0620f6cda4095bbf0d9ff8022486e91892245bb9e7d5542c018f612f233" }},
]

[[package]]
name = "iniconfig"
version = "2.0.0"
source = {{ registry = "https://pypi.org/simple" }}
wheels = [
    {{ url = "{PYPI}/iniconfig-2.0.0-py3-none-any.whl", hash = "sha256:b6a85871a79d2e3b22d2d1b94ac2824226a63c6b741c88f7ae975f18b6778374" }},
]
"""


def _markers(sys_platform, platform_system, python_full_version, platform_machine="x86_64"):
    return {
        "implementation_name": "cpython",
        "implementation_version": python_full_version,
        "os_name": "nt" if sys_platform == "win32" else "posix",
        "platform_machine": platform_machine,
        "platform_release": "",
        "platform_system": platform_system,
        "platform_version": "",
        "python_full_version": python_full_version,
        "platform_python_implementation": "CPython",
        "python_version": ".".join(python_full_version.split(".")[:2]),
        "sys_platform": sys_platform,
    }


LINUX_TAGS = (
    Tag("cp311", "cp311", "manylinux_2_17_x86_64"),
    Tag("cp311", "abi3", "manylinux_2_17_x86_64"),
    Tag("py3", "none", "manylinux_2_17_x86_64"),
    Tag("cp311", "none", "any"),
    Tag("py3", "none", "any"),
)

MACOS_TAGS = (
    Tag("cp311", "cp311", "macosx_11_0_arm64"),
    Tag("py3", "none", "macosx_11_0_arm64"),
    Tag("py3", "none", "any"),
)


def make_runtime(sys_platform="linux", python="3.11.4", tags=LINUX_TAGS, site=Path("site-packages")):
    """Build a Runtime for the given platform and interpreter version."""
    system = {"linux": "Linux", "darwin": "Darwin", "win32": "Windows"}[sys_platform]
    machine = "arm64" if sys_platform == "darwin" else "x86_64"
    return Runtime.from_markers(_markers(sys_platform, system, python, machine), tags=tags, site=site)


@pytest.fixture
def linux_runtime(tmp_path):
    """CPython 3.11 on Linux with an empty site-packages directory."""
    site = tmp_path / "site-packages"
    site.mkdir()
    return make_runtime("linux", site=site)


@pytest.fixture
def workspace_lock():
    """Lock for a project `app` with a virtual member `helpers`."""
    return parse_lock(WORKSPACE_LOCK)


@pytest.fixture
def workspace():
    """Topology matching WORKSPACE_LOCK."""
    root = Path("/ws")
    return Workspace(
        root=root,
        members={
            "app": WorkspaceMember("app", root, True),
            "helpers": WorkspaceMember("helpers", root / "packages" / "helpers", False),
        },
    )


@pytest.fixture
def project_unit(workspace):
    return ProjectUnit(workspace=workspace, project_name="app")


@pytest.fixture
def virtual_unit(workspace):
    return VirtualUnit(workspace=workspace)


NUMPY_FORKS = f"""[[package]]
name = "numpy"
version = "1.26.4"
source = {{ registry = "https://pypi.org/simple" }}
sdist = {{ url = "{PYPI}/numpy-1.26.4.tar.gz", hash = "sha256:2a02aba9ed12e4ac4eb3ea9421c420301a0c6460d9830d74a9df87efa4912010" }}

[[package]]
name = "numpy"
version = "2.0.0"
source = {{ registry = "https://pypi.org/simple" }}
sdist = {{ url = "{PYPI}/numpy-2.0.0.tar.gz", hash = "sha256:cf5d1c9e6837f8af9f92b6bd3e86d513cdc11f60fd62185cc49ec7d1aba34864" }}
"""

# numpy is locked twice, selected by the interpreter version.
FORKED_LOCK = f"""version = 1
requires-python = ">=3.9"

[[package]]
name = "proj"
version = "1.0.0"
source = {{ editable = "." }}
dependencies = [
    {{ name = "numpy", version = "1.26.4", source = {{ registry = "https://pypi.org/simple" }}, marker = "python_full_version < '3.10'" }},
    {{ name = "numpy", version = "2.0.0", source = {{ registry = "https://pypi.org/simple" }}, marker = "python_full_version >= '3.10'" }},
]

""" + NUMPY_FORKS
