"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FAILURE = 1
    ERROR = 2


class SourceKinds(Enum):
    """Origins a locked package can come from.

    Args:
        Enum (string): Source table keys used in the lockfile.
    """

    REGISTRY = "registry"
    URL = "url"
    GIT = "git"
    PATH = "path"
    DIRECTORY = "directory"
    EDITABLE = "editable"
    VIRTUAL = "virtual"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOCKFILE_NAME = "uv.lock"
    LINK_MODES = ("copy", "hardlink", "symlink", "clone")
    PYPROJECT_FILE = "pyproject.toml"
    CONFIG_FILE_NAMES = ["locksync.yaml", "locksync.yml"]
    ENV_CONFIG = "LOCKSYNC_CONFIG"
    ENV_LOG_LEVEL = "LOCKSYNC_LOG_LEVEL"
    DEV_DEPENDENCIES = "dev"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    SUPPORTED_LOCK_VERSIONS = [1]
    LOCAL_SOURCE_KINDS = [
        SourceKinds.PATH.value,
        SourceKinds.DIRECTORY.value,
        SourceKinds.EDITABLE.value,
        SourceKinds.VIRTUAL.value,
    ]
    HASHED_SOURCE_KINDS = [
        SourceKinds.REGISTRY.value,
        SourceKinds.URL.value,
    ]
    SDIST_SUFFIXES = [".tar.gz", ".zip", ".tar.bz2", ".tgz"]
