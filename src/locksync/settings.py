"""Installer settings and their loading from config files.

Precedence, highest first: explicit CLI overrides, the YAML config file
(``--config``, ``LOCKSYNC_CONFIG`` or ``locksync.yaml`` in the project), the
``[tool.locksync]`` table of ``pyproject.toml``, then defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

import yaml
from packaging.utils import canonicalize_name

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore

from .constants import Constants
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallerSettings:
    """Settings consumed by the sync pipeline and passed through to the installer."""
    no_build_isolation: bool = False
    no_build_isolation_package: FrozenSet[str] = frozenset()
    find_links: Tuple[str, ...] = ()
    index_url: Optional[str] = None
    reinstall: bool = False
    compile_bytecode: bool = False
    link_mode: str = "copy"

    def merged(self, overrides: Dict[str, Any]) -> "InstallerSettings":
        """Return a copy with ``overrides`` applied, ignoring None values."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")
        values = {key: _coerce(key, value) for key, value in overrides.items() if value is not None}
        return replace(self, **values)


def _coerce(key: str, value: Any) -> Any:
    if key == "no_build_isolation_package":
        if isinstance(value, str):
            value = [value]
        return frozenset(canonicalize_name(v) for v in value)
    if key == "find_links":
        if isinstance(value, str):
            value = [value]
        return tuple(str(v) for v in value)
    if key in ("no_build_isolation", "reinstall", "compile_bytecode"):
        if not isinstance(value, bool):
            raise ConfigError(f"Setting `{key}` must be a boolean, got {value!r}")
    if key == "link_mode" and value not in Constants.LINK_MODES:
        raise ConfigError(
            f"Setting `link_mode` must be one of {', '.join(Constants.LINK_MODES)}, got {value!r}"
        )
    return value


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(key).replace("-", "_"): value for key, value in data.items()}


def _load_yaml_config(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Failed to read config `{path}`: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config `{path}`: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config `{path}` must contain a mapping")
    section = data.get("sync", data)
    logger.debug("Loaded config from %s", path)
    return _normalize_keys(section)


def _load_pyproject_settings(project_dir: Path) -> Dict[str, Any]:
    path = project_dir / Constants.PYPROJECT_FILE
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            data = toml.load(f) or {}
    except toml.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse `{path}`: {e}") from e
    return _normalize_keys(data.get("tool", {}).get("locksync", {}) or {})


def find_config_file(project_dir: Path, explicit: Optional[str] = None) -> Optional[Path]:
    """Locate the YAML config file, if any."""
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {explicit}")
        return path
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        return Path(env_path)
    for name in Constants.CONFIG_FILE_NAMES:
        candidate = project_dir / name
        if candidate.is_file():
            return candidate
    return None


def load_settings(
    project_dir: Union[str, Path],
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> InstallerSettings:
    """Load InstallerSettings for ``project_dir``.

    Args:
        project_dir: Directory holding ``pyproject.toml``.
        config_path: Explicit YAML config file.
        overrides: CLI values; None entries are ignored.

    Returns:
        The merged InstallerSettings.
    """
    directory = Path(project_dir)
    settings = InstallerSettings().merged(_load_pyproject_settings(directory))
    config_file = find_config_file(directory, config_path)
    if config_file is not None:
        settings = settings.merged(_load_yaml_config(config_file))
    if overrides:
        settings = settings.merged(overrides)
    return settings
