"""Lockfile reader for the ``uv.lock`` TOML layout.

A lockfile is a TOML document with top-level ``version``, optional
``requires-python`` and ``environments`` keys, and one ``[[package]]`` table
per locked distribution::

    [[package]]
    name = "requests"
    version = "2.32.3"
    source = { registry = "https://pypi.org/simple" }
    dependencies = [{ name = "idna" }, { name = "pysocks", marker = "extra == 'socks'" }]
    sdist = { url = "...", hash = "sha256:..." }
    wheels = [{ url = ".../requests-2.32.3-py3-none-any.whl", hash = "sha256:..." }]

    [package.optional-dependencies]
    socks = [{ name = "pysocks" }]

    [package.dev-dependencies]
    dev = [{ name = "pytest" }]

A forked resolution locks one name several times, each entry unique by
``(name, version, source)``. Edges to such a name carry ``version`` (and
``source``) next to the marker that selects the fork::

    dependencies = [
        { name = "numpy", version = "1.26.4", source = { registry = "..." }, marker = "python_full_version < '3.10'" },
        { name = "numpy", version = "2.0.0", source = { registry = "..." }, marker = "python_full_version >= '3.10'" },
    ]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from packaging.markers import InvalidMarker, Marker
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import canonicalize_name

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore

from ..constants import Constants, SourceKinds
from ..errors import LockfileError
from .model import Artifact, Dependency, Lock, LockedPackage, Source

logger = logging.getLogger(__name__)


def read_lock(path: Union[str, Path]) -> Lock:
    """Read and parse the lockfile at ``path``.

    Args:
        path: Path to a ``uv.lock`` file.

    Returns:
        The parsed Lock.

    Raises:
        LockfileError: If the file is missing, unreadable or malformed.
    """
    lock_path = Path(path)
    try:
        text = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise LockfileError(f"Unable to find lockfile at `{lock_path}`") from e
    except OSError as e:
        raise LockfileError(f"Failed to read lockfile `{lock_path}`: {e}") from e
    logger.debug("Read lockfile %s (%d bytes)", lock_path, len(text))
    return parse_lock(text)


def parse_lock(text: str) -> Lock:
    """Parse lockfile TOML text into a Lock."""
    try:
        data = toml.loads(text) or {}
    except toml.TOMLDecodeError as e:
        raise LockfileError(f"Failed to parse lockfile (invalid TOML): {e}") from e

    version = data.get("version")
    if version not in Constants.SUPPORTED_LOCK_VERSIONS:
        raise LockfileError(f"Unsupported lockfile version: {version!r}")

    requires_python: Optional[SpecifierSet] = None
    if data.get("requires-python"):
        try:
            requires_python = SpecifierSet(data["requires-python"])
        except InvalidSpecifier as e:
            raise LockfileError(f"Invalid `requires-python` in lockfile: {e}") from e

    environments = tuple(_validate_marker(env) for env in data.get("environments", []) or [])

    packages: List[LockedPackage] = []
    seen = set()
    for raw in data.get("package", []) or []:
        package = _parse_package(raw)
        if package.key in seen:
            raise LockfileError(
                f"Duplicate package `{package.name}` {package.version} from `{package.source}` in lockfile"
            )
        seen.add(package.key)
        packages.append(package)

    return Lock(
        version=version,
        requires_python=requires_python,
        environments=environments,
        packages=tuple(packages),
    )


def _validate_marker(expression: Any) -> str:
    if not isinstance(expression, str):
        raise LockfileError(f"Marker must be a string, got {expression!r}")
    try:
        Marker(expression)
    except InvalidMarker as e:
        raise LockfileError(f"Invalid marker `{expression}` in lockfile: {e}") from e
    return expression


def _parse_package(raw: Any) -> LockedPackage:
    if not isinstance(raw, dict) or "name" not in raw:
        raise LockfileError("Every [[package]] entry needs a `name`")
    name = canonicalize_name(raw["name"])
    try:
        return LockedPackage(
            name=name,
            version=raw.get("version"),
            source=_parse_source(name, raw.get("source")),
            dependencies=_parse_dependencies(raw.get("dependencies")),
            optional_dependencies=_parse_groups(raw.get("optional-dependencies")),
            dev_dependencies=_parse_groups(raw.get("dev-dependencies")),
            sdist=_parse_artifact(raw.get("sdist")),
            wheels=tuple(_parse_artifact(w) for w in raw.get("wheels", []) or []),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise LockfileError(f"Invalid entry for package `{name}`: {e}") from e


def _parse_source(name: str, raw: Any) -> Source:
    if not isinstance(raw, dict) or not raw:
        raise LockfileError(f"Package `{name}` has no `source`")
    for kind in SourceKinds:
        if kind.value in raw:
            return Source(kind=kind.value, location=str(raw[kind.value]))
    raise LockfileError(f"Package `{name}` has an unknown source: {raw!r}")


def _parse_dependencies(raw: Any) -> Tuple[Dependency, ...]:
    deps: List[Dependency] = []
    for entry in raw or []:
        name = canonicalize_name(entry["name"])
        marker = entry.get("marker")
        source = entry.get("source")
        deps.append(
            Dependency(
                name=name,
                marker=_validate_marker(marker) if marker else None,
                extras=tuple(canonicalize_name(e) for e in entry.get("extra", []) or []),
                version=entry.get("version"),
                source=_parse_source(name, source) if source is not None else None,
            )
        )
    return tuple(deps)


def _parse_groups(raw: Any) -> Dict[str, Tuple[Dependency, ...]]:
    return {
        canonicalize_name(group): _parse_dependencies(deps)
        for group, deps in (raw or {}).items()
    }


def _parse_artifact(raw: Any) -> Optional[Artifact]:
    if raw is None:
        return None
    if "url" not in raw and "path" not in raw:
        raise ValueError(f"artifact without `url` or `path`: {raw!r}")
    return Artifact(
        url=raw.get("url"),
        hash=raw.get("hash"),
        size=raw.get("size"),
        path=raw.get("path"),
    )
