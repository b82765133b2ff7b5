"""Check that a lockfile is usable with a runtime before anything else happens."""

from __future__ import annotations

import logging

from packaging.markers import Marker

from ..errors import LockedInterpreterIncompatibility, LockedPlatformIncompatibility
from ..lockfile.model import Lock
from ..runtime import Runtime

logger = logging.getLogger(__name__)


def validate_lock(lock: Lock, runtime: Runtime) -> None:
    """Raise if ``runtime`` falls outside what ``lock`` supports.

    The interpreter check runs first; the platform check is skipped when it
    fails.

    Raises:
        LockedInterpreterIncompatibility: The interpreter version is outside
            the lock's ``requires-python``.
        LockedPlatformIncompatibility: No supported environment of the lock
            matches the runtime markers.
    """
    if lock.requires_python is not None:
        if not lock.requires_python.contains(runtime.python_version, prereleases=True):
            raise LockedInterpreterIncompatibility(
                str(runtime.python_version), str(lock.requires_python)
            )

    environments = lock.supported_environments()
    if environments:
        if not any(Marker(env).evaluate(runtime.markers) for env in environments):
            raise LockedPlatformIncompatibility(environments)

    logger.debug(
        "Lockfile is compatible with Python %s on %s",
        runtime.python_version,
        runtime.platform or "unknown platform",
    )
