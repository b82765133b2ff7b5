"""Structured logging helpers shared by every locksync module.

Modules log through their own ``logging.getLogger(__name__)`` and attach
machine-readable fields with ``extra=extra_context(...)``. Expensive DEBUG
payloads are guarded with ``is_debug_enabled``.
"""

from __future__ import annotations

import logging
import os
import time
import urllib.parse
from typing import Any, Dict, Optional

from ..constants import Constants

_CONTEXT_KEYS = ("event", "component", "action", "outcome", "target", "package")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for CLI use.

    The level comes from ``level`` or the LOCKSYNC_LOG_LEVEL environment
    variable, defaulting to INFO.
    """
    level_name = str(level or os.environ.get(Constants.ENV_LOG_LEVEL, "INFO")).upper()
    level_value = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping with stable keys and no None values."""
    context = {key: None for key in _CONTEXT_KEYS}
    context.update(fields)
    return {key: value for key, value in context.items() if value is not None}


def safe_url(url: str) -> str:
    """Strip credentials and query strings from a URL before logging it."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    if not parts.scheme:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urllib.parse.urlunsplit((parts.scheme, host, parts.path, "", ""))


class Timer:
    """Context manager measuring wall time in milliseconds."""

    def __init__(self):
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> float:
        """Elapsed milliseconds, measured up to now if still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000.0, 3)
