"""Progress reporting hooks injected into the sync orchestration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from .common.logging_utils import extra_context

if TYPE_CHECKING:  # pragma: no cover
    from .install import InstallReport
    from .sync.resolution import Resolution

logger = logging.getLogger(__name__)


class InstallLogger(Protocol):
    """Receives progress events from a sync."""

    def on_plan(self, resolution: "Resolution") -> None:
        ...

    def on_complete(self, report: "InstallReport") -> None:
        ...

    def on_failure(self, error: Exception) -> None:
        ...


class DefaultInstallLogger:
    """Writes progress through the standard logging module."""

    def on_plan(self, resolution: "Resolution") -> None:
        logger.info(
            "Resolved %d package%s from the lockfile",
            len(resolution),
            "" if len(resolution) == 1 else "s",
            extra=extra_context(event="sync_plan", component="sync", outcome="resolved"),
        )

    def on_complete(self, report: "InstallReport") -> None:
        for line in report.summary_lines():
            logger.info(line)

    def on_failure(self, error: Exception) -> None:
        logger.error(
            "Sync failed: %s",
            error,
            extra=extra_context(event="sync_failed", component="sync", outcome="error"),
        )
