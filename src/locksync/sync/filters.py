"""Filters narrowing a Resolution before it reaches the installer."""

from __future__ import annotations

import logging

from ..workspace import ProjectUnit, UnitOfWork
from .options import InstallOptions
from .resolution import Resolution

logger = logging.getLogger(__name__)


def apply_no_virtual_project(resolution: Resolution, unit: UnitOfWork) -> Resolution:
    """Filter out any virtual workspace members."""
    if not isinstance(unit, ProjectUnit):
        # A virtual workspace root has no package of its own to exclude.
        return resolution

    virtual_members = unit.workspace.virtual_members()
    dropped = sorted(virtual_members & resolution.names())
    if dropped:
        logger.debug("Skipping virtual workspace members: %s", ", ".join(dropped))
    return resolution.filter(lambda dist: dist.name not in virtual_members)


def filter_pipeline(
    resolution: Resolution,
    unit: UnitOfWork,
    install_options: InstallOptions,
) -> Resolution:
    """Drop virtual members, then apply the user's install scope."""
    filtered = apply_no_virtual_project(resolution, unit)
    return install_options.filter_resolution(filtered, unit, graph=resolution)
