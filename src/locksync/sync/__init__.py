"""Lockfile-to-runtime reconciliation pipeline.

The entry points live in ``locksync.sync.pipeline``; this package only
re-exports the value types so that installers can import them without
pulling in the orchestration.
"""

from .options import ExtrasSpecification, InstallOptions, Modifications, SelectionCriteria
from .resolution import DistKind, Resolution, ResolvedDist

__all__ = [
    "DistKind",
    "ExtrasSpecification",
    "InstallOptions",
    "Modifications",
    "Resolution",
    "ResolvedDist",
    "SelectionCriteria",
]
