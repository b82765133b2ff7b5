"""Lockfile model and reader."""

from .io import parse_lock, read_lock
from .model import Artifact, Dependency, Lock, LockedPackage, Source

__all__ = [
    "Artifact",
    "Dependency",
    "Lock",
    "LockedPackage",
    "Source",
    "parse_lock",
    "read_lock",
]
