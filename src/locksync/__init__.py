"""locksync - reconcile a pinned lockfile with a target Python environment."""

__version__ = "0.1.0"
