"""Process-wide caches shared between locking and syncing.

One ``SharedState`` is created per command invocation and handed by
reference to every phase, so metadata fetched while locking is reused when
syncing and no remote artifact is fetched twice.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Sequence, Tuple, TypeVar

from .common.logging_utils import extra_context, is_debug_enabled

T = TypeVar("T")

logger = logging.getLogger(__name__)


class InFlight(Generic[T]):
    """At most one fetch per key; every requester sees the same outcome.

    Each fetch runs in its own task, so cancelling one requester never
    cancels the fetch other requesters are waiting on. Completed results (and
    failures) stay memoized for the lifetime of the map, which is the
    lifetime of one command invocation.
    """

    def __init__(self):
        self._tasks: Dict[Hashable, "asyncio.Future[T]"] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def done(self, key: Hashable) -> bool:
        """Return True once the fetch for ``key`` has completed or failed."""
        task = self._tasks.get(key)
        return task is not None and task.done()

    async def get_or_fetch(self, key: Hashable, fetch: Callable[[], Awaitable[T]]) -> T:
        """Return the result for ``key``, running ``fetch`` only for the first caller.

        Args:
            key: Canonical artifact identity, e.g. ``(source, version)``.
            fetch: Zero-argument coroutine function performing the fetch.

        Returns:
            The fetched value, shared by all callers for ``key``.
        """
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch())
            self._tasks[key] = task
            task.add_done_callback(functools.partial(self._forget_cancelled, key))
        elif is_debug_enabled(logger):
            logger.debug(
                "Awaiting in-flight fetch",
                extra=extra_context(event="in_flight_hit", component="state", target=str(key)),
            )
        # shield: a cancelled requester must not cancel the shared fetch
        return await asyncio.shield(task)

    def _forget_cancelled(self, key: Hashable, task: "asyncio.Future[T]") -> None:
        # A fetch that was itself cancelled is forgotten so a later caller can retry it.
        if task.cancelled() and self._tasks.get(key) is task:
            del self._tasks[key]


class IndexCache:
    """Distributions listed by each index or find-links location.

    Populated the first time a location is read, so a location listed while
    locking is not listed again when syncing.
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[Any, ...]] = {}
        self._lock = threading.Lock()

    def get(self, location: str) -> Optional[Tuple[Any, ...]]:
        with self._lock:
            return self._entries.get(location)

    def set(self, location: str, entries: Sequence[Any]) -> None:
        with self._lock:
            self._entries[location] = tuple(entries)

    def __contains__(self, location: str) -> bool:
        with self._lock:
            return location in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class GitCache:
    """Precise commits for git sources, keyed by repository URL and reference."""

    def __init__(self):
        self._commits: Dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve(self, url: str, reference: str = "HEAD") -> Optional[str]:
        with self._lock:
            return self._commits.get(f"{url}@{reference}")

    def insert(self, url: str, reference: str, commit: str) -> None:
        with self._lock:
            self._commits[f"{url}@{reference}"] = commit

    def __len__(self) -> int:
        return len(self._commits)


@dataclass
class SharedState:
    """Caches living exactly as long as one command invocation."""
    index: IndexCache = field(default_factory=IndexCache)
    git: GitCache = field(default_factory=GitCache)
    in_flight: InFlight = field(default_factory=InFlight)
