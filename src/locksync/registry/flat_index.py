"""Discovery of ``--find-links`` artifacts (local directories or HTML pages).

Remote pages are fetched with the shared HTTP helpers in a worker thread and
deduplicated through the invocation's in-flight map, so locking and syncing
never download the same page twice.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from dataclasses import dataclass
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from packaging.tags import Tag
from packaging.utils import (
    InvalidSdistFilename,
    InvalidWheelFilename,
    parse_sdist_filename,
    parse_wheel_filename,
)
from packaging.version import InvalidVersion

from ..common.http_client import fetch_text
from ..common.logging_utils import Timer, extra_context, safe_url
from ..constants import Constants
from ..state import SharedState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlatIndexEntry:
    """A wheel or sdist found in a find-links location."""
    filename: str
    url: str
    name: str
    version: str
    is_wheel: bool
    hash: Optional[str] = None
    tags: frozenset = frozenset()


class _LinkCollector(HTMLParser):
    """Collect ``href`` targets of anchor tags."""

    def __init__(self):
        super().__init__()
        self.links: List[str] = []

    def handle_starttag(self, tag, attrs):
        if tag != "a":
            return
        for key, value in attrs:
            if key == "href" and value:
                self.links.append(value)


def parse_entry(filename: str, url: str) -> Optional[FlatIndexEntry]:
    """Build an entry from a distribution filename; None if it is not one."""
    digest = None
    fragment = urllib.parse.urlsplit(url).fragment
    if "=" in fragment:
        algorithm, value = fragment.split("=", 1)
        digest = f"{algorithm}:{value}"
    if filename.endswith(".whl"):
        try:
            name, version, _, tags = parse_wheel_filename(filename)
        except (InvalidWheelFilename, InvalidVersion):
            return None
        return FlatIndexEntry(filename, url, name, str(version), True, digest, frozenset(tags))
    if any(filename.endswith(suffix) for suffix in Constants.SDIST_SUFFIXES):
        try:
            name, version = parse_sdist_filename(filename)
        except (InvalidSdistFilename, InvalidVersion):
            return None
        return FlatIndexEntry(filename, url, name, str(version), False, digest)
    return None


def _list_directory(directory: Path) -> List[FlatIndexEntry]:
    entries = []
    for path in sorted(directory.iterdir()):
        if path.is_file():
            entry = parse_entry(path.name, path.resolve().as_uri())
            if entry is not None:
                entries.append(entry)
    return entries


def _parse_page(base_url: str, html: str) -> List[FlatIndexEntry]:
    collector = _LinkCollector()
    collector.feed(html)
    entries = []
    for href in collector.links:
        url = urllib.parse.urljoin(base_url, href)
        filename = urllib.parse.unquote(urllib.parse.urlsplit(url).path.rsplit("/", 1)[-1])
        entry = parse_entry(filename, url)
        if entry is not None:
            entries.append(entry)
    return entries


class FlatIndexClient:
    """Fetch entries from find-links locations."""

    def __init__(self, state: SharedState):
        self._state = state

    async def fetch(self, locations: Iterable[str]) -> List[FlatIndexEntry]:
        """Collect entries from every location, in order."""
        results = await asyncio.gather(*(self._fetch_one(location) for location in locations))
        return [entry for entries in results for entry in entries]

    async def _fetch_one(self, location: str) -> List[FlatIndexEntry]:
        cached = self._state.index.get(location)
        if cached is not None:
            logger.debug("Using cached listing for %s", safe_url(location))
            return list(cached)

        parts = urllib.parse.urlsplit(location)
        if parts.scheme in ("http", "https"):
            entries = await self._state.in_flight.get_or_fetch(
                ("find-links", location), lambda: self._fetch_remote(location)
            )
        else:
            directory = Path(urllib.parse.unquote(parts.path)) if parts.scheme == "file" else Path(location)
            if not directory.is_dir():
                logger.warning("Find-links location not found: %s", location)
                return []
            entries = _list_directory(directory)
        self._state.index.set(location, entries)
        return list(entries)

    async def _fetch_remote(self, url: str) -> List[FlatIndexEntry]:
        with Timer() as t:
            html = await asyncio.to_thread(fetch_text, url, context="find-links")
            entries = _parse_page(url, html)
        logger.info(
            "Found %d distributions at %s",
            len(entries),
            safe_url(url),
            extra=extra_context(
                event="find_links_fetched",
                component="flat_index",
                target=safe_url(url),
                duration_ms=t.duration_ms(),
            ),
        )
        return entries


class FlatIndex:
    """Find-links entries usable on the runtime, grouped by package name."""

    def __init__(self, entries: Dict[str, Tuple[FlatIndexEntry, ...]]):
        self._entries = entries

    @classmethod
    def from_entries(
        cls,
        entries: Sequence[FlatIndexEntry],
        tags: Sequence[Tag],
        hasher,
    ) -> "FlatIndex":
        """Keep sdists and tag-compatible wheels whose hash (if any) matches the lock."""
        supported = set(tags)
        grouped: Dict[str, List[FlatIndexEntry]] = {}
        for entry in entries:
            if entry.is_wheel and not entry.tags & supported:
                continue
            if entry.hash is not None and not hasher.allows(entry.name, entry.hash):
                logger.debug("Skipping %s: hash does not match the lockfile", entry.filename)
                continue
            grouped.setdefault(entry.name, []).append(entry)
        return cls({name: tuple(items) for name, items in grouped.items()})

    def get(self, name: str) -> Tuple[FlatIndexEntry, ...]:
        return self._entries.get(name, ())

    def __len__(self) -> int:
        return sum(len(items) for items in self._entries.values())
