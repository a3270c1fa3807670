"""
TTL cache for paginated contact query results.

Entries are keyed by the full query tuple (page, page size, sort field,
sort order, search term) and expire after a fixed duration. The cache is
invalidated wholesale on mutations because a single change can shift the
contents of any page.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# Default time-to-live for cached pages
DEFAULT_CACHE_DURATION = 5 * 60.0  # seconds

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached query result and the clock reading when it was stored."""

    key: str
    data: Any
    timestamp: float


class QueryCache:
    """
    Memoizes query results for ``duration`` seconds.

    Attributes:
        duration: Maximum entry age in seconds
        clock: Zero-argument callable returning the current time in seconds

    Usage:
        cache = QueryCache()
        key = QueryCache.key(1, 10, "name", "asc", "")
        cache.set(key, page)
        cache.get(key)  # page, or None once expired
    """

    def __init__(
        self,
        duration: float = DEFAULT_CACHE_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        if duration < 0:
            raise ValueError(f"duration must be >= 0, got {duration}")
        self.duration = duration
        self.clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @staticmethod
    def key(
        page: int, page_size: int, sort_field: str, sort_order: str, search: str
    ) -> str:
        """Build the composite key for a query tuple."""
        return f"{page}-{page_size}-{sort_field}-{sort_order}-{search}"

    @staticmethod
    def record_key(record_id: str) -> str:
        """Build the key used for single-record lookups."""
        return f"contact-{record_id}"

    def set(self, key: str, data: Any) -> None:
        self._entries[key] = CacheEntry(key=key, data=data, timestamp=self.clock())
        self._entries.move_to_end(key)

    def get(self, key: str) -> Any | None:
        """
        Return cached data, or None when absent or expired.

        Expired entries are evicted on read.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self.clock() - entry.timestamp > self.duration:
            logger.debug(f"Cache entry expired: {key}")
            del self._entries[key]
            return None

        return entry.data

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        if self._entries:
            logger.debug(f"Clearing {len(self._entries)} cache entries")
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
