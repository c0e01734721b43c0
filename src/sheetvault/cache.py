# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Read cache for sheet collections.

One ``TTLCache`` instance lives for the duration of a session and is passed
explicitly to the repository. Entries expire ``ttl_seconds`` after they were
stored. Every write goes through ``clear()``: the whole cache is dropped,
not only the collection that was written, because partner balances and
other derived values depend on several collections at once.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


@dataclass
class _CacheEntry:
    data: Any
    stored_at: float
    ttl: float


class TTLCache:
    """
    Per-collection cache with a time-to-live.

    Safe to share between the caller and the background refresh thread:
    every operation holds a re-entrant lock.

    Parameters
    ----------
    ttl_seconds:
        Default lifetime of an entry.
    clock:
        Monotonic clock returning seconds. Injected by tests.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached data for ``key``, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Cache miss for %r", key)
                return None

            if self._clock() - entry.stored_at > entry.ttl:
                logger.debug("Cache entry %r expired", key)
                self._entries.pop(key, None)
                return None

            return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._entries[key] = _CacheEntry(
                data=data,
                stored_at=self._clock(),
                ttl=self.ttl_seconds if ttl is None else float(ttl),
            )

    def invalidate(self, key: str) -> None:
        """Drop a single collection."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every collection."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
