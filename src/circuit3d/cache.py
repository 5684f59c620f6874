"""Bounded memoisation with in-flight request coalescing.

Concurrent callers asking for the same key share one computation: the
first caller installs a :class:`concurrent.futures.Future` and computes
outside the lock, later callers wait on that future.  Failed
computations are not cached, so a later call retries.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from typing import Callable, Generic, Hashable, Optional, TypeVar

from circuit3d.config import cache_size_from_env

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LRUCache(Generic[T]):
    """Thread-safe LRU map from hashable keys to computed values."""

    def __init__(self, max_entries: Optional[int] = None, name: str = "cache"):
        self.max_entries = max_entries if max_entries is not None else cache_size_from_env()
        if self.max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.name = name
        self._entries: "OrderedDict[Hashable, Future]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Return the value for ``key``, computing it at most once at a time."""

        with self._lock:
            future = self._entries.get(key)
            if future is not None:
                self._entries.move_to_end(key)
                self.hits += 1
                owner = False
            else:
                future = Future()
                self._entries[key] = future
                self.misses += 1
                owner = True
                self._evict()

        if not owner:
            logger.debug("%s hit: %s", self.name, key)
            return future.result()

        try:
            value = compute()
        except BaseException as exc:
            with self._lock:
                if self._entries.get(key) is future:
                    del self._entries[key]
            future.set_exception(exc)
            raise
        future.set_result(value)
        return value

    def _evict(self) -> None:
        # only finished entries are evicted; in-flight ones have waiters
        while len(self._entries) > self.max_entries:
            for key, future in self._entries.items():
                if future.done():
                    del self._entries[key]
                    logger.debug("%s evicted: %s", self.name, key)
                    break
            else:
                return


__all__ = ["LRUCache"]
