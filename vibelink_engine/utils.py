"""
Utility Functions
=================

Common utilities used across the VibeLink engine.
"""

import json
import math
import time
import hashlib
import threading
from typing import Any, Dict, Hashable, Optional, Callable

# Zero-arg callable returning epoch milliseconds
Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def digest(data: Any) -> str:
    """Stable hex key for JSON-serializable data."""
    data_str = json.dumps(data, sort_keys=True, default=str)
    return hashlib.md5(data_str.encode()).hexdigest()


class TTLCache:
    """
    Simple in-memory cache with TTL support.

    Entries are scoped to the instance; nothing is shared between caches.
    """

    def __init__(self, ttl_ms: int, clock: Clock = now_ms):
        """
        Initialize cache.

        Args:
            ttl_ms: Default time-to-live in milliseconds
            clock: Source of the current time
        """
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, ttl_ms: Optional[int] = None) -> Optional[Any]:
        """Get value from cache, or None if missing or expired."""
        ttl = self.ttl_ms if ttl_ms is None else ttl_ms
        with self._lock:
            cached = self._entries.get(key)
            if cached is None:
                return None

            if self.clock() - cached['timestamp'] >= ttl:
                del self._entries[key]
                return None

            return cached['data']

    def set(self, key: str, data: Any, ttl_ms: Optional[int] = None) -> None:
        """Set value in cache, dropping any entries that have expired."""
        ttl = self.ttl_ms if ttl_ms is None else ttl_ms
        with self._lock:
            now = self.clock()
            expired = [k for k, v in self._entries.items() if now - v['timestamp'] >= ttl]
            for k in expired:
                del self._entries[k]

            self._entries[key] = {
                'timestamp': now,
                'data': data,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> int:
        """Clear all entries. Returns number of entries dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count


class KeyedLocks:
    """Registry handing out one lock per key."""

    def __init__(self):
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock
