"""Bounded, time-expiring memo of validated paths.

The cache maps the raw path string a client sent to the absolute path the
sandbox proved safe for it. It is a hint for the hot read/write paths: the
first validation of any candidate always runs the full sandbox algorithm.

Policy:
- FIFO eviction once ``max_size`` entries are stored (insertion order, not
  access order)
- every entry expires ``ttl_seconds`` after insertion; a single deferred
  sweeper timer removes expired entries, and ``get`` never returns an entry
  whose deadline has passed even if the sweeper has not run yet
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1000
DEFAULT_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    """A validated path and the moment it stops being trusted."""

    validated_path: str
    inserted_at: float
    expires_at: float


class PathValidationCache:
    """Thread-safe FIFO cache of path validation results with per-entry TTL.

    Example:
        >>> cache = PathValidationCache(max_size=2, ttl_seconds=30)
        >>> cache.set("notes.txt", "/srv/data/notes.txt")
        >>> cache.get("notes.txt")
        '/srv/data/notes.txt'
        >>> cache.close()
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries kept at once
            ttl_seconds: Lifetime of each entry, counted from insertion
            clock: Monotonic time source, injectable for tests
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._closed = False

    def get(self, path: str) -> str | None:
        """Return the validated path for ``path`` or None on miss/expiry."""
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[path]
                return None
            return entry.validated_path

    def set(self, path: str, validated_path: str) -> None:
        """Store a validation result, evicting the oldest entry when full."""
        with self._lock:
            # Re-insertion restarts both the FIFO position and the TTL.
            self._entries.pop(path, None)
            while len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Path cache full, evicted oldest entry: {evicted}")

            now = self._clock()
            self._entries[path] = CacheEntry(
                validated_path=validated_path,
                inserted_at=now,
                expires_at=now + self.ttl_seconds,
            )
            self._schedule_sweep_locked()

    def clear(self) -> None:
        """Remove every entry and stop the pending sweep."""
        with self._lock:
            self._entries.clear()
            self._cancel_timer_locked()

    def close(self) -> None:
        """Clear the cache and refuse to schedule further sweeps."""
        with self._lock:
            self._closed = True
            self._entries.clear()
            self._cancel_timer_locked()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.get(path) is not None

    def sweep_expired(self) -> int:
        """Drop every entry whose deadline has passed.

        Returns:
            Number of entries removed
        """
        with self._lock:
            return self._sweep_locked()

    def _sweep_locked(self) -> int:
        now = self._clock()
        removed = 0
        # Uniform TTL plus refresh-on-set keeps deadlines in insertion order.
        while self._entries:
            key, entry = next(iter(self._entries.items()))
            if entry.expires_at > now:
                break
            del self._entries[key]
            removed += 1
        return removed

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
            removed = self._sweep_locked()
            if removed:
                logger.debug(f"Path cache sweep removed {removed} expired entries")
            self._schedule_sweep_locked()

    def _schedule_sweep_locked(self) -> None:
        if self._closed or self._timer is not None or not self._entries:
            return
        first = next(iter(self._entries.values()))
        delay = max(0.0, first.expires_at - self._clock())
        self._timer = threading.Timer(delay, self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
