"""Thread-safe in-memory read-through cache with a freshness window.

Design decisions
────────────────
• **OrderedDict** for O(1) LRU eviction and promotion.
• **Size tracking** via ``json.dumps`` byte length, bounded by ``max_bytes``.
• **Freshness window** (``ttl_seconds``): an entry older than the window is
  treated as missing and dropped on the next read.
• **threading.Lock** guards the store; loaders run *outside* the lock, so
  two requests may race to fill the same key.  Last write wins, which is
  fine for read-mostly catalog and corpus data.
• Purely ephemeral: data is lost on process restart.

Usage in StoreClient
────────────────────
>>> cache = TTLCache(ttl_seconds=600)
>>> cache.get_or_load("catalog", lambda: client._get_items(url))
[...]
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 20 * 1024 * 1024
DEFAULT_TTL_SECONDS = 600.0

T = TypeVar("T")


class TTLCache:
    """LRU cache bounded by estimated byte size, with per-entry expiry."""

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_BYTES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_bytes = max_bytes
        self._ttl = ttl_seconds
        self._clock = clock
        self._current_bytes = 0
        # key → (value, estimated_size_bytes, expires_at)
        self._store: OrderedDict[str, tuple[Any, int, float]] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def _estimate_bytes(value: Any) -> int:
        try:
            return len(json.dumps(value, default=str).encode("utf-8"))
        except (TypeError, ValueError, OverflowError):
            return len(str(value).encode("utf-8"))

    def _drop(self, key: str) -> None:
        _, size, _ = self._store.pop(key)
        self._current_bytes -= size

    # ── Core operations ──────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the fresh cached value (promoting it to MRU) or ``None``."""
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return None
            value, _, expires_at = item
            if self._clock() >= expires_at:
                self._drop(key)
                logger.debug("Cache: %s expired", key)
                return None
            self._store.move_to_end(key)
            return value

    def put(self, key: str, value: Any) -> None:
        """Insert or overwrite *key*, evicting LRU entries if needed."""
        size = self._estimate_bytes(value)
        if size > self._max_bytes:
            logger.debug(
                "Cache: skipping key %s (size %d > max %d)",
                key, size, self._max_bytes,
            )
            return

        with self._lock:
            if key in self._store:
                self._drop(key)
            while self._current_bytes + size > self._max_bytes and self._store:
                evicted_key, (_, evicted_size, _) = self._store.popitem(last=False)
                self._current_bytes -= evicted_size
                logger.debug("Cache: evicted %s (%d bytes)", evicted_key, evicted_size)
            self._store[key] = (value, size, self._clock() + self._ttl)
            self._current_bytes += size

    def get_or_load(self, key: str, loader: Callable[[], T]) -> T:
        """Read-through: return the cached value or call *loader* and cache it."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.put(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._current_bytes = 0

    # ── Introspection ────────────────────────────────────────────────

    @property
    def current_bytes(self) -> int:
        return self._current_bytes

    @property
    def entry_count(self) -> int:
        return len(self._store)
