"""Thread-safe in-memory cache with per-entry time-to-live."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    expires_at: float | None  # None = never expires

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class TTLCache:
    """Expiring key -> value store shared by the request path.

    Expiry is checked on every get(), so correctness never depends on the
    background sweep; the sweep only reclaims space for keys nobody reads.
    Entries are replaced, never mutated in place.
    """

    def __init__(
        self,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._task: asyncio.Task | None = None

    def get(self, key: str) -> Any | None:
        """Return the value for key, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float = 60) -> None:
        """Store value under key. ttl_seconds <= 0 means it never expires."""
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cache sweep evicted %d entries", len(expired))
        return len(expired)

    # --- Background sweep lifecycle ---

    async def start(self) -> None:
        """Start the periodic sweep task. No-op if already running."""
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._sweep_loop(), name="cache-sweeper")
        logger.info("Cache sweeper started: %.1fs interval", self._sweep_interval)

    async def stop(self) -> None:
        """Stop the sweep task. Safe to call multiple times."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Cache sweeper stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Cache sweep failed")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        """Raw presence check; does not consult expiry."""
        with self._lock:
            return key in self._entries
