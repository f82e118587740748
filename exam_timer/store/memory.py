"""
In-process timer store for tests and single-process development.
"""

from __future__ import annotations

import fnmatch
import time
from typing import Callable, Dict, List, Optional, Tuple

from exam_timer.connectivity import ConnectivityMonitor, StoreEvent
from exam_timer.logger import setup_logger
from exam_timer.store.base import TimerStore
from exam_timer.utils.exceptions import StoreUnavailable

logger = setup_logger(__name__)


class MemoryTimerStore(TimerStore):
    """
    Dict-backed timer store with wall-clock expiry.

    simulate_outage() / restore() mimic a dropped and re-established
    connection, including the connectivity events a real client emits.
    """

    def __init__(
        self,
        monitor: Optional[ConnectivityMonitor] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            monitor: Connectivity monitor to report to (optional); the
                store claims its single writer.
            clock: Wall-clock source in seconds, used for TTL expiry.
        """
        self.monitor = monitor
        self._notifier = monitor.writer() if monitor is not None else None
        self.clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._available = True

    async def connect(self) -> None:
        self._available = True
        self._notify(StoreEvent.CONNECT)

    async def close(self) -> None:
        self._notify(StoreEvent.DISCONNECT)

    def simulate_outage(self) -> None:
        self._available = False
        self._notify(StoreEvent.DISCONNECT)

    def restore(self) -> None:
        self._available = True
        self._notify(StoreEvent.CONNECT)

    # ------------------------------------------------------------------
    # TimerStore API
    # ------------------------------------------------------------------
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self._ensure_available()
        expires_at = self.clock() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = (value, expires_at)

    async def get(self, key: str) -> Optional[str]:
        self._ensure_available()
        self._evict_expired()
        entry = self._data.get(key)
        return entry[0] if entry else None

    async def delete(self, key: str) -> None:
        self._ensure_available()
        self._data.pop(key, None)

    async def scan_keys(self, pattern: str) -> List[str]:
        self._ensure_available()
        self._evict_expired()
        return [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]

    def ttl(self, key: str) -> Optional[float]:
        """Return seconds until the key expires (None if absent or persistent)."""
        entry = self._data.get(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - self.clock()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ensure_available(self) -> None:
        if not self._available:
            raise StoreUnavailable("Timer store is unavailable")

    def _evict_expired(self) -> None:
        now = self.clock()
        expired = [
            key
            for key, (_, expires_at) in self._data.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._data[key]
            logger.debug(f"Timer key {key} expired")

    def _notify(self, event: StoreEvent) -> None:
        if self._notifier is not None:
            self._notifier(event)
