from __future__ import annotations

from exam_timer.config import Settings
from exam_timer.connectivity import ConnectivityMonitor
from exam_timer.store.base import TimerStore
from exam_timer.store.memory import MemoryTimerStore
from exam_timer.store.redis_store import RedisTimerStore

__all__ = ["TimerStore", "MemoryTimerStore", "RedisTimerStore", "build_timer_store"]


def build_timer_store(settings: Settings, monitor: ConnectivityMonitor) -> TimerStore:
    """Create the timer store backend selected in settings."""
    if settings.timer_store_backend == "MEMORY":
        return MemoryTimerStore(monitor)
    return RedisTimerStore(
        url=settings.redis_url,
        monitor=monitor,
        timeout=settings.store_timeout,
        probe_interval=settings.store_probe_interval,
    )
