"""
Background worker that auto-submits attempts whose timer has run out.

Every poll cycle scans the timer store for "timer:*" keys and finalizes each
expired attempt before deleting its key. Finalization is idempotent, so a key
that survives a crash (or is seen by two workers) is harmless on retry.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from exam_timer.connectivity import ConnectivityMonitor
from exam_timer.logger import setup_logger
from exam_timer.store.base import TimerStore
from exam_timer.timer import TIMER_SCAN_PATTERN, TimerRecord
from exam_timer.utils.exceptions import (
    AttemptNotFound,
    CorruptTimerRecord,
    PersistenceError,
    StoreUnavailable,
    StudentMismatch,
)
from exam_timer.utils.helpers import now_millis

logger = setup_logger(__name__)

AutoSubmit = Callable[[str, str], Awaitable[Any]]


class WorkerState(str, Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


class KeyOutcome(str, Enum):
    SUBMITTED = "submitted"
    SKIPPED = "skipped"
    CORRUPT = "corrupt"
    FAILED = "failed"


@dataclass
class CycleReport:
    """Counters for one poll cycle."""

    ran: bool = False
    scanned: int = 0
    submitted: int = 0
    skipped: int = 0
    corrupt: int = 0
    failed: int = 0

    def record(self, outcome: KeyOutcome) -> None:
        if outcome is KeyOutcome.SUBMITTED:
            self.submitted += 1
        elif outcome is KeyOutcome.CORRUPT:
            self.corrupt += 1
        elif outcome is KeyOutcome.FAILED:
            self.failed += 1
        else:
            self.skipped += 1


class ExamTimerWorker:
    """
    Polls the timer store on a fixed period and auto-submits expired attempts.
    """

    def __init__(
        self,
        store: TimerStore,
        monitor: ConnectivityMonitor,
        auto_submit: AutoSubmit,
        interval: float = 10.0,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        """
        Args:
            store: Timer store to scan.
            monitor: Connectivity monitor gating each cycle.
            auto_submit: Coroutine function (attempt_id, student_id) that
                finalizes an attempt; must be idempotent.
            interval: Seconds between cycles (>= 1).
            clock: Wall-clock source in epoch milliseconds.
        """
        if interval < 1:
            raise ValueError("Poll interval must be at least 1 second")

        self.store = store
        self.monitor = monitor
        self.auto_submit = auto_submit
        self.interval = interval
        self.clock = clock

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def state(self) -> WorkerState:
        if self._task is not None and not self._task.done():
            return WorkerState.RUNNING
        return WorkerState.STOPPED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Schedule the polling loop on the running event loop."""
        if self.state is WorkerState.RUNNING:
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="exam-timer-worker")
        logger.info(f"⏱️  Exam timer worker started (every {self.interval:g}s)")

    async def stop(self) -> None:
        """
        Stop scheduling cycles and wait for an in-flight cycle to finish.

        Safe to call more than once.
        """
        task = self._task
        if task is None:
            return

        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await task
        except Exception as e:
            logger.error(f"🔥 Exam timer worker loop crashed: {e}", exc_info=True)
        finally:
            self._task = None
            self._stop_event = None
        logger.info("🛑 Exam timer worker stopped")

    async def _run(self) -> None:
        stop_event = self._stop_event
        while not stop_event.is_set():
            await self.run_cycle()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------
    async def run_cycle(self) -> CycleReport:
        """
        Run one poll cycle. Never raises.

        Returns:
            CycleReport with per-outcome counters.
        """
        report = CycleReport()
        if not self.monitor.connected:
            logger.debug("Timer store disconnected, skipping poll cycle")
            return report

        report.ran = True
        try:
            keys = await self.store.scan_keys(TIMER_SCAN_PATTERN)
        except StoreUnavailable as e:
            logger.warning(f"⚠️ Timer scan failed: {e}")
            return report
        except Exception as e:
            logger.error(f"🔥 Exam timer worker error: {e}", exc_info=True)
            return report

        report.scanned = len(keys)
        for key in keys:
            try:
                outcome = await self._process_key(key)
            except Exception as e:
                logger.error(f"🔥 Unexpected error on timer {key}: {e}", exc_info=True)
                outcome = KeyOutcome.FAILED
            report.record(outcome)

        if report.submitted or report.corrupt or report.failed:
            logger.info(
                f"🏁 Poll cycle: scanned={report.scanned} submitted={report.submitted} "
                f"corrupt={report.corrupt} failed={report.failed}"
            )
        return report

    async def _process_key(self, key: str) -> KeyOutcome:
        try:
            raw = await self.store.get(key)
        except StoreUnavailable as e:
            logger.warning(f"⚠️ Could not read timer {key}: {e}")
            return KeyOutcome.FAILED

        if raw is None:
            # Removed by a manual submit or another worker since the scan
            return KeyOutcome.SKIPPED

        try:
            record = TimerRecord.decode(raw)
        except CorruptTimerRecord as e:
            logger.error(f"❌ Corrupt timer {key} ({e}), deleting")
            await self._delete(key)
            return KeyOutcome.CORRUPT

        if not record.is_expired(self.clock()):
            return KeyOutcome.SKIPPED

        try:
            await self.auto_submit(record.attempt_id, record.student_id)
        except (AttemptNotFound, StudentMismatch) as e:
            # Left in place for inspection; the store TTL removes it eventually
            logger.error(f"❌ Timer {key} cannot be honoured: {e}")
            return KeyOutcome.FAILED
        except (PersistenceError, StoreUnavailable) as e:
            logger.warning(f"⚠️ Auto-submit of {record.attempt_id} failed, will retry: {e}")
            return KeyOutcome.FAILED

        await self._delete(key)
        return KeyOutcome.SUBMITTED

    async def _delete(self, key: str) -> None:
        try:
            await self.store.delete(key)
        except StoreUnavailable as e:
            logger.warning(f"⚠️ Could not delete timer {key}, will retry next cycle: {e}")
