"""
Timer store connectivity tracking.

The store client reports connect/disconnect/error events through the single
notifier handed out by writer(); the scheduler only reads the resulting flag.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List, Optional

from exam_timer.logger import setup_logger

logger = setup_logger(__name__)

Listener = Callable[[bool], None]
Notifier = Callable[..., None]


class StoreEvent(str, Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ERROR = "error"


class ConnectivityMonitor:
    """
    Owns the process-wide "timer store is reachable" flag.

    Only CONNECT sets the flag; DISCONNECT and ERROR clear it. Exactly one
    writer (the store client) may report events.
    """

    def __init__(self, connected: bool = False) -> None:
        self._connected = connected
        self._listeners: List[Listener] = []
        self._writer_claimed = False

    @property
    def connected(self) -> bool:
        return self._connected

    def writer(self) -> Notifier:
        """
        Claim the notifier used to report store events.

        Returns:
            Callable (event, error=None) that updates the flag.

        Raises:
            RuntimeError if a writer was already claimed.
        """
        if self._writer_claimed:
            raise RuntimeError("Connectivity monitor already has a writer")
        self._writer_claimed = True

        def _notify(event: StoreEvent, error: Optional[BaseException] = None) -> None:
            self._record(event, error)

        return _notify

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked with the new flag on every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _record(self, event: StoreEvent, error: Optional[BaseException]) -> None:
        if event is StoreEvent.CONNECT:
            self._set(True)
            return

        if event is StoreEvent.ERROR:
            logger.error(f"❌ Timer store error: {error}")
        self._set(False)

    def _set(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        if connected:
            logger.info("✅ Timer store connected")
        else:
            logger.warning("⚠️ Timer store disconnected, timer polling paused")

        for listener in list(self._listeners):
            try:
                listener(connected)
            except Exception as e:
                logger.error(f"❌ Connectivity listener failed: {e}", exc_info=True)
