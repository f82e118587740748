"""
Redis-backed timer store.

Connectivity is published to a ConnectivityMonitor: a background PING probe
reports connect/disconnect, and any connection-level failure of a regular call
reports an error.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from exam_timer.connectivity import ConnectivityMonitor, StoreEvent
from exam_timer.logger import setup_logger
from exam_timer.store.base import TimerStore
from exam_timer.utils.exceptions import StoreUnavailable

logger = setup_logger(__name__)

SCAN_BATCH_SIZE = 500


class RedisTimerStore(TimerStore):
    """
    Timer store on top of the redis-py asyncio client.
    """

    def __init__(
        self,
        url: str,
        monitor: ConnectivityMonitor,
        timeout: float = 5.0,
        probe_interval: float = 5.0,
        client: Optional[redis.Redis] = None,
    ) -> None:
        """
        Args:
            url: Redis connection URL.
            monitor: Connectivity monitor; the store claims its single writer.
            timeout: Socket connect/read timeout per call, in seconds.
            probe_interval: Seconds between connectivity probes.
            client: Pre-built client (mainly for tests).
        """
        self.monitor = monitor
        self._notify = monitor.writer()
        self.probe_interval = probe_interval
        self._client = client or redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            # 50ms, 100ms, 200ms ... capped at 2s
            retry=Retry(ExponentialBackoff(cap=2.0, base=0.05), retries=3),
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
        )
        self._probe_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        """Probe the server once and start the background connectivity probe."""
        if self._probe_task is not None:
            return

        logger.info("🔌 Connecting to Redis timer store...")
        await self._probe()
        if not self.monitor.connected:
            logger.warning("⚠️ Redis not reachable yet, waiting for reconnect")
        self._probe_task = asyncio.create_task(self._probe_loop())

    async def close(self) -> None:
        if self._probe_task is not None:
            self._probe_task.cancel()
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass
            self._probe_task = None

        await self._client.aclose()
        self._notify(StoreEvent.DISCONNECT)
        logger.info("🔒 Redis timer store closed")

    # ------------------------------------------------------------------
    # TimerStore API
    # ------------------------------------------------------------------
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds > 0:
            await self._call(self._client.set, key, value, ex=ttl_seconds)
        else:
            await self._call(self._client.set, key, value)

    async def get(self, key: str) -> Optional[str]:
        return await self._call(self._client.get, key)

    async def delete(self, key: str) -> None:
        await self._call(self._client.delete, key)

    async def scan_keys(self, pattern: str) -> List[str]:
        async def _scan() -> List[str]:
            return [
                key
                async for key in self._client.scan_iter(
                    match=pattern, count=SCAN_BATCH_SIZE
                )
            ]

        return await self._call(_scan)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _call(self, operation: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        try:
            return await operation(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as e:
            self._notify(StoreEvent.ERROR, e)
            raise StoreUnavailable(f"Redis unreachable: {e}")
        except RedisError as e:
            raise StoreUnavailable(f"Redis call failed: {e}")

    async def _probe(self) -> None:
        try:
            await self._client.ping()
        except RedisError as e:
            if self.monitor.connected:
                self._notify(StoreEvent.ERROR, e)
            else:
                logger.debug(f"Redis still unreachable: {e}")
            return

        if not self.monitor.connected:
            self._notify(StoreEvent.CONNECT)

    async def _probe_loop(self) -> None:
        while True:
            await asyncio.sleep(self.probe_interval)
            await self._probe()
