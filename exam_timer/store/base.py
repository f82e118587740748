"""
Timer store contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional


class TimerStore(ABC):
    """
    Key/value store holding one timer payload per ongoing timed attempt.

    Every operation raises StoreUnavailable when the backend cannot be reached.
    """

    async def connect(self) -> None:
        """Open the connection and start reporting connectivity."""

    async def close(self) -> None:
        """Release the connection."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Upsert a value that expires after ttl_seconds."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Deleting an absent key is not an error."""

    @abstractmethod
    async def scan_keys(self, pattern: str) -> List[str]:
        """
        List keys matching a glob pattern.

        May return a partial or empty list under load.
        """
