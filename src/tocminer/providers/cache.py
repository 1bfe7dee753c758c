"""In-memory TTL cache for aggregator winners."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60


@dataclass(slots=True)
class _Entry(Generic[V]):
    value: V
    stored_at: float


class TTLCache(Generic[V]):
    """
    Key/value cache whose entries expire ``ttl_seconds`` after being stored.

    Expiry is lazy: an expired entry is dropped when it is next read.
    Writes serialize on an ``asyncio.Lock``; reads do not await.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry[V]] = {}
        self._lock = asyncio.Lock()

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return entry.value

    async def set(self, key: str, value: V) -> None:
        async with self._lock:
            self._entries[key] = _Entry(value, self._clock())

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
