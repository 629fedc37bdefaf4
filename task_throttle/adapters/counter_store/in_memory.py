"""In-memory counter store (development and tests).

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, so increments are
  linearizable across threads and coroutines of one process.
- Expiry is lazy: expired records are dropped when touched; a full sweep of
  expired records runs during increments at most once per purge interval.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from task_throttle.adapters.counter_store.base import AbstractCounterStore


@dataclass
class _CounterRecord:
    count: int
    expires_at: float | None = None


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store holding records in a process-local dict.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits. Use the Redis store for those deployments.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        purge_interval_seconds: float = 60.0,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Monotonic time source returning seconds.
            purge_interval_seconds: Minimum time between full sweeps of
                expired records.
        """
        self._clock = clock
        self._purge_interval = purge_interval_seconds
        self._last_purge = clock()
        self._lock = threading.RLock()
        self._records: dict[str, _CounterRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired_locked(self._clock())
            return len(self._records)

    def _live_record_locked(self, key: str, now: float) -> _CounterRecord | None:
        record = self._records.get(key)
        if record is None:
            return None
        if record.expires_at is not None and record.expires_at <= now:
            del self._records[key]
            return None
        return record

    def _purge_expired_locked(self, now: float) -> None:
        self._last_purge = now
        expired = [
            key
            for key, record in self._records.items()
            if record.expires_at is not None and record.expires_at <= now
        ]
        for key in expired:
            del self._records[key]

    async def increment(self, key: str) -> int:
        with self._lock:
            now = self._clock()
            if now - self._last_purge >= self._purge_interval:
                self._purge_expired_locked(now)
            record = self._live_record_locked(key, now)
            if record is None:
                record = _CounterRecord(count=0)
                self._records[key] = record
            record.count += 1
            return record.count

    async def expire_after(self, key: str, window_ms: int) -> None:
        with self._lock:
            now = self._clock()
            record = self._live_record_locked(key, now)
            if record is not None:
                record.expires_at = now + window_ms / 1000

    async def ttl_ms(self, key: str) -> int | None:
        with self._lock:
            now = self._clock()
            record = self._live_record_locked(key, now)
            if record is None or record.expires_at is None:
                return None
            return max(0, int(math.ceil((record.expires_at - now) * 1000)))

    async def ping(self) -> bool:
        return True
