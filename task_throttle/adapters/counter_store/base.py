"""Counter store interface.

The rate limiter should depend on this abstraction (not the concrete
implementation) so the storage backend can be swapped with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Interface for shared, expiring integer counters.

    Implementations must make ``increment`` linearizable across every caller
    sharing the store, including callers in other processes or hosts: no
    increment is lost and exactly one caller observes the value 1 per key
    lifetime.

    Every method raises ``StoreUnavailableError`` when the backend cannot be
    reached or fails mid-operation. Nothing is retried.
    """

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically increment the counter at key, creating it at 1.

        Args:
            key: Bucket key.

        Returns:
            The counter value after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    async def expire_after(self, key: str, window_ms: int) -> None:
        """Set a time-to-live on key.

        Args:
            key: Bucket key.
            window_ms: Time-to-live in milliseconds.
        """
        raise NotImplementedError

    @abstractmethod
    async def ttl_ms(self, key: str) -> int | None:
        """Return the remaining time-to-live of key in milliseconds.

        Returns:
            Remaining milliseconds, or None when the key is missing or has no
            expiry set.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Check the backend is reachable."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources (connections, pools)."""
        return None
