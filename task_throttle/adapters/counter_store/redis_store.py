"""Redis-backed counter store.

Each primitive is a single Redis command, so atomicity comes from Redis
itself: ``INCR`` is linearizable across every client of the server, and
``PEXPIRE`` / ``PTTL`` work in milliseconds like the rate limit windows.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from task_throttle.adapters.counter_store.base import AbstractCounterStore
from task_throttle.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class RedisCounterStore(AbstractCounterStore):
    """Counter store on top of an asyncio Redis client."""

    def __init__(self, client: Redis) -> None:
        """Initialize the store with an existing client.

        Args:
            client: redis.asyncio client; the store owns it from now on and
                closes it in ``close()``.
        """
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 2.0) -> "RedisCounterStore":
        """Create a store from a Redis URL.

        The client connects lazily, on the first command.

        Args:
            url: Redis URL (redis://, rediss:// or unix://).
            socket_timeout: Connect and read timeout in seconds.
        """

        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    async def _call(
        self, operation: str, command: Callable[..., Awaitable[Any]], *args: Any
    ) -> Any:
        try:
            return await command(*args)
        except RedisError as exc:
            logger.error(
                "counter_store.error",
                extra={
                    "backend": "redis",
                    "operation": operation,
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Rate limit store is unavailable",
                details={"backend": "redis", "operation": operation},
            ) from exc

    async def increment(self, key: str) -> int:
        return int(await self._call("incr", self._client.incr, key))

    async def expire_after(self, key: str, window_ms: int) -> None:
        await self._call("pexpire", self._client.pexpire, key, window_ms)

    async def ttl_ms(self, key: str) -> int | None:
        # PTTL: -2 when the key is missing, -1 when it has no expiry.
        ttl = int(await self._call("pttl", self._client.pttl, key))
        if ttl < 0:
            return None
        return ttl

    async def ping(self) -> bool:
        return bool(await self._call("ping", self._client.ping))

    async def close(self) -> None:
        await self._client.aclose()
