"""Unit tests for the Redis counter store adapter (client mocked).

Command semantics against an in-process server live in
test_redis_store_fakeredis.py.
"""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from task_throttle.adapters.counter_store.redis_store import RedisCounterStore
from task_throttle.core.errors import StoreUnavailableError


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def store(client: AsyncMock) -> RedisCounterStore:
    return RedisCounterStore(client)


@pytest.mark.asyncio
async def test_increment_uses_single_incr(store: RedisCounterStore, client: AsyncMock) -> None:
    client.incr.return_value = 4

    assert await store.increment("rate-limit:abc") == 4
    client.incr.assert_awaited_once_with("rate-limit:abc")
    client.get.assert_not_called()
    client.set.assert_not_called()


@pytest.mark.asyncio
async def test_expire_after_uses_pexpire_in_milliseconds(
    store: RedisCounterStore, client: AsyncMock
) -> None:
    await store.expire_after("rate-limit:abc", 60_000)

    client.pexpire.assert_awaited_once_with("rate-limit:abc", 60_000)


@pytest.mark.parametrize(("pttl", "expected"), [(1500, 1500), (0, 0), (-1, None), (-2, None)])
@pytest.mark.asyncio
async def test_ttl_maps_pttl_sentinels(
    store: RedisCounterStore, client: AsyncMock, pttl: int, expected: int | None
) -> None:
    client.pttl.return_value = pttl

    assert await store.ttl_ms("k") == expected


@pytest.mark.asyncio
async def test_ping(store: RedisCounterStore, client: AsyncMock) -> None:
    client.ping.return_value = True

    assert await store.ping() is True


@pytest.mark.parametrize(
    "error",
    [
        RedisConnectionError("Connection refused"),
        RedisTimeoutError("Timeout reading from socket"),
        ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value"),
    ],
)
@pytest.mark.asyncio
async def test_redis_errors_become_store_unavailable(
    store: RedisCounterStore, client: AsyncMock, error: Exception
) -> None:
    client.incr.side_effect = error

    with pytest.raises(StoreUnavailableError) as exc_info:
        await store.increment("k")

    assert exc_info.value.code == "store_unavailable"
    assert exc_info.value.details == {"backend": "redis", "operation": "incr"}
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_pexpire_failure_is_not_retried(store: RedisCounterStore, client: AsyncMock) -> None:
    client.pexpire.side_effect = RedisConnectionError("down")

    with pytest.raises(StoreUnavailableError):
        await store.expire_after("k", 1000)

    assert client.pexpire.await_count == 1


@pytest.mark.asyncio
async def test_ping_failure_raises_store_unavailable(
    store: RedisCounterStore, client: AsyncMock
) -> None:
    client.ping.side_effect = RedisConnectionError("down")

    with pytest.raises(StoreUnavailableError):
        await store.ping()


@pytest.mark.asyncio
async def test_close_closes_client(store: RedisCounterStore, client: AsyncMock) -> None:
    await store.close()

    client.aclose.assert_awaited_once()


def test_from_url_configures_timeouts() -> None:
    with patch("task_throttle.adapters.counter_store.redis_store.Redis.from_url") as from_url:
        RedisCounterStore.from_url("redis://cache:6379/1", socket_timeout=0.5)

    from_url.assert_called_once_with(
        "redis://cache:6379/1",
        socket_timeout=0.5,
        socket_connect_timeout=0.5,
        decode_responses=True,
    )
