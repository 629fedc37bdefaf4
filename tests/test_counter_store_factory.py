"""Tests for counter store backend selection."""

import pytest

from task_throttle.adapters.counter_store.factory import create_counter_store
from task_throttle.adapters.counter_store.in_memory import InMemoryCounterStore
from task_throttle.adapters.counter_store.redis_store import RedisCounterStore
from task_throttle.core.config import RateLimitSettings
from task_throttle.core.errors import ValidationAppError


def test_memory_backend() -> None:
    store = create_counter_store(RateLimitSettings(store_backend="memory"))

    assert isinstance(store, InMemoryCounterStore)


def test_redis_backend_is_case_insensitive() -> None:
    # Redis.from_url connects lazily, so no server is needed here.
    store = create_counter_store(
        RateLimitSettings(store_backend="Redis", redis_url="redis://localhost:6390/0")
    )

    assert isinstance(store, RedisCounterStore)


def test_redis_backend_requires_url() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        create_counter_store(RateLimitSettings(store_backend="redis", redis_url=""))

    assert exc_info.value.code == "counter_store_missing_url"


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        create_counter_store(RateLimitSettings(store_backend="memcached"))

    assert exc_info.value.code == "counter_store_unknown_backend"
    assert "memcached" in exc_info.value.message
