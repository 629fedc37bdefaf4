"""Factory pattern for creating counter store instances."""

from task_throttle.adapters.counter_store.base import AbstractCounterStore
from task_throttle.adapters.counter_store.in_memory import InMemoryCounterStore
from task_throttle.adapters.counter_store.redis_store import RedisCounterStore
from task_throttle.core.config import RateLimitSettings
from task_throttle.core.errors import ValidationAppError


def create_counter_store(rate_limit_settings: RateLimitSettings) -> AbstractCounterStore:
    """Factory function to instantiate the configured counter store.

    Args:
        rate_limit_settings: Rate limit section of the application settings.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    backend = rate_limit_settings.store_backend.lower()

    if backend == "redis":
        if not rate_limit_settings.redis_url:
            raise ValidationAppError(
                code="counter_store_missing_url",
                message="Redis counter store requires RATE_LIMIT_REDIS_URL",
            )
        return RedisCounterStore.from_url(
            rate_limit_settings.redis_url,
            socket_timeout=rate_limit_settings.redis_socket_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryCounterStore()

    raise ValidationAppError(
        code="counter_store_unknown_backend",
        message=(
            f"Unknown counter store backend: '{backend}'. Supported backends: redis, memory"
        ),
    )
