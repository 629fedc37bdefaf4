"""Fixed-window rate limit decisions backed by a shared counter store.

Per request the service resolves the route policy, derives the bucket key
from the hashed client identity, increments the shared counter and, on the
increment that opens the window (count == 1), sets the key's time-to-live to
the window length. The window is therefore aligned to the first request of a
client, not to wall-clock boundaries, and its expiry is never pushed back by
later requests.

The service holds no lock and no per-process counts: every cross-request
guarantee comes from the store's atomic increment. Store failures propagate
as ``StoreUnavailableError``; whether to fail open or closed is decided by
the HTTP layer.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass

from task_throttle.adapters.counter_store.base import AbstractCounterStore
from task_throttle.core.errors import StoreUnavailableError
from task_throttle.services.policy_resolver import PolicyRegistry, RateLimitTarget
from task_throttle.utils.identity_hash import DEFAULT_NAMESPACE, build_bucket_key, hash_identity

logger = logging.getLogger(__name__)

REASON_ALLOWED = "allowed"
REASON_LIMIT_EXCEEDED = "limit_exceeded"
REASON_INVALID_POLICY = "invalid_policy"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window of the applied policy.
        count: Counter value after this request (0 when the store was not touched).
        remaining: Requests left in the current window (0 when blocked).
        retry_after_ms: Milliseconds until the window resets, set only when blocked.
        reason: One of "allowed", "limit_exceeded", "invalid_policy".
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    retry_after_ms: int | None
    reason: str

    @property
    def retry_after_seconds(self) -> int | None:
        if self.retry_after_ms is None:
            return None
        return max(0, int(math.ceil(self.retry_after_ms / 1000)))


def _log_detached_expiry_failure(expiry: asyncio.Future[None]) -> None:
    # Runs even when the awaiting request was cancelled and nobody reads the result.
    if expiry.cancelled():
        return
    exc = expiry.exception()
    if exc is not None:
        logger.error(
            "counter_store.error",
            extra={"operation": "expire_after", "error_type": type(exc).__name__},
        )


class RateLimiterService:
    """Decision engine combining policy registry, identity hasher and store."""

    def __init__(
        self,
        store: AbstractCounterStore,
        policies: PolicyRegistry,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        identity_salt: str | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Shared counter store; all atomicity is delegated to it.
            policies: Route policy registry.
            namespace: Prefix of every bucket key.
            identity_salt: Optional secret for keyed identity hashing.

        Raises:
            ValueError: If namespace is empty.
        """
        if not namespace:
            raise ValueError("namespace must be a non-empty string")

        self._store = store
        self._policies = policies
        self._namespace = namespace
        self._identity_salt = identity_salt

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    def identity_digest(self, identity: str) -> str:
        return hash_identity(identity, salt=self._identity_salt)

    def bucket_key(self, identity: str) -> str:
        """Return the store key for a raw client identity."""

        return build_bucket_key(self._namespace, self.identity_digest(identity))

    async def _retry_after_ms(self, key: str, window_ms: int) -> int:
        """Remaining window time for a denied key, or the full window if unknown.

        The request is already denied here, so a store failure only degrades
        the estimate.
        """

        try:
            ttl = await self._store.ttl_ms(key)
        except StoreUnavailableError:
            logger.warning("rate_limit.retry_after_unknown", extra={"window_ms": window_ms})
            return window_ms
        return window_ms if ttl is None else ttl

    async def check(self, target: RateLimitTarget, identity: str) -> RateLimitDecision:
        """Count one request of identity against the policy of target.

        The increment is never rolled back: a request abandoned after this
        call started still counts against the client's budget.

        Args:
            target: Guarded route.
            identity: Raw client identity (e.g. IP address); must be non-empty.

        Returns:
            RateLimitDecision for this request.

        Raises:
            StoreUnavailableError: If the counter store fails.
        """

        policy = self._policies.resolve(target).policy
        if not policy.is_valid:
            return RateLimitDecision(
                allowed=False,
                limit=policy.limit,
                count=0,
                remaining=0,
                retry_after_ms=max(0, policy.window_ms),
                reason=REASON_INVALID_POLICY,
            )

        key = self.bucket_key(identity)
        count = await self._store.increment(key)
        if count == 1:
            # Shielded: a cancelled first request must still bound its window.
            expiry = asyncio.ensure_future(self._store.expire_after(key, policy.window_ms))
            expiry.add_done_callback(_log_detached_expiry_failure)
            await asyncio.shield(expiry)

        if count > policy.limit:
            return RateLimitDecision(
                allowed=False,
                limit=policy.limit,
                count=count,
                remaining=0,
                retry_after_ms=await self._retry_after_ms(key, policy.window_ms),
                reason=REASON_LIMIT_EXCEEDED,
            )

        return RateLimitDecision(
            allowed=True,
            limit=policy.limit,
            count=count,
            remaining=policy.limit - count,
            retry_after_ms=None,
            reason=REASON_ALLOWED,
        )
