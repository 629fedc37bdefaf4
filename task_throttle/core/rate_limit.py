"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiter service into the HTTP layer.

Design goals:
- Minimal coupling: routes declare ``Depends(rate_limit("tasks", "create"))``.
- Explicit wiring: the limiter is built by the app factory and read from
  ``app.state``; there is no process-wide limiter singleton.
- Fail mode is an HTTP concern: the service surfaces store failures and this
  module decides, per configuration, whether to fail open or closed.

Identity: the client address (or the first X-Forwarded-For hop when the app
runs behind a trusted proxy). Only a truncated digest of it is ever logged.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response

from task_throttle.core.config import RateLimitSettings, Settings
from task_throttle.core.errors import RateLimitExceededError, StoreUnavailableError
from task_throttle.core.logging import short_hash
from task_throttle.services.policy_resolver import RateLimitTarget
from task_throttle.services.rate_limiter import RateLimitDecision, RateLimiterService

logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "unknown"
RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


def get_rate_limiter(request: Request) -> RateLimiterService:
    """Return the limiter built by the application factory."""

    return request.app.state.rate_limiter


def _rate_limit_settings(request: Request) -> RateLimitSettings:
    app_settings: Settings = request.app.state.settings
    return app_settings.rate_limit


def client_identity(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Extract the raw client identity used for bucketing.

    Args:
        request: FastAPI request.
        trust_forwarded_for: Prefer the first X-Forwarded-For hop.

    Returns:
        str: Client address, or "unknown" when none is available.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IDENTITY


def _limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


def rate_limit(
    group: str, handler: str | None = None
) -> Callable[[Request, Response], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the policy of a route.

    Args:
        group: Route group the policy is registered under (e.g. "tasks").
        handler: Optional endpoint name for handler-level overrides.

    Returns:
        Async dependency raising RateLimitExceededError (429) when the client
        is over budget.
    """

    target = RateLimitTarget(group=group, handler=handler)

    async def enforce_rate_limit(request: Request, response: Response) -> None:
        """Consume one request from the caller's budget for this route.

        Raises:
            RateLimitExceededError: 429 when the budget is exhausted.
            StoreUnavailableError: 503 when the store is down and the
                limiter fails closed.
        """

        cfg = _rate_limit_settings(request)
        if not cfg.enabled:
            return

        limiter = get_rate_limiter(request)
        identity = client_identity(request, trust_forwarded_for=cfg.trust_forwarded_for)
        key_hash = short_hash(limiter.identity_digest(identity))

        try:
            decision = await limiter.check(target, identity)
        except StoreUnavailableError:
            fail_mode = "open" if cfg.fail_open else "closed"
            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "route": target.route_key,
                    "key_hash": key_hash,
                    "fail_mode": fail_mode,
                },
            )
            if cfg.fail_open:
                return
            raise

        if decision.allowed:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "route": target.route_key,
                    "key_hash": key_hash,
                    "limit": decision.limit,
                    "remaining": decision.remaining,
                },
            )
            if cfg.include_headers:
                response.headers.update(_limit_headers(decision))
            return

        retry_after = decision.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "route": target.route_key,
                "key_hash": key_hash,
                "reason": decision.reason,
                "limit": decision.limit,
                "count": decision.count,
                "retry_after_s": retry_after,
            },
        )

        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message=RATE_LIMIT_MESSAGE,
            details={"retry_after": retry_after},
            headers=_limit_headers(decision) if cfg.include_headers else {},
        )

    return enforce_rate_limit
