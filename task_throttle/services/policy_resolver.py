"""Route-to-policy resolution for the rate limiter.

Policies live in an explicit table keyed by route group (``"tasks"``) or by
group and handler (``"tasks.create"``). Resolution is a pure lookup:
handler entry, then group entry, then the process-wide default. Nothing here
touches the counter store, so a missing entry can never block a request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from task_throttle.core.config import RateLimitSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Budget of requests per fixed window.

    Attributes:
        limit: Maximum requests allowed per window (inclusive).
        window_ms: Window length in milliseconds.
    """

    limit: int
    window_ms: int

    @property
    def is_valid(self) -> bool:
        return self.limit > 0 and self.window_ms > 0


DEFAULT_POLICY = RateLimitPolicy(limit=100, window_ms=60_000)


@dataclass(frozen=True)
class RateLimitTarget:
    """Identifies the guarded route.

    Attributes:
        group: Router/controller name (e.g. "tasks").
        handler: Optional endpoint name within the group (e.g. "create").
    """

    group: str
    handler: str | None = None

    @property
    def route_key(self) -> str:
        if self.handler:
            return f"{self.group}.{self.handler}"
        return self.group


@dataclass(frozen=True)
class ResolvedPolicy:
    """Policy selected for a target and the scope it came from."""

    policy: RateLimitPolicy
    scope: str


class PolicyRegistry:
    """Configuration table of rate limit policies."""

    def __init__(
        self,
        *,
        default: RateLimitPolicy = DEFAULT_POLICY,
        routes: Mapping[str, RateLimitPolicy] | None = None,
    ) -> None:
        self._default = default
        self._routes: dict[str, RateLimitPolicy] = {}

        if not default.is_valid:
            self._report_invalid("default", default)

        for route_key, policy in (routes or {}).items():
            group, _, handler = route_key.partition(".")
            self.register(group, policy, handler=handler or None)

    @classmethod
    def from_settings(cls, rate_limit_settings: RateLimitSettings) -> "PolicyRegistry":
        """Build the registry from rate limit settings."""

        return cls(
            default=RateLimitPolicy(
                limit=rate_limit_settings.default_limit,
                window_ms=rate_limit_settings.default_window_ms,
            ),
            routes={
                route_key: RateLimitPolicy(limit=cfg.limit, window_ms=cfg.window_ms)
                for route_key, cfg in rate_limit_settings.route_policies.items()
            },
        )

    @property
    def default(self) -> RateLimitPolicy:
        return self._default

    def register(
        self,
        group: str,
        policy: RateLimitPolicy,
        *,
        handler: str | None = None,
    ) -> None:
        """Register a policy for a route group or for a single handler.

        Re-registering the same route replaces the previous policy.

        Args:
            group: Router/controller name.
            policy: Policy to apply.
            handler: Optional endpoint name; when omitted the policy covers
                every handler of the group that has no own entry.

        Raises:
            ValueError: If group is empty.
        """

        if not group:
            raise ValueError("group must be a non-empty string")

        route_key = RateLimitTarget(group=group, handler=handler).route_key
        if not policy.is_valid:
            self._report_invalid(route_key, policy)
        self._routes[route_key] = policy

    def resolve(self, target: RateLimitTarget) -> ResolvedPolicy:
        """Return the most specific policy registered for target."""

        if target.handler:
            policy = self._routes.get(target.route_key)
            if policy is not None:
                return ResolvedPolicy(policy=policy, scope="handler")

        policy = self._routes.get(target.group)
        if policy is not None:
            return ResolvedPolicy(policy=policy, scope="group")

        return ResolvedPolicy(policy=self._default, scope="default")

    @staticmethod
    def _report_invalid(route_key: str, policy: RateLimitPolicy) -> None:
        # Logged at registration so the request path stays quiet.
        logger.warning(
            "rate_limit.invalid_policy",
            extra={
                "route": route_key,
                "limit": policy.limit,
                "window_ms": policy.window_ms,
                "effect": "deny_all",
            },
        )
