"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
the explicit wiring of the rate limiter: the counter store, policy registry
and limiter service are built here and attached to ``app.state`` instead of
living in module-level globals.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from task_throttle.adapters.counter_store.base import AbstractCounterStore
from task_throttle.adapters.counter_store.factory import create_counter_store
from task_throttle.api.routes import health_router
from task_throttle.core.config import Settings, settings as default_settings
from task_throttle.core.exception_handlers import setup_exception_handlers
from task_throttle.core.logging import configure_logging
from task_throttle.core.middleware import request_id_middleware
from task_throttle.core.openapi import apply_openapi_customizations
from task_throttle.services.policy_resolver import PolicyRegistry
from task_throttle.services.rate_limiter import RateLimiterService

logger = logging.getLogger(__name__)


def build_rate_limiter(
    app_settings: Settings,
    *,
    store: AbstractCounterStore | None = None,
) -> RateLimiterService:
    """Build the limiter service from settings.

    Args:
        app_settings: Application settings.
        store: Optional pre-built store (tests inject in-memory or mocked stores).

    Returns:
        RateLimiterService wired to the configured store and policies.
    """
    cfg = app_settings.rate_limit
    return RateLimiterService(
        store if store is not None else create_counter_store(cfg),
        PolicyRegistry.from_settings(cfg),
        namespace=cfg.namespace,
        identity_salt=cfg.identity_salt,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.rate_limiter.store.close()
    logger.info("counter_store.closed")


def create_app(
    app_settings: Settings | None = None,
    *,
    store: AbstractCounterStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the global settings.
        store: Optional counter store overriding the configured backend.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title=cfg.app.title,
        description=(
            "Request-rate guard for the task management backend. Fixed-window "
            "limits per client and route, counted in a shared Redis store."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=_lifespan,
    )

    app.state.settings = cfg
    app.state.rate_limiter = build_rate_limiter(cfg, store=store)
    logger.info(
        "rate_limit.configured",
        extra={
            "enabled": cfg.rate_limit.enabled,
            "store_backend": type(app.state.rate_limiter.store).__name__,
            "default_limit": cfg.rate_limit.default_limit,
            "default_window_ms": cfg.rate_limit.default_window_ms,
            "route_policies": len(cfg.rate_limit.route_policies),
            "fail_open": cfg.rate_limit.fail_open,
        },
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
