from __future__ import annotations

from task_throttle.api.routes.health import router as health_router

__all__ = ["health_router"]
