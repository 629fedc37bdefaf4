"""Tests for liveness/readiness endpoints and app wiring."""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from task_throttle.adapters.counter_store.base import AbstractCounterStore
from task_throttle.adapters.counter_store.in_memory import InMemoryCounterStore
from task_throttle.core.app_factory import create_app
from task_throttle.core.errors import StoreUnavailableError
from task_throttle.services.rate_limiter import RateLimiterService


def test_health_is_ok_without_touching_store():
    store = AsyncMock(spec=AbstractCounterStore)
    client = TestClient(create_app(store=store))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    store.ping.assert_not_awaited()


def test_ready_when_store_answers():
    client = TestClient(create_app(store=InMemoryCounterStore()))

    response = client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "store": "reachable"}


def test_not_ready_when_store_unreachable():
    store = AsyncMock(spec=AbstractCounterStore)
    store.ping.side_effect = StoreUnavailableError(
        code="store_unavailable", message="Rate limit store is unavailable"
    )
    client = TestClient(create_app(store=store))

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.json() == {"status": "unavailable", "store": "unreachable"}


def test_app_state_carries_limiter():
    app = create_app(store=InMemoryCounterStore())

    assert isinstance(app.state.rate_limiter, RateLimiterService)
    assert isinstance(app.state.rate_limiter.store, InMemoryCounterStore)


def test_store_closed_on_shutdown():
    store = AsyncMock(spec=AbstractCounterStore)

    with TestClient(create_app(store=store)) as client:
        client.get("/health")

    store.close.assert_awaited_once()


def test_openapi_documents_guard_responses():
    app = create_app(store=InMemoryCounterStore())

    @app.get("/tasks")
    async def list_tasks() -> dict:
        return {"data": []}

    schema = TestClient(app).get("/openapi.json").json()

    assert "429" in schema["paths"]["/tasks"]["get"]["responses"]
    assert "503" in schema["paths"]["/tasks"]["get"]["responses"]
    assert "429" not in schema["paths"]["/health"]["get"]["responses"]
    assert any(tag["name"] == "Health" for tag in schema["tags"])
