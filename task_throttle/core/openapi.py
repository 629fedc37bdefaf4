"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Documented 429/503 responses on every guarded (non-health) operation

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_ERROR_SCHEMA = {
    "type": "object",
    "properties": {
        "error": {
            "type": "object",
            "properties": {
                "code": {"type": "string"},
                "message": {"type": "string"},
                "request_id": {"type": "string"},
                "details": {"type": "object"},
            },
        }
    },
}

_GUARD_RESPONSES = {
    "429": {
        "description": "Too many requests; retry after the Retry-After interval.",
        "content": {"application/json": {"schema": _ERROR_SCHEMA}},
    },
    "503": {
        "description": "Rate limit store unavailable.",
        "content": {"application/json": {"schema": _ERROR_SCHEMA}},
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and guard responses.

    - Adds tags metadata if not present
    - Documents the rate limiter's 429/503 responses on every operation
      except the health endpoints
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Health",
                "description": "Liveness and readiness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for path, methods in paths.items():
            if "/health" in path:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    responses = method_obj.setdefault("responses", {})
                    for status_code, response in _GUARD_RESPONSES.items():
                        responses.setdefault(status_code, response)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
