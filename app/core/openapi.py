"""OpenAPI customization.

Adds the ``X-API-Key`` security scheme and applies it only to admin
operations; the rate-limited endpoint and health checks stay public.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

ADMIN_PATH_PREFIX = "/v1/visitors"

TAGS_METADATA = [
    {
        "name": "RateLimiter",
        "description": "Fixed-window admission per client address.",
    },
    {
        "name": "Admin",
        "description": "Operator endpoints for clearing client counters.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and admin security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {}).setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin API key (APP_API_KEYS).",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(t for t in TAGS_METADATA if t["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith(ADMIN_PATH_PREFIX):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"ApiKeyAuth": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
