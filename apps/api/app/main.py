"""FastAPI application entrypoint."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.errors import ApiError
from app.routes import usage_router, videos_router, webhooks_router
from app.schemas.error import ErrorResponse
from app.services.container import build_services

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_OPENAPI_RESPONSE_CODES: dict[str, dict[str, set[str]]] = {
    "/api/v1/videos": {"post": {"202", "400", "401", "402", "404", "409", "429", "502"}},
    "/api/v1/videos/status": {"post": {"200", "400", "401", "404", "502"}},
    "/api/v1/videos/jobs/{jobId}": {"get": {"200", "401", "404"}},
    "/api/v1/videos/jobs/{jobId}/playback": {"get": {"200", "401", "404", "409"}},
    "/api/v1/dreams/{dreamId}/videos": {"get": {"200", "401", "404"}},
    "/api/v1/usage": {"get": {"200", "401"}},
    "/api/v1/webhooks/provider": {"post": {"200", "400", "401"}},
}

_BODY_VALIDATION_PATHS: set[tuple[str, str]] = {
    ("POST", "/api/v1/videos"),
    ("POST", "/api/v1/videos/status"),
}

_GENERATE_402_ONEOF_REFS: list[str] = [
    "#/components/schemas/NoCreditsError",
    "#/components/schemas/GenerationFailedError",
]


def _apply_contract_response_codes(schema: dict) -> None:
    """Limit documented response codes to the ones each route actually returns."""
    for path, methods in _OPENAPI_RESPONSE_CODES.items():
        path_item = schema.get("paths", {}).get(path)
        if not path_item:
            continue

        for method, allowed_codes in methods.items():
            operation = path_item.get(method)
            if not operation:
                continue

            responses = operation.setdefault("responses", {})
            for status_code in list(responses.keys()):
                if status_code not in allowed_codes:
                    responses.pop(status_code, None)

            for status_code in sorted(allowed_codes):
                responses.setdefault(status_code, {"description": "See API contract"})


def _apply_generate_payment_schema(schema: dict) -> None:
    """402 on generate is either an eligibility refusal or a provider billing refusal."""
    path_item = schema.get("paths", {}).get("/api/v1/videos")
    if not path_item:
        return

    operation = path_item.get("post")
    if not operation:
        return

    responses = operation.setdefault("responses", {})
    payment = responses.setdefault("402", {"description": "See API contract"})
    content = payment.setdefault("content", {}).setdefault("application/json", {})
    content["schema"] = {"oneOf": [{"$ref": ref} for ref in _GENERATE_402_ONEOF_REFS]}


def create_app(settings: Settings | None = None) -> FastAPI:
    resolved_settings = settings or get_settings()
    app = FastAPI(title="DreamReel API", version="1.0.0")
    app.state.services = build_services(resolved_settings)
    app.state.store = app.state.services.store
    logger.info(
        "app.started render_provider=%s storage_backend=%s notifier_backend=%s auth_provider=%s",
        resolved_settings.render_provider,
        resolved_settings.storage_backend,
        resolved_settings.notifier_backend,
        resolved_settings.auth_provider,
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        route_key = (request.method.upper(), route_path)
        if route_key in _BODY_VALIDATION_PATHS:
            payload = ErrorResponse(code="VALIDATION_ERROR", message="Invalid request payload")
            return JSONResponse(status_code=400, content=payload.model_dump(exclude_none=True))

        return await request_validation_exception_handler(request, exc)

    app.include_router(videos_router, prefix=API_PREFIX)
    app.include_router(usage_router, prefix=API_PREFIX)
    app.include_router(webhooks_router, prefix=API_PREFIX)

    def custom_openapi() -> dict:
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )
        _apply_contract_response_codes(schema)
        _apply_generate_payment_schema(schema)
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app
