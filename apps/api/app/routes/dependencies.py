"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.adapters.auth import (
    AuthVerificationError,
    FirebaseTokenVerifier,
    MockTokenVerifier,
    TokenVerifier,
)
from app.core.config import Settings, get_settings
from app.core.logging_safety import safe_log_identifier
from app.errors import ApiError
from app.schemas.auth import AuthPrincipal
from app.services.container import ServiceContainer
from app.services.dispatcher import RenderDispatcher
from app.services.usage_ledger import UsageLedgerService
from app.services.video_jobs import VideoJobService
from app.services.video_status import VideoStatusService
from app.services.webhooks import WebhookReceiver

bearer_scheme = HTTPBearer(auto_error=False, scheme_name="bearerAuth")
logger = logging.getLogger(__name__)


def _auth_error(message: str) -> ApiError:
    return ApiError(status_code=401, code="UNAUTHORIZED", message=message)


def get_request_id(request: Request) -> str:
    existing = getattr(request.state, "request_id", None)
    if isinstance(existing, str) and existing:
        return existing

    request_id = request.headers.get("X-Request-Id") or f"req-{uuid4()}"
    request.state.request_id = request_id
    return request_id


def get_token_verifier(settings: Annotated[Settings, Depends(get_settings)]) -> TokenVerifier:
    """Resolve provider adapter from configuration."""
    if settings.auth_provider == "firebase":
        return FirebaseTokenVerifier(
            project_id=settings.firebase_project_id,
            audience=settings.firebase_audience,
        )
    return MockTokenVerifier()


async def get_authenticated_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_token_verifier)],
) -> AuthPrincipal:
    """Validate bearer token and attach normalized principal to request context."""
    safe_request_id = safe_log_identifier(get_request_id(request), prefix="rid")
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        logger.warning(
            "auth.rejected request_id=%s method=%s path=%s reason=invalid_or_missing_bearer",
            safe_request_id,
            request.method,
            request.url.path,
        )
        raise _auth_error("Invalid or missing bearer token")

    try:
        principal = verifier.verify_token(credentials.credentials)
    except AuthVerificationError as exc:
        logger.warning(
            "auth.rejected request_id=%s method=%s path=%s reason=token_verification_failed",
            safe_request_id,
            request.method,
            request.url.path,
        )
        raise _auth_error(str(exc) or "Invalid bearer token") from exc

    request.state.auth_principal = principal
    return principal


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_dispatcher(services: Annotated[ServiceContainer, Depends(get_services)]) -> RenderDispatcher:
    return services.dispatcher


def get_status_service(services: Annotated[ServiceContainer, Depends(get_services)]) -> VideoStatusService:
    return services.status


def get_video_job_service(services: Annotated[ServiceContainer, Depends(get_services)]) -> VideoJobService:
    return services.jobs


def get_usage_ledger(services: Annotated[ServiceContainer, Depends(get_services)]) -> UsageLedgerService:
    return services.ledger


def get_webhook_receiver(services: Annotated[ServiceContainer, Depends(get_services)]) -> WebhookReceiver:
    return services.webhooks
