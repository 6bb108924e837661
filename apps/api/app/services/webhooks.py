"""Provider webhook service layer."""

from collections.abc import Mapping
import logging

from pydantic import ValidationError

from app.core.logging_safety import safe_log_identifier
from app.core.webhook_signing import WebhookVerificationError, verify_signature
from app.domain.job_fsm import ACTIVE_STATES
from app.domain.provider_status import terminal_outcome
from app.errors import ApiError
from app.repositories.memory import InMemoryStore
from app.schemas.video_job import VideoJobStatus
from app.schemas.webhook import ProviderWebhookPayload, WebhookAck
from app.services.finalizer import CompletionFinalizer

logger = logging.getLogger(__name__)

DELIVERY_ID_HEADER = "webhook-id"
TIMESTAMP_HEADER = "webhook-timestamp"
SIGNATURE_HEADER = "webhook-signature"


def notification_key(*, delivery_id: str | None, payload: ProviderWebhookPayload) -> str:
    """Dedup key for one delivery: the provider's delivery id, else prediction id plus status."""
    if delivery_id and delivery_id.strip():
        return delivery_id.strip()
    return f"{payload.id}-{payload.status}"


class WebhookReceiver:
    def __init__(
        self,
        *,
        store: InMemoryStore,
        finalizer: CompletionFinalizer,
        secret: str,
        tolerance_seconds: int,
    ) -> None:
        self._store = store
        self._finalizer = finalizer
        self._secret = secret
        self._tolerance_seconds = tolerance_seconds

    async def receive(self, *, body: bytes, headers: Mapping[str, str]) -> WebhookAck:
        delivery_id = headers.get(DELIVERY_ID_HEADER)
        safe_delivery_id = safe_log_identifier(delivery_id, prefix="did")

        # Boundary: nothing below may run for an unauthenticated delivery.
        try:
            verify_signature(
                secret=self._secret,
                delivery_id=delivery_id,
                timestamp=headers.get(TIMESTAMP_HEADER),
                signature_header=headers.get(SIGNATURE_HEADER),
                body=body,
                tolerance_seconds=self._tolerance_seconds,
            )
        except WebhookVerificationError as exc:
            logger.warning("webhook.rejected delivery_id=%s reason=%s", safe_delivery_id, exc)
            raise ApiError(status_code=401, code="UNAUTHORIZED", message="Invalid webhook signature") from exc

        try:
            payload = ProviderWebhookPayload.model_validate_json(body)
        except ValidationError as exc:
            logger.warning("webhook.rejected delivery_id=%s reason=invalid_payload", safe_delivery_id)
            raise ApiError(status_code=400, code="VALIDATION_ERROR", message="Invalid webhook payload") from exc

        safe_correlation_id = safe_log_identifier(payload.id, prefix="cid")
        key = notification_key(delivery_id=delivery_id, payload=payload)
        if not self._store.insert_notification_key(key):
            logger.info(
                "webhook.duplicate delivery_id=%s correlation_id=%s status=%s",
                safe_delivery_id,
                safe_correlation_id,
                payload.status,
            )
            return WebhookAck(duplicate=True, job_status=self._current_status(payload.id))

        outcome = terminal_outcome(payload.status, output=payload.output, error=payload.error)
        if outcome is None:
            logger.info(
                "webhook.acknowledged delivery_id=%s correlation_id=%s status=%s",
                safe_delivery_id,
                safe_correlation_id,
                payload.status,
            )
            return WebhookAck(job_status=self._current_status(payload.id))

        result = None
        settled = False
        try:
            result = await self._finalizer.finalize(correlation_id=payload.id, outcome=outcome)
            # Another caller holds the claim and may still fail; keep this delivery replayable.
            settled = result is None or result.applied or result.status not in ACTIVE_STATES
        finally:
            # Runs on errors and cancellation too, so the provider's retry is processed, not deduplicated.
            if not settled:
                self._store.release_notification_key(key)

        logger.info(
            "webhook.applied delivery_id=%s correlation_id=%s status=%s applied=%s",
            safe_delivery_id,
            safe_correlation_id,
            payload.status,
            result.applied if result is not None else False,
        )
        return WebhookAck(job_status=result.status if result is not None else None)

    def _current_status(self, correlation_id: str) -> VideoJobStatus | None:
        job = self._store.get_job_by_correlation_id(correlation_id)
        return job.status if job is not None else None
