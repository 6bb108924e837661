"""Render dispatch service layer."""

import logging

from app.adapters.provider import ProviderError, RenderProvider
from app.core.logging_safety import clip_message, safe_log_identifier
from app.errors import ApiError, not_found
from app.repositories.memory import InMemoryStore, InsufficientUnitsError
from app.schemas.video_job import FailureCode, GenerateVideoAccepted, VideoJobStatus
from app.services.usage_ledger import REASON_QUOTA_EXCEEDED, UsageLedgerService

logger = logging.getLogger(__name__)

_UNITS_EXHAUSTED_MESSAGE = "UnitsExhausted"


class RenderDispatcher:
    def __init__(
        self,
        *,
        store: InMemoryStore,
        ledger: UsageLedgerService,
        provider: RenderProvider,
        webhook_url: str | None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._provider = provider
        self._webhook_url = webhook_url

    async def dispatch(self, *, owner_id: str, dream_id: str, prompt: str) -> GenerateVideoAccepted:
        dream = self._store.get_dream_for_owner(owner_id=owner_id, dream_id=dream_id)
        if dream is None:
            raise not_found()

        self._ensure_eligible(owner_id=owner_id)

        safe_owner_id = safe_log_identifier(owner_id, prefix="uid")
        try:
            prediction = await self._provider.create_prediction(prompt=prompt, webhook_url=self._webhook_url)
        except ProviderError as exc:
            error_message = clip_message(str(exc), fallback="Video generation failed")
            audit_job = self._store.insert_job(
                owner_id=owner_id,
                dream_id=dream_id,
                status=VideoJobStatus.FAILED,
                error_message=error_message,
                failure_code=FailureCode.DISPATCH_FAILED,
            )
            logger.warning(
                "dispatch.failed user_id=%s job_id=%s code=DISPATCH_FAILED provider_status=%s",
                safe_owner_id,
                audit_job.id,
                exc.status_code,
            )
            billing = exc.status_code == 402
            raise ApiError(
                status_code=402 if billing else 502,
                code="BILLING_REQUIRED" if billing else "GENERATION_FAILED",
                message=error_message,
                details={"job_id": audit_job.id},
            ) from exc

        safe_correlation_id = safe_log_identifier(prediction.id, prefix="cid")
        try:
            consumed_tier = self._ledger.consume_one(user_id=owner_id)
        except InsufficientUnitsError as exc:
            await self._cancel_best_effort(prediction.id)
            audit_job = self._store.insert_job(
                owner_id=owner_id,
                dream_id=dream_id,
                status=VideoJobStatus.FAILED,
                correlation_id=prediction.id,
                error_message=_UNITS_EXHAUSTED_MESSAGE,
                failure_code=FailureCode.UNITS_EXHAUSTED,
            )
            logger.warning(
                "dispatch.units_exhausted user_id=%s job_id=%s correlation_id=%s",
                safe_owner_id,
                audit_job.id,
                safe_correlation_id,
            )
            raise ApiError(
                status_code=409,
                code="UNITS_EXHAUSTED",
                message="No generation units left; the render was cancelled.",
                details={"job_id": audit_job.id},
            ) from exc

        job = self._store.insert_job(
            owner_id=owner_id,
            dream_id=dream_id,
            status=VideoJobStatus.PENDING,
            correlation_id=prediction.id,
            consumed_tier=consumed_tier,
        )
        logger.info(
            "dispatch.accepted user_id=%s job_id=%s correlation_id=%s tier=%s",
            safe_owner_id,
            job.id,
            safe_correlation_id,
            consumed_tier.value,
        )
        return GenerateVideoAccepted(job_id=job.id, provider_job_id=prediction.id, status=job.status)

    def _ensure_eligible(self, *, owner_id: str) -> None:
        eligibility = self._ledger.check_eligibility(user_id=owner_id)
        if eligibility.allowed:
            return

        if eligibility.reason == REASON_QUOTA_EXCEEDED and eligibility.quota is not None:
            quota = eligibility.quota
            raise ApiError(
                status_code=429,
                code="QUOTA_EXCEEDED",
                message=f"You've used all {quota.limit} videos for this month.",
                details={
                    "used": quota.used,
                    "limit": quota.limit,
                    "resets_at": quota.resets_at,
                },
            )
        raise ApiError(
            status_code=402,
            code="NO_CREDITS",
            message="No credits remaining. Please upgrade to Pro.",
        )

    async def _cancel_best_effort(self, prediction_id: str) -> None:
        # The provider may ignore or reject the cancel; the job row records the failure either way.
        try:
            await self._provider.cancel_prediction(prediction_id)
        except ProviderError as exc:
            logger.warning(
                "dispatch.cancel_failed correlation_id=%s provider_status=%s",
                safe_log_identifier(prediction_id, prefix="cid"),
                exc.status_code,
            )
