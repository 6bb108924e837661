"""Server side of the status poll: query the provider and converge on the finalizer."""

import logging

from app.adapters.provider import ProviderError, RenderProvider
from app.core.logging_safety import safe_log_identifier
from app.domain.job_fsm import is_terminal
from app.domain.provider_status import is_processing, terminal_outcome
from app.errors import ApiError, not_found
from app.repositories.memory import InMemoryStore, VideoJobRecord
from app.schemas.video_job import VideoStatusResponse
from app.services.finalizer import CompletionFinalizer

logger = logging.getLogger(__name__)


class VideoStatusService:
    def __init__(
        self,
        *,
        store: InMemoryStore,
        provider: RenderProvider,
        finalizer: CompletionFinalizer,
    ) -> None:
        self._store = store
        self._provider = provider
        self._finalizer = finalizer

    async def check_status(self, *, owner_id: str, provider_job_id: str) -> VideoStatusResponse:
        job = self._store.get_job_for_owner_by_correlation_id(owner_id=owner_id, correlation_id=provider_job_id)
        if job is None:
            raise not_found()

        # Terminal rows are authoritative; the provider is not asked again.
        if is_terminal(job.status):
            return self._to_response(job)

        safe_correlation_id = safe_log_identifier(provider_job_id, prefix="cid")
        try:
            prediction = await self._provider.get_prediction(provider_job_id)
        except ProviderError as exc:
            logger.warning(
                "status.provider_unavailable job_id=%s correlation_id=%s provider_status=%s",
                job.id,
                safe_correlation_id,
                exc.status_code,
            )
            raise ApiError(
                status_code=502,
                code="PROVIDER_UNAVAILABLE",
                message="Failed to check render status",
            ) from exc

        outcome = terminal_outcome(prediction.status, output=prediction.output, error=prediction.error)
        if outcome is not None:
            await self._finalizer.finalize(correlation_id=provider_job_id, outcome=outcome)
        elif is_processing(prediction.status):
            self._finalizer.mark_processing(provider_job_id)

        logger.info(
            "status.checked job_id=%s correlation_id=%s provider_status=%s status=%s",
            job.id,
            safe_correlation_id,
            prediction.status,
            job.status.value,
        )
        return self._to_response(job)

    @staticmethod
    def _to_response(job: VideoJobRecord) -> VideoStatusResponse:
        return VideoStatusResponse(
            status=job.status,
            video_path=job.video_path,
            video_url=job.video_url,
            error=job.error_message,
        )
