"""Completion finalizer: the only path that moves a video job to a terminal state."""

from dataclasses import dataclass
import logging

from app.adapters.notifications import Notifier
from app.adapters.provider import ProviderError, RenderProvider
from app.adapters.storage import ArtifactStorage, ArtifactStorageError
from app.core.logging_safety import safe_log_identifier
from app.domain.provider_status import Failed, Succeeded, TerminalOutcome
from app.repositories.memory import InMemoryStore, VideoJobRecord
from app.schemas.notification import VideoOutcome, VideoOutcomeEvent
from app.schemas.video_job import FailureCode, VideoJobStatus
from app.services.usage_ledger import UsageLedgerService

logger = logging.getLogger(__name__)

_VIDEO_CONTENT_TYPE = "video/mp4"
_PERSIST_FAILED_MESSAGE = "Failed to save video"


@dataclass(slots=True)
class FinalizeResult:
    job_id: str
    status: VideoJobStatus
    applied: bool


class CompletionFinalizer:
    """Shared by the webhook receiver and the status check.

    Both callers may run concurrently for one job. ``begin_finalization`` is a
    conditional write that admits one caller per job, so the artifact is
    downloaded once; ``complete_job``/``fail_job`` are conditional on the job
    still being active, and ``fail_job`` flips ``refunded`` in the same write.
    A caller that loses either race returns with no side effects.
    """

    def __init__(
        self,
        *,
        store: InMemoryStore,
        ledger: UsageLedgerService,
        provider: RenderProvider,
        storage: ArtifactStorage,
        notifier: Notifier,
        lease_seconds: int,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._provider = provider
        self._storage = storage
        self._notifier = notifier
        self._lease_seconds = lease_seconds

    def mark_processing(self, correlation_id: str) -> VideoJobRecord | None:
        job = self._store.get_job_by_correlation_id(correlation_id)
        if job is None:
            return None
        if self._store.mark_processing(job.id):
            logger.info("finalize.processing job_id=%s", job.id)
        return job

    async def finalize(self, *, correlation_id: str, outcome: TerminalOutcome) -> FinalizeResult | None:
        safe_correlation_id = safe_log_identifier(correlation_id, prefix="cid")
        job = self._store.get_job_by_correlation_id(correlation_id)
        if job is None:
            logger.warning("finalize.unknown_job correlation_id=%s", safe_correlation_id)
            return None

        if not self._store.begin_finalization(job.id, lease_seconds=self._lease_seconds):
            logger.info(
                "finalize.skipped correlation_id=%s job_id=%s current_status=%s",
                safe_correlation_id,
                job.id,
                job.status.value,
            )
            return FinalizeResult(job_id=job.id, status=job.status, applied=False)

        finished = False
        try:
            if isinstance(outcome, Succeeded):
                applied = await self._complete(job, output_url=outcome.output_url)
            elif isinstance(outcome, Failed):
                applied = self._fail(job, error_message=outcome.error, failure_code=outcome.failure_code)
            else:
                raise TypeError(f"Unsupported terminal outcome: {outcome!r}")
            finished = True
        finally:
            # Also runs on cancellation, so an abandoned claim never outlives its caller.
            if not finished:
                self._store.release_finalization(job.id)

        return FinalizeResult(job_id=job.id, status=job.status, applied=applied)

    async def _complete(self, job: VideoJobRecord, *, output_url: str) -> bool:
        video_path = f"{job.owner_id}/{job.id}.mp4"
        try:
            content = await self._provider.download_output(output_url)
            self._storage.upload(path=video_path, content=content, content_type=_VIDEO_CONTENT_TYPE)
        except (ProviderError, ArtifactStorageError) as exc:
            logger.warning(
                "finalize.persist_failed job_id=%s code=ARTIFACT_PERSIST_FAILED reason=%s",
                job.id,
                type(exc).__name__,
            )
            return self._fail(
                job,
                error_message=_PERSIST_FAILED_MESSAGE,
                failure_code=FailureCode.ARTIFACT_PERSIST_FAILED,
            )

        if not self._store.complete_job(job.id, video_path=video_path, video_url=output_url):
            logger.info("finalize.lost_race job_id=%s current_status=%s", job.id, job.status.value)
            return False

        self._store.link_dream_video(dream_id=job.dream_id, video_path=video_path)
        logger.info("finalize.completed job_id=%s", job.id)
        self._notify(job, VideoOutcome.READY)
        return True

    def _fail(self, job: VideoJobRecord, *, error_message: str, failure_code: FailureCode) -> bool:
        applied, refund_due = self._store.fail_job(
            job.id,
            error_message=error_message,
            failure_code=failure_code,
        )
        if not applied:
            logger.info("finalize.lost_race job_id=%s current_status=%s", job.id, job.status.value)
            return False

        if refund_due:
            self._ledger.refund_one(user_id=job.owner_id)
        logger.info(
            "finalize.failed job_id=%s code=%s refunded=%s",
            job.id,
            failure_code.value,
            refund_due,
        )
        self._notify(job, VideoOutcome.FAILED)
        return True

    def _notify(self, job: VideoJobRecord, outcome: VideoOutcome) -> None:
        dream = self._store.get_dream(job.dream_id)
        event = VideoOutcomeEvent(
            job_id=job.id,
            dream_id=job.dream_id,
            outcome=outcome,
            owner_display_hint=dream.title if dream is not None else None,
        )
        try:
            self._notifier.publish(event)
        except Exception:
            # Delivery is owned downstream; the terminal transition already committed.
            logger.exception("finalize.notify_failed job_id=%s outcome=%s", job.id, outcome.value)
