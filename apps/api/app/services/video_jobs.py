"""Video job read service layer."""

from app.adapters.storage import ArtifactStorage
from app.errors import ApiError, not_found
from app.repositories.memory import InMemoryStore, VideoJobRecord
from app.schemas.video_job import PlaybackSource, VideoJob, VideoJobStatus, VideoPlayback


class VideoJobService:
    def __init__(self, *, store: InMemoryStore, storage: ArtifactStorage) -> None:
        self._store = store
        self._storage = storage

    def get_job(self, *, owner_id: str, job_id: str) -> VideoJob:
        record = self._store.get_job_for_owner(owner_id=owner_id, job_id=job_id)
        if record is None:
            raise not_found()
        return self._to_job(record)

    def list_jobs_for_dream(self, *, owner_id: str, dream_id: str) -> list[VideoJob]:
        if self._store.get_dream_for_owner(owner_id=owner_id, dream_id=dream_id) is None:
            raise not_found()
        return [self._to_job(record) for record in self._store.list_jobs_for_dream(owner_id=owner_id, dream_id=dream_id)]

    def get_playback(self, *, owner_id: str, job_id: str) -> VideoPlayback:
        """Prefer the durable copy; fall back to the provider's possibly expiring URL."""
        record = self._store.get_job_for_owner(owner_id=owner_id, job_id=job_id)
        if record is None:
            raise not_found()

        if record.status is VideoJobStatus.COMPLETED:
            if record.video_path:
                stored_url = self._storage.resolve_url(record.video_path)
                if stored_url:
                    return VideoPlayback(job_id=record.id, url=stored_url, source=PlaybackSource.STORAGE)
            if record.video_url:
                return VideoPlayback(job_id=record.id, url=record.video_url, source=PlaybackSource.PROVIDER)

        raise ApiError(
            status_code=409,
            code="VIDEO_NOT_READY",
            message="Video is not ready yet.",
            details={"current_status": record.status},
        )

    @staticmethod
    def _to_job(record: VideoJobRecord) -> VideoJob:
        return VideoJob(
            id=record.id,
            dream_id=record.dream_id,
            status=record.status,
            provider_job_id=record.correlation_id,
            video_path=record.video_path,
            video_url=record.video_url,
            error_message=record.error_message,
            failure_code=record.failure_code,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )
