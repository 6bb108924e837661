"""Client-side status polling loop."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
import logging
import time

import httpx
from pydantic import ValidationError

from app.client.api_client import VideoApiError
from app.core.logging_safety import safe_log_identifier
from app.schemas.video_job import VideoJobStatus, VideoStatusResponse

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_DURATION_SECONDS = 600.0


class PollState(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    # Local to the client: the job may still finish server-side.
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class PollOutcome:
    state: PollState
    provider_job_id: str
    ticks: int
    last_status: VideoJobStatus | None = None
    video_url: str | None = None
    video_path: str | None = None
    error: str | None = None


@dataclass(slots=True, frozen=True)
class PollProgress:
    provider_job_id: str
    status: VideoJobStatus | None
    progress: float
    ticks: int


def estimate_progress(ticks: int) -> float:
    """Cosmetic progress for a render with no real progress signal."""
    return min(0.9, 0.1 + 0.05 * ticks)


StatusQuery = Callable[[str], Awaitable[VideoStatusResponse]]
ProgressCallback = Callable[[PollProgress], None]


class StatusPoller:
    """Polls ``check_status`` until the job is terminal, cancelled, or the time budget runs out.

    A timeout is reported as ``PollState.TIMED_OUT`` and never written back to
    the server; the webhook or a later poll still finalizes the job.
    """

    def __init__(
        self,
        check_status: StatusQuery,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_duration_seconds: float = DEFAULT_MAX_DURATION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if max_duration_seconds <= 0:
            raise ValueError("max_duration_seconds must be > 0")
        self._check_status = check_status
        self._interval_seconds = interval_seconds
        self._max_duration_seconds = max_duration_seconds
        self._clock = clock
        self._cancelled = asyncio.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def run(self, provider_job_id: str, on_progress: ProgressCallback | None = None) -> PollOutcome:
        safe_job_id = safe_log_identifier(provider_job_id, prefix="cid")
        started_at = self._clock()
        ticks = 0
        last_status: VideoJobStatus | None = None

        while True:
            if self._cancelled.is_set():
                logger.info("poll.cancelled correlation_id=%s ticks=%s", safe_job_id, ticks)
                return PollOutcome(
                    state=PollState.CANCELLED,
                    provider_job_id=provider_job_id,
                    ticks=ticks,
                    last_status=last_status,
                )

            try:
                response = await self._check_status(provider_job_id)
            except (VideoApiError, httpx.HTTPError, ValidationError) as exc:
                logger.warning(
                    "poll.query_failed correlation_id=%s tick=%s reason=%s",
                    safe_job_id,
                    ticks,
                    type(exc).__name__,
                )
                response = None
            ticks += 1

            if response is not None:
                last_status = response.status
                if response.status is VideoJobStatus.COMPLETED:
                    self._report(on_progress, provider_job_id, response.status, 1.0, ticks)
                    logger.info("poll.completed correlation_id=%s ticks=%s", safe_job_id, ticks)
                    return PollOutcome(
                        state=PollState.COMPLETED,
                        provider_job_id=provider_job_id,
                        ticks=ticks,
                        last_status=response.status,
                        video_url=response.video_url,
                        video_path=response.video_path,
                    )
                if response.status is VideoJobStatus.FAILED:
                    logger.info("poll.failed correlation_id=%s ticks=%s", safe_job_id, ticks)
                    return PollOutcome(
                        state=PollState.FAILED,
                        provider_job_id=provider_job_id,
                        ticks=ticks,
                        last_status=response.status,
                        error=response.error,
                    )

            self._report(on_progress, provider_job_id, last_status, estimate_progress(ticks), ticks)

            remaining = self._max_duration_seconds - (self._clock() - started_at)
            if remaining <= 0:
                logger.info("poll.timed_out correlation_id=%s ticks=%s", safe_job_id, ticks)
                return PollOutcome(
                    state=PollState.TIMED_OUT,
                    provider_job_id=provider_job_id,
                    ticks=ticks,
                    last_status=last_status,
                )

            await self._wait(min(self._interval_seconds, remaining))

    async def _wait(self, seconds: float) -> None:
        # Wakes early on cancel(); task cancellation propagates out of run().
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    @staticmethod
    def _report(
        on_progress: ProgressCallback | None,
        provider_job_id: str,
        status: VideoJobStatus | None,
        progress: float,
        ticks: int,
    ) -> None:
        if on_progress is None:
            return
        on_progress(PollProgress(provider_job_id=provider_job_id, status=status, progress=progress, ticks=ticks))
