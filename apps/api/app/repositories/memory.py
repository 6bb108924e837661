"""In-memory repositories used by the API scaffold and tests.

Every mutating method is a single critical section on ``_write_lock``; callers
get the semantics of a conditional ``UPDATE ... WHERE`` against one row and
never hold a lock themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
import threading
from uuid import uuid4

from app.domain.job_fsm import ACTIVE_STATES, INITIAL_STATES, ensure_transition
from app.domain.usage_period import effective_period_usage, next_period_start
from app.schemas.usage import SubscriptionTier
from app.schemas.video_job import FailureCode, VideoJobStatus


class InsufficientUnitsError(Exception):
    """Raised when a conditional consume finds no credit or quota left at commit time."""


@dataclass(slots=True)
class DreamRecord:
    id: str
    owner_id: str
    title: str | None
    created_at: datetime
    video_path: str | None = None


@dataclass(slots=True)
class UsageAccountRecord:
    user_id: str
    tier: SubscriptionTier
    credits_remaining: int
    videos_used_this_period: int
    quota_limit: int
    period_reset_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class VideoJobRecord:
    id: str
    owner_id: str
    dream_id: str
    status: VideoJobStatus
    created_at: datetime
    updated_at: datetime
    correlation_id: str | None = None
    video_path: str | None = None
    video_url: str | None = None
    error_message: str | None = None
    failure_code: FailureCode | None = None
    completed_at: datetime | None = None
    consumed_tier: SubscriptionTier | None = None
    refunded: bool = False
    finalizing_since: datetime | None = None


@dataclass(slots=True)
class ProcessedNotificationRecord:
    key: str
    received_at: datetime


@dataclass(slots=True)
class InMemoryStore:
    """Simple, deterministic persistence layer for scaffolding and tests."""

    free_tier_initial_credits: int = 3
    pro_monthly_quota: int = 30
    dreams: dict[str, DreamRecord] = field(default_factory=dict)
    usage_accounts: dict[str, UsageAccountRecord] = field(default_factory=dict)
    jobs: dict[str, VideoJobRecord] = field(default_factory=dict)
    job_ids_by_correlation_id: dict[str, str] = field(default_factory=dict)
    processed_notifications: dict[str, ProcessedNotificationRecord] = field(default_factory=dict)
    job_write_count: int = 0
    usage_write_count: int = 0
    _write_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    # Dreams (parent artifacts, owned by the journal side of the system).

    def create_dream(self, owner_id: str, title: str | None = None) -> DreamRecord:
        dream = DreamRecord(
            id=str(uuid4()),
            owner_id=owner_id,
            title=title,
            created_at=datetime.now(UTC),
        )
        with self._write_lock:
            self.dreams[dream.id] = dream
        return dream

    def get_dream(self, dream_id: str) -> DreamRecord | None:
        return self.dreams.get(dream_id)

    def get_dream_for_owner(self, owner_id: str, dream_id: str) -> DreamRecord | None:
        dream = self.dreams.get(dream_id)
        if dream is None or dream.owner_id != owner_id:
            return None
        return dream

    def link_dream_video(self, *, dream_id: str, video_path: str) -> bool:
        with self._write_lock:
            dream = self.dreams.get(dream_id)
            if dream is None:
                return False
            dream.video_path = video_path
            return True

    # Usage ledger rows.

    def get_or_create_usage_account(self, user_id: str) -> UsageAccountRecord:
        with self._write_lock:
            account = self.usage_accounts.get(user_id)
            if account is None:
                now = datetime.now(UTC)
                account = UsageAccountRecord(
                    user_id=user_id,
                    tier=SubscriptionTier.FREE,
                    credits_remaining=self.free_tier_initial_credits,
                    videos_used_this_period=0,
                    quota_limit=self.pro_monthly_quota,
                    period_reset_at=next_period_start(now),
                    updated_at=now,
                )
                self.usage_accounts[user_id] = account
                self.usage_write_count += 1
            return account

    def set_subscription_tier(self, user_id: str, tier: SubscriptionTier) -> UsageAccountRecord:
        """Entitlement sync hook; the subscription store owns the tier itself."""
        account = self.get_or_create_usage_account(user_id)
        with self._write_lock:
            account.tier = tier
            account.updated_at = datetime.now(UTC)
            self.usage_write_count += 1
        return account

    def consume_unit(self, user_id: str, *, now: datetime | None = None) -> SubscriptionTier:
        """Decrement a free credit or take one unit of pro quota, guarded at commit time."""
        account = self.get_or_create_usage_account(user_id)
        current = now or datetime.now(UTC)
        with self._write_lock:
            if account.tier is SubscriptionTier.PRO:
                used, reset_at = effective_period_usage(
                    used=account.videos_used_this_period,
                    period_reset_at=account.period_reset_at,
                    now=current,
                )
                if used >= account.quota_limit:
                    raise InsufficientUnitsError("Monthly quota exhausted")
                account.videos_used_this_period = used + 1
                account.period_reset_at = reset_at
            else:
                if account.credits_remaining <= 0:
                    raise InsufficientUnitsError("No credits remaining")
                account.credits_remaining -= 1
            account.updated_at = current
            self.usage_write_count += 1
            return account.tier

    def refund_credit(self, user_id: str) -> int:
        with self._write_lock:
            account = self.usage_accounts.get(user_id)
            if account is None:
                raise KeyError(user_id)
            account.credits_remaining += 1
            account.updated_at = datetime.now(UTC)
            self.usage_write_count += 1
            return account.credits_remaining

    # Video jobs.

    def insert_job(
        self,
        *,
        owner_id: str,
        dream_id: str,
        status: VideoJobStatus,
        correlation_id: str | None = None,
        consumed_tier: SubscriptionTier | None = None,
        error_message: str | None = None,
        failure_code: FailureCode | None = None,
    ) -> VideoJobRecord:
        if status not in INITIAL_STATES:
            raise ValueError(f"Jobs cannot be created in status {status.value}")

        now = datetime.now(UTC)
        job = VideoJobRecord(
            id=str(uuid4()),
            owner_id=owner_id,
            dream_id=dream_id,
            status=status,
            created_at=now,
            updated_at=now,
            correlation_id=correlation_id,
            consumed_tier=consumed_tier,
            error_message=error_message,
            failure_code=failure_code,
            completed_at=now if status is VideoJobStatus.FAILED else None,
        )
        with self._write_lock:
            if correlation_id is not None and correlation_id in self.job_ids_by_correlation_id:
                raise ValueError("correlation_id already recorded")
            self.jobs[job.id] = job
            if correlation_id is not None:
                self.job_ids_by_correlation_id[correlation_id] = job.id
            self.job_write_count += 1
        return job

    def get_job(self, job_id: str) -> VideoJobRecord | None:
        return self.jobs.get(job_id)

    def get_job_for_owner(self, owner_id: str, job_id: str) -> VideoJobRecord | None:
        job = self.jobs.get(job_id)
        if job is None or job.owner_id != owner_id:
            return None
        return job

    def get_job_by_correlation_id(self, correlation_id: str) -> VideoJobRecord | None:
        job_id = self.job_ids_by_correlation_id.get(correlation_id)
        if job_id is None:
            return None
        return self.jobs.get(job_id)

    def get_job_for_owner_by_correlation_id(self, owner_id: str, correlation_id: str) -> VideoJobRecord | None:
        job = self.get_job_by_correlation_id(correlation_id)
        if job is None or job.owner_id != owner_id:
            return None
        return job

    def list_jobs_for_dream(self, *, owner_id: str, dream_id: str) -> list[VideoJobRecord]:
        jobs = [job for job in self.jobs.values() if job.owner_id == owner_id and job.dream_id == dream_id]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs

    def begin_finalization(self, job_id: str, *, lease_seconds: int, now: datetime | None = None) -> bool:
        """Claim the right to run terminal side effects; False if terminal or claimed by a live lease."""
        current = now or datetime.now(UTC)
        with self._write_lock:
            job = self.jobs.get(job_id)
            if job is None or job.status not in ACTIVE_STATES:
                return False
            if job.finalizing_since is not None and current - job.finalizing_since < timedelta(seconds=lease_seconds):
                return False
            job.finalizing_since = current
            return True

    def release_finalization(self, job_id: str) -> None:
        with self._write_lock:
            job = self.jobs.get(job_id)
            if job is not None and job.status in ACTIVE_STATES:
                job.finalizing_since = None

    def mark_processing(self, job_id: str) -> bool:
        with self._write_lock:
            job = self.jobs.get(job_id)
            if job is None or job.status is not VideoJobStatus.PENDING:
                return False
            self._transition(job, VideoJobStatus.PROCESSING)
            return True

    def complete_job(
        self,
        job_id: str,
        *,
        video_path: str | None,
        video_url: str,
        completed_at: datetime | None = None,
    ) -> bool:
        with self._write_lock:
            job = self.jobs.get(job_id)
            if job is None or job.status not in ACTIVE_STATES:
                return False
            self._transition(job, VideoJobStatus.COMPLETED)
            job.video_path = video_path
            job.video_url = video_url
            job.completed_at = completed_at or job.updated_at
            job.finalizing_since = None
            return True

    def fail_job(
        self,
        job_id: str,
        *,
        error_message: str,
        failure_code: FailureCode,
        completed_at: datetime | None = None,
    ) -> tuple[bool, bool]:
        """Move an active job to failed; returns ``(applied, refund_due)``.

        ``refund_due`` is True for exactly one caller per job: the one whose
        write flipped ``refunded`` for a job that consumed a free credit.
        """
        with self._write_lock:
            job = self.jobs.get(job_id)
            if job is None or job.status not in ACTIVE_STATES:
                return False, False
            self._transition(job, VideoJobStatus.FAILED)
            job.error_message = error_message
            job.failure_code = failure_code
            job.completed_at = completed_at or job.updated_at
            job.finalizing_since = None
            refund_due = job.consumed_tier is SubscriptionTier.FREE and not job.refunded
            if refund_due:
                job.refunded = True
            return True, refund_due

    def _transition(self, job: VideoJobRecord, new_status: VideoJobStatus) -> None:
        ensure_transition(job.status, new_status)
        job.status = new_status
        job.updated_at = datetime.now(UTC)
        self.job_write_count += 1

    # Idempotency ledger.

    def insert_notification_key(self, key: str) -> bool:
        """Atomic check-and-insert; False means the key was already processed."""
        with self._write_lock:
            if key in self.processed_notifications:
                return False
            self.processed_notifications[key] = ProcessedNotificationRecord(key=key, received_at=datetime.now(UTC))
            return True

    def release_notification_key(self, key: str) -> None:
        with self._write_lock:
            self.processed_notifications.pop(key, None)
