"""Usage ledger service layer."""

from datetime import UTC, datetime
import logging

from app.core.logging_safety import safe_log_identifier
from app.domain.usage_period import effective_period_usage
from app.repositories.memory import InMemoryStore, UsageAccountRecord
from app.schemas.usage import Eligibility, QuotaStatus, SubscriptionTier

logger = logging.getLogger(__name__)

REASON_NO_CREDITS = "NO_CREDITS"
REASON_QUOTA_EXCEEDED = "QUOTA_EXCEEDED"


class UsageLedgerService:
    """Free credits and pro monthly quota.

    ``consume_one`` and ``refund_one`` are single conditional writes in the
    store. Per-job refund idempotence is not tracked here; the finalizer only
    calls ``refund_one`` after flipping the job's ``refunded`` flag.
    """

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def check_eligibility(self, *, user_id: str, now: datetime | None = None) -> Eligibility:
        account = self._store.get_or_create_usage_account(user_id)
        current = now or datetime.now(UTC)

        if account.tier is SubscriptionTier.PRO:
            quota = self.quota_status(account, now=current)
            return Eligibility(
                allowed=quota.can_generate,
                reason=None if quota.can_generate else REASON_QUOTA_EXCEEDED,
                tier=account.tier,
                quota=quota,
            )

        allowed = account.credits_remaining > 0
        return Eligibility(
            allowed=allowed,
            reason=None if allowed else REASON_NO_CREDITS,
            tier=account.tier,
            credits_remaining=account.credits_remaining,
        )

    @staticmethod
    def quota_status(account: UsageAccountRecord, *, now: datetime) -> QuotaStatus:
        used, resets_at = effective_period_usage(
            used=account.videos_used_this_period,
            period_reset_at=account.period_reset_at,
            now=now,
        )
        return QuotaStatus(
            can_generate=used < account.quota_limit,
            used=used,
            limit=account.quota_limit,
            remaining=max(0, account.quota_limit - used),
            resets_at=resets_at,
        )

    def consume_one(self, *, user_id: str) -> SubscriptionTier:
        """Take one unit; raises ``InsufficientUnitsError`` if none is left at commit time."""
        tier = self._store.consume_unit(user_id)
        logger.info(
            "usage.consumed user_id=%s tier=%s",
            safe_log_identifier(user_id, prefix="uid"),
            tier.value,
        )
        return tier

    def refund_one(self, *, user_id: str) -> int:
        credits = self._store.refund_credit(user_id)
        logger.info(
            "usage.refunded user_id=%s credits_remaining=%s",
            safe_log_identifier(user_id, prefix="uid"),
            credits,
        )
        return credits
