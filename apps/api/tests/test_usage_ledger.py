"""Usage ledger: free credits, pro monthly quota, and concurrent consumption."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import threading
import unittest

from app.domain.usage_period import effective_period_usage, next_period_start
from app.repositories.memory import InMemoryStore, InsufficientUnitsError
from app.schemas.usage import SubscriptionTier
from app.services.usage_ledger import REASON_NO_CREDITS, REASON_QUOTA_EXCEEDED, UsageLedgerService


class UsagePeriodTests(unittest.TestCase):
    def test_next_period_start_is_first_of_next_month_utc(self) -> None:
        self.assertEqual(
            next_period_start(datetime(2026, 3, 15, 18, 30, tzinfo=UTC)),
            datetime(2026, 4, 1, tzinfo=UTC),
        )

    def test_next_period_start_rolls_over_year(self) -> None:
        self.assertEqual(
            next_period_start(datetime(2026, 12, 31, 23, 59, tzinfo=UTC)),
            datetime(2027, 1, 1, tzinfo=UTC),
        )

    def test_usage_reads_as_zero_once_reset_instant_passes(self) -> None:
        reset_at = datetime(2026, 4, 1, tzinfo=UTC)
        self.assertEqual(
            effective_period_usage(used=7, period_reset_at=reset_at, now=reset_at - timedelta(seconds=1)),
            (7, reset_at),
        )
        self.assertEqual(
            effective_period_usage(used=7, period_reset_at=reset_at, now=reset_at),
            (0, datetime(2026, 5, 1, tzinfo=UTC)),
        )


class UsageLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore(free_tier_initial_credits=3, pro_monthly_quota=30)
        self.ledger = UsageLedgerService(self.store)

    def test_new_account_starts_on_free_tier_with_initial_credits(self) -> None:
        eligibility = self.ledger.check_eligibility(user_id="user-1")

        self.assertTrue(eligibility.allowed)
        self.assertIsNone(eligibility.reason)
        self.assertEqual(eligibility.tier, SubscriptionTier.FREE)
        self.assertEqual(eligibility.credits_remaining, 3)
        self.assertIsNone(eligibility.quota)

    def test_free_tier_runs_out_of_credits(self) -> None:
        for _ in range(3):
            self.assertEqual(self.ledger.consume_one(user_id="user-1"), SubscriptionTier.FREE)

        eligibility = self.ledger.check_eligibility(user_id="user-1")
        self.assertFalse(eligibility.allowed)
        self.assertEqual(eligibility.reason, REASON_NO_CREDITS)
        self.assertEqual(eligibility.credits_remaining, 0)
        with self.assertRaises(InsufficientUnitsError):
            self.ledger.consume_one(user_id="user-1")

    def test_refund_restores_one_credit(self) -> None:
        self.ledger.consume_one(user_id="user-1")
        self.assertEqual(self.ledger.refund_one(user_id="user-1"), 3)

    def test_refund_for_unknown_account_raises(self) -> None:
        with self.assertRaises(KeyError):
            self.ledger.refund_one(user_id="nobody")

    def test_pro_quota_exhaustion_reports_usage_and_reset(self) -> None:
        now = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)
        account = self.store.set_subscription_tier("user-pro", SubscriptionTier.PRO)
        account.period_reset_at = next_period_start(now)
        account.videos_used_this_period = 30

        eligibility = self.ledger.check_eligibility(user_id="user-pro", now=now)

        self.assertFalse(eligibility.allowed)
        self.assertEqual(eligibility.reason, REASON_QUOTA_EXCEEDED)
        self.assertEqual(eligibility.quota.used, 30)
        self.assertEqual(eligibility.quota.limit, 30)
        self.assertEqual(eligibility.quota.remaining, 0)
        self.assertEqual(eligibility.quota.resets_at, datetime(2026, 4, 1, tzinfo=UTC))
        with self.assertRaises(InsufficientUnitsError):
            self.store.consume_unit("user-pro", now=now)

    def test_pro_quota_resets_at_start_of_next_month(self) -> None:
        now = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)
        account = self.store.set_subscription_tier("user-pro", SubscriptionTier.PRO)
        account.period_reset_at = next_period_start(now)
        account.videos_used_this_period = 30
        after_reset = datetime(2026, 4, 1, 0, 0, 1, tzinfo=UTC)

        eligibility = self.ledger.check_eligibility(user_id="user-pro", now=after_reset)
        self.assertTrue(eligibility.allowed)
        self.assertEqual(eligibility.quota.used, 0)
        self.assertEqual(eligibility.quota.resets_at, datetime(2026, 5, 1, tzinfo=UTC))

        self.assertEqual(self.store.consume_unit("user-pro", now=after_reset), SubscriptionTier.PRO)
        self.assertEqual(account.videos_used_this_period, 1)
        self.assertEqual(account.period_reset_at, datetime(2026, 5, 1, tzinfo=UTC))

    def test_pro_consumption_leaves_free_credits_untouched(self) -> None:
        account = self.store.set_subscription_tier("user-pro", SubscriptionTier.PRO)
        self.ledger.consume_one(user_id="user-pro")
        self.assertEqual(account.credits_remaining, 3)
        self.assertEqual(account.videos_used_this_period, 1)

    def test_concurrent_consume_of_last_credit_admits_exactly_one(self) -> None:
        store = InMemoryStore(free_tier_initial_credits=1)
        ledger = UsageLedgerService(store)
        store.get_or_create_usage_account("user-race")
        barrier = threading.Barrier(8)
        outcomes: list[str] = []
        outcomes_lock = threading.Lock()

        def _consume() -> None:
            barrier.wait()
            try:
                ledger.consume_one(user_id="user-race")
                result = "ok"
            except InsufficientUnitsError:
                result = "exhausted"
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=_consume) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(outcomes.count("ok"), 1)
        self.assertEqual(outcomes.count("exhausted"), 7)
        self.assertEqual(store.usage_accounts["user-race"].credits_remaining, 0)
