"""Finalizer: exactly-once terminal side effects across racing callers."""

from __future__ import annotations

import asyncio
import unittest
from unittest.mock import patch

from app.adapters.provider import ProviderError
from app.adapters.storage import InMemoryArtifactStorage
from app.core.config import Settings
from app.domain.provider_status import Failed, Succeeded
from app.schemas.notification import VideoOutcome
from app.schemas.usage import SubscriptionTier
from app.schemas.video_job import FailureCode, VideoJobStatus
from app.services.container import build_services

OUTPUT_URL = "https://delivery.example.test/out/video.mp4"


def _test_services():
    return build_services(
        Settings(
            webhook_secret="test-webhook-secret",
            render_provider="fake",
            storage_backend="memory",
            notifier_backend="memory",
        )
    )


class CompletionFinalizerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.services = _test_services()
        self.store = self.services.store
        self.provider = self.services.provider
        self.storage = self.services.storage
        self.notifier = self.services.notifier
        self.finalizer = self.services.finalizer
        self.dream = self.store.create_dream(owner_id="user-1", title="The house with no doors")
        accepted = await self.services.dispatcher.dispatch(owner_id="user-1", dream_id=self.dream.id, prompt="house")
        self.job = self.store.get_job(accepted.job_id)
        self.correlation_id = accepted.provider_job_id
        self.provider.set_status(
            self.correlation_id,
            "succeeded",
            output=[OUTPUT_URL],
            artifact=b"\x00\x00\x00\x18ftypmp42",
        )

    async def test_success_persists_artifact_links_dream_and_notifies(self) -> None:
        result = await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Succeeded(OUTPUT_URL))

        self.assertTrue(result.applied)
        self.assertEqual(result.status, VideoJobStatus.COMPLETED)
        expected_path = f"user-1/{self.job.id}.mp4"
        self.assertEqual(self.job.video_path, expected_path)
        self.assertEqual(self.job.video_url, OUTPUT_URL)
        self.assertIsNotNone(self.job.completed_at)
        self.assertIsNone(self.job.finalizing_since)
        self.assertEqual(self.storage.objects[expected_path], (b"\x00\x00\x00\x18ftypmp42", "video/mp4"))
        self.assertEqual(self.dream.video_path, expected_path)
        self.assertEqual(len(self.notifier.events), 1)
        event = self.notifier.events[0]
        self.assertEqual(event.outcome, VideoOutcome.READY)
        self.assertEqual(event.job_id, self.job.id)
        self.assertEqual(event.owner_display_hint, "The house with no doors")

    async def test_second_finalize_is_a_no_op(self) -> None:
        await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Succeeded(OUTPUT_URL))
        writes = self.store.job_write_count

        again = await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Failed("late failure"))

        self.assertFalse(again.applied)
        self.assertEqual(again.status, VideoJobStatus.COMPLETED)
        self.assertEqual(self.store.job_write_count, writes)
        self.assertEqual(self.provider.download_count, 1)
        self.assertEqual(self.storage.upload_count, 1)
        self.assertEqual(len(self.notifier.events), 1)

    async def test_caller_losing_claim_does_not_download(self) -> None:
        self.assertTrue(self.store.begin_finalization(self.job.id, lease_seconds=300))

        result = await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Succeeded(OUTPUT_URL))

        self.assertFalse(result.applied)
        self.assertEqual(self.provider.download_count, 0)
        self.assertEqual(self.job.status, VideoJobStatus.PENDING)

    async def test_unknown_correlation_id_returns_none(self) -> None:
        self.assertIsNone(await self.finalizer.finalize(correlation_id="pred-unknown", outcome=Failed("x")))

    async def test_provider_failure_refunds_free_credit_once(self) -> None:
        self.assertEqual(self.store.usage_accounts["user-1"].credits_remaining, 2)

        first = await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Failed("NSFW content"))
        second = await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Failed("NSFW content"))

        self.assertTrue(first.applied)
        self.assertFalse(second.applied)
        self.assertEqual(self.job.status, VideoJobStatus.FAILED)
        self.assertEqual(self.job.failure_code, FailureCode.PROVIDER_REPORTED_FAILURE)
        self.assertEqual(self.job.error_message, "NSFW content")
        self.assertTrue(self.job.refunded)
        self.assertEqual(self.store.usage_accounts["user-1"].credits_remaining, 3)
        self.assertEqual([event.outcome for event in self.notifier.events], [VideoOutcome.FAILED])

    async def test_pro_failure_is_not_refunded(self) -> None:
        self.store.set_subscription_tier("user-2", SubscriptionTier.PRO)
        dream = self.store.create_dream(owner_id="user-2", title=None)
        accepted = await self.services.dispatcher.dispatch(owner_id="user-2", dream_id=dream.id, prompt="p")
        account = self.store.usage_accounts["user-2"]

        await self.finalizer.finalize(correlation_id=accepted.provider_job_id, outcome=Failed("boom"))

        self.assertEqual(account.videos_used_this_period, 1)
        self.assertEqual(account.credits_remaining, 3)
        self.assertFalse(self.store.get_job(accepted.job_id).refunded)

    async def test_download_failure_downgrades_to_failed_with_refund(self) -> None:
        self.provider.fail_next_download = ProviderError("Artifact download failed", status_code=410)

        result = await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Succeeded(OUTPUT_URL))

        self.assertTrue(result.applied)
        self.assertEqual(self.job.status, VideoJobStatus.FAILED)
        self.assertEqual(self.job.failure_code, FailureCode.ARTIFACT_PERSIST_FAILED)
        self.assertEqual(self.job.error_message, "Failed to save video")
        self.assertIsNone(self.job.video_path)
        self.assertIsNone(self.dream.video_path)
        self.assertEqual(self.store.usage_accounts["user-1"].credits_remaining, 3)

    async def test_upload_failure_downgrades_to_failed(self) -> None:
        self.storage.fail_next_upload = "bucket unavailable"

        await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Succeeded(OUTPUT_URL))

        self.assertEqual(self.job.status, VideoJobStatus.FAILED)
        self.assertEqual(self.job.failure_code, FailureCode.ARTIFACT_PERSIST_FAILED)
        self.assertEqual(self.storage.objects, {})

    async def test_notifier_failure_does_not_undo_completion(self) -> None:
        self.notifier.fail_with = RuntimeError("push gateway down")

        with self.assertLogs("app.services.finalizer", level="ERROR"):
            result = await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Succeeded(OUTPUT_URL))

        self.assertTrue(result.applied)
        self.assertEqual(self.job.status, VideoJobStatus.COMPLETED)

    async def test_unexpected_error_releases_claim_for_retry(self) -> None:
        with patch.object(InMemoryArtifactStorage, "upload", side_effect=RuntimeError("unexpected")):
            with self.assertRaises(RuntimeError):
                await self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Succeeded(OUTPUT_URL))

        self.assertEqual(self.job.status, VideoJobStatus.PENDING)
        self.assertIsNone(self.job.finalizing_since)

    async def test_concurrent_failures_refund_and_notify_once(self) -> None:
        results = await asyncio.gather(
            *(
                self.finalizer.finalize(correlation_id=self.correlation_id, outcome=Failed("provider error"))
                for _ in range(5)
            )
        )

        self.assertEqual(sum(1 for result in results if result.applied), 1)
        self.assertEqual(self.store.usage_accounts["user-1"].credits_remaining, 3)
        self.assertEqual(len(self.notifier.events), 1)

    async def test_mark_processing_moves_pending_job_once(self) -> None:
        self.finalizer.mark_processing(self.correlation_id)
        self.finalizer.mark_processing(self.correlation_id)

        self.assertEqual(self.job.status, VideoJobStatus.PROCESSING)
