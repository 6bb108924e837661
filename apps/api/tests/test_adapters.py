"""Storage, notifier, and adapter factory tests."""

from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from app.adapters.factory import build_artifact_storage, build_notifier, build_render_provider
from app.adapters.notifications import InMemoryNotifier, LogNotifier
from app.adapters.provider import FakeRenderProvider, ReplicateRenderProvider
from app.adapters.storage import ArtifactStorageError, InMemoryArtifactStorage, LocalArtifactStorage
from app.core.config import Settings
from app.schemas.notification import VideoOutcome, VideoOutcomeEvent


class LocalArtifactStorageTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.storage = LocalArtifactStorage(root=self.root, bucket="dream-videos")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_upload_writes_under_bucket_and_resolves_file_url(self) -> None:
        path = self.storage.upload(path="user-1/job-1.mp4", content=b"clip", content_type="video/mp4")

        target = self.root / "dream-videos" / "user-1" / "job-1.mp4"
        self.assertEqual(path, "user-1/job-1.mp4")
        self.assertEqual(target.read_bytes(), b"clip")
        self.assertFalse(target.with_name("job-1.mp4.partial").exists())
        self.assertEqual(self.storage.resolve_url(path), target.resolve().as_uri())

    def test_upload_overwrites_existing_object(self) -> None:
        self.storage.upload(path="user-1/job-1.mp4", content=b"old", content_type="video/mp4")
        self.storage.upload(path="user-1/job-1.mp4", content=b"new", content_type="video/mp4")

        self.assertEqual((self.root / "dream-videos" / "user-1" / "job-1.mp4").read_bytes(), b"new")

    def test_missing_object_resolves_to_none(self) -> None:
        self.assertIsNone(self.storage.resolve_url("user-1/missing.mp4"))

    def test_path_escaping_bucket_is_rejected(self) -> None:
        with self.assertRaises(ArtifactStorageError):
            self.storage.upload(path="../outside.mp4", content=b"x", content_type="video/mp4")
        self.assertFalse((self.root / "outside.mp4").exists())


class NotifierTests(unittest.TestCase):
    def test_log_notifier_emits_outcome_without_raw_dream_id(self) -> None:
        event = VideoOutcomeEvent(job_id="job-1", dream_id="dream-secret", outcome=VideoOutcome.READY)

        with self.assertLogs("app.adapters.notifications.log_notifier", level="INFO") as logs:
            LogNotifier().publish(event)

        self.assertIn("outcome=ready", logs.output[0])
        self.assertNotIn("dream-secret", logs.output[0])


class AdapterFactoryTests(unittest.TestCase):
    def test_test_backends_are_selected_from_settings(self) -> None:
        settings = Settings(
            webhook_secret="secret",
            render_provider="fake",
            storage_backend="memory",
            notifier_backend="memory",
            storage_bucket="bucket-a",
        )

        self.assertIsInstance(build_render_provider(settings), FakeRenderProvider)
        storage = build_artifact_storage(settings)
        self.assertIsInstance(storage, InMemoryArtifactStorage)
        self.assertEqual(storage.bucket, "bucket-a")
        self.assertIsInstance(build_notifier(settings), InMemoryNotifier)

    def test_production_backends_are_selected_from_settings(self) -> None:
        with tempfile.TemporaryDirectory() as root:
            settings = Settings(
                webhook_secret="secret",
                render_provider="replicate",
                provider_api_token="r8_token",
                storage_backend="local",
                storage_root=root,
                notifier_backend="log",
            )

            self.assertIsInstance(build_render_provider(settings), ReplicateRenderProvider)
            self.assertIsInstance(build_artifact_storage(settings), LocalArtifactStorage)
            self.assertIsInstance(build_notifier(settings), LogNotifier)
