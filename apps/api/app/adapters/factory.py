"""Build configured adapters from settings."""

from __future__ import annotations

from app.adapters.notifications import InMemoryNotifier, LogNotifier, Notifier
from app.adapters.provider import FakeRenderProvider, RenderProvider, ReplicateRenderProvider
from app.adapters.storage import ArtifactStorage, InMemoryArtifactStorage, LocalArtifactStorage
from app.core.config import Settings


def build_render_provider(settings: Settings) -> RenderProvider:
    if settings.render_provider == "fake":
        return FakeRenderProvider()
    return ReplicateRenderProvider(
        api_token=settings.provider_api_token,
        model_version=settings.provider_model_version,
        base_url=settings.provider_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
        download_timeout_seconds=settings.artifact_download_timeout_seconds,
    )


def build_artifact_storage(settings: Settings) -> ArtifactStorage:
    if settings.storage_backend == "memory":
        return InMemoryArtifactStorage(bucket=settings.storage_bucket)
    return LocalArtifactStorage(root=settings.storage_root, bucket=settings.storage_bucket)


def build_notifier(settings: Settings) -> Notifier:
    if settings.notifier_backend == "memory":
        return InMemoryNotifier()
    return LogNotifier()
