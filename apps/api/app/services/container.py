"""Process-wide service graph, built once at application start."""

from dataclasses import dataclass

from app.adapters.factory import build_artifact_storage, build_notifier, build_render_provider
from app.adapters.notifications import Notifier
from app.adapters.provider import RenderProvider
from app.adapters.storage import ArtifactStorage
from app.core.config import Settings
from app.repositories.memory import InMemoryStore
from app.services.dispatcher import RenderDispatcher
from app.services.finalizer import CompletionFinalizer
from app.services.usage_ledger import UsageLedgerService
from app.services.video_jobs import VideoJobService
from app.services.video_status import VideoStatusService
from app.services.webhooks import WebhookReceiver


@dataclass(slots=True, frozen=True)
class ServiceContainer:
    store: InMemoryStore
    provider: RenderProvider
    storage: ArtifactStorage
    notifier: Notifier
    ledger: UsageLedgerService
    dispatcher: RenderDispatcher
    finalizer: CompletionFinalizer
    webhooks: WebhookReceiver
    status: VideoStatusService
    jobs: VideoJobService


def build_services(settings: Settings) -> ServiceContainer:
    store = InMemoryStore(
        free_tier_initial_credits=settings.free_tier_initial_credits,
        pro_monthly_quota=settings.pro_monthly_quota,
    )
    provider = build_render_provider(settings)
    storage = build_artifact_storage(settings)
    notifier = build_notifier(settings)

    ledger = UsageLedgerService(store)
    finalizer = CompletionFinalizer(
        store=store,
        ledger=ledger,
        provider=provider,
        storage=storage,
        notifier=notifier,
        lease_seconds=settings.finalization_lease_seconds,
    )
    return ServiceContainer(
        store=store,
        provider=provider,
        storage=storage,
        notifier=notifier,
        ledger=ledger,
        dispatcher=RenderDispatcher(
            store=store,
            ledger=ledger,
            provider=provider,
            webhook_url=settings.public_webhook_url,
        ),
        finalizer=finalizer,
        webhooks=WebhookReceiver(
            store=store,
            finalizer=finalizer,
            secret=settings.webhook_secret,
            tolerance_seconds=settings.webhook_tolerance_seconds,
        ),
        status=VideoStatusService(store=store, provider=provider, finalizer=finalizer),
        jobs=VideoJobService(store=store, storage=storage),
    )
