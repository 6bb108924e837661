"""Recording notifier for tests and local inspection."""

from dataclasses import dataclass, field

from app.adapters.notifications.base import Notifier
from app.schemas.notification import VideoOutcomeEvent


@dataclass(slots=True)
class InMemoryNotifier(Notifier):
    events: list[VideoOutcomeEvent] = field(default_factory=list)
    fail_with: Exception | None = None

    def publish(self, event: VideoOutcomeEvent) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(event)


__all__ = ["InMemoryNotifier"]
