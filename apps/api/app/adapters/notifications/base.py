"""Notification collaborator interface."""

from abc import ABC, abstractmethod

from app.schemas.notification import VideoOutcomeEvent


class Notifier(ABC):
    """Fire-and-forget sink for job outcome events; delivery and dedup live downstream."""

    @abstractmethod
    def publish(self, event: VideoOutcomeEvent) -> None:
        """Hand one outcome event to the delivery collaborator."""


__all__ = ["Notifier"]
