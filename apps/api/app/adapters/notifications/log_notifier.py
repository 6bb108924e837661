"""Notifier that emits outcome events to the application log."""

import logging

from app.adapters.notifications.base import Notifier
from app.core.logging_safety import safe_log_identifier
from app.schemas.notification import VideoOutcomeEvent

logger = logging.getLogger(__name__)


class LogNotifier(Notifier):
    def publish(self, event: VideoOutcomeEvent) -> None:
        logger.info(
            "notify.video_outcome job_id=%s dream_id=%s outcome=%s",
            event.job_id,
            safe_log_identifier(event.dream_id, prefix="drm"),
            event.outcome.value,
        )


__all__ = ["LogNotifier"]
