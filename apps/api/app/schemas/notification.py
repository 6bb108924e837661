"""Outbound notification event schemas."""

from enum import Enum

from pydantic import BaseModel


class VideoOutcome(str, Enum):
    READY = "ready"
    FAILED = "failed"


class VideoOutcomeEvent(BaseModel):
    job_id: str
    dream_id: str
    outcome: VideoOutcome
    owner_display_hint: str | None = None
