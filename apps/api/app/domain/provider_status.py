"""Mapping from provider prediction statuses to terminal job outcomes."""

from __future__ import annotations

from dataclasses import dataclass

from app.core.logging_safety import clip_message
from app.schemas.video_job import FailureCode

_SUCCEEDED = "succeeded"
_FAILED_STATUSES = frozenset({"failed", "canceled", "cancelled"})
_PROCESSING = "processing"
_DEFAULT_FAILURE_MESSAGE = "Video generation failed"


@dataclass(slots=True, frozen=True)
class Succeeded:
    output_url: str


@dataclass(slots=True, frozen=True)
class Failed:
    error: str
    failure_code: FailureCode = FailureCode.PROVIDER_REPORTED_FAILURE


TerminalOutcome = Succeeded | Failed


def first_output_url(output: str | list[str] | None) -> str | None:
    if isinstance(output, list):
        return next((item for item in output if isinstance(item, str) and item), None)
    return output or None


def terminal_outcome(status: str, *, output: str | list[str] | None, error: str | None) -> TerminalOutcome | None:
    """Return the terminal outcome for a provider status, or None while the render is still running."""
    normalized = status.strip().lower()
    if normalized == _SUCCEEDED:
        output_url = first_output_url(output)
        if output_url is None:
            return Failed(error="Provider reported success without an output")
        return Succeeded(output_url=output_url)
    if normalized in _FAILED_STATUSES:
        return Failed(error=clip_message(error, fallback=_DEFAULT_FAILURE_MESSAGE))
    return None


def is_processing(status: str) -> bool:
    """True once the provider has started rendering; "starting" still counts as pending."""
    return status.strip().lower() == _PROCESSING
