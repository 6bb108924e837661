"""API error response schemas."""

from datetime import datetime
from typing import Any
from typing import Literal

from pydantic import BaseModel

from app.schemas.video_job import VideoJobStatus


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class NoLeakNotFoundError(BaseModel):
    code: Literal["RESOURCE_NOT_FOUND"]
    message: str


class NoCreditsError(BaseModel):
    code: Literal["NO_CREDITS"]
    message: str


class QuotaExceededErrorDetails(BaseModel):
    used: int
    limit: int
    resets_at: datetime


class QuotaExceededError(BaseModel):
    code: Literal["QUOTA_EXCEEDED"]
    message: str
    details: QuotaExceededErrorDetails


class GenerationFailedError(BaseModel):
    code: Literal["GENERATION_FAILED", "BILLING_REQUIRED"]
    message: str
    details: dict[str, Any] | None = None


class UnitsExhaustedError(BaseModel):
    code: Literal["UNITS_EXHAUSTED"]
    message: str
    details: dict[str, Any] | None = None


class ProviderUnavailableError(BaseModel):
    code: Literal["PROVIDER_UNAVAILABLE"]
    message: str


class VideoNotReadyErrorDetails(BaseModel):
    current_status: VideoJobStatus


class VideoNotReadyError(BaseModel):
    code: Literal["VIDEO_NOT_READY"]
    message: str
    details: VideoNotReadyErrorDetails
