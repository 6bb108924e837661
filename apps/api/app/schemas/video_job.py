"""Video job API schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class VideoJobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureCode(str, Enum):
    DISPATCH_FAILED = "DISPATCH_FAILED"
    UNITS_EXHAUSTED = "UNITS_EXHAUSTED"
    ARTIFACT_PERSIST_FAILED = "ARTIFACT_PERSIST_FAILED"
    PROVIDER_REPORTED_FAILURE = "PROVIDER_REPORTED_FAILURE"


class VideoJob(BaseModel):
    id: str
    dream_id: str
    status: VideoJobStatus
    provider_job_id: str | None = None
    video_path: str | None = None
    video_url: str | None = None
    error_message: str | None = None
    failure_code: FailureCode | None = None
    created_at: datetime
    completed_at: datetime | None = None


class GenerateVideoRequest(BaseModel):
    dream_id: str = Field(min_length=1)
    prompt: str = Field(min_length=1, max_length=4000)


class GenerateVideoAccepted(BaseModel):
    job_id: str
    provider_job_id: str
    status: VideoJobStatus


class VideoStatusRequest(BaseModel):
    provider_job_id: str = Field(min_length=1)


class VideoStatusResponse(BaseModel):
    status: VideoJobStatus
    video_path: str | None = None
    video_url: str | None = None
    error: str | None = None


class PlaybackSource(str, Enum):
    STORAGE = "storage"
    PROVIDER = "provider"


class VideoPlayback(BaseModel):
    job_id: str
    url: str
    source: PlaybackSource
