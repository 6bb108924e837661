"""Provider webhook schemas."""

from pydantic import BaseModel, ConfigDict

from app.schemas.video_job import VideoJobStatus


class ProviderWebhookPayload(BaseModel):
    """Prediction snapshot pushed by the render provider."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    output: str | list[str] | None = None
    error: str | None = None


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: bool = False
    job_status: VideoJobStatus | None = None
