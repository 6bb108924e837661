"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.webhook_signing import WebhookVerificationError, secret_bytes


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    auth_provider: Literal["mock", "firebase"] = "firebase"
    firebase_project_id: str | None = None
    firebase_audience: str | None = None

    render_provider: Literal["fake", "replicate"] = "replicate"
    provider_base_url: str = "https://api.replicate.com/v1"
    provider_api_token: str | None = None
    # Kling v2.5 Turbo Pro, 5 second text-to-video.
    provider_model_version: str = "939cd1851c5b112f284681b57ee9b0f36d0f913ba97de5845a7eef92d52837df"
    provider_timeout_seconds: float = Field(default=30.0, gt=0)
    artifact_download_timeout_seconds: float = Field(default=120.0, gt=0)
    public_webhook_url: str | None = None

    webhook_secret: str
    webhook_tolerance_seconds: int = Field(default=300, ge=1)

    storage_backend: Literal["memory", "local"] = "local"
    storage_root: str = "./var/artifacts"
    storage_bucket: str = "dream-videos"

    notifier_backend: Literal["log", "memory"] = "log"

    free_tier_initial_credits: int = Field(default=3, ge=0)
    pro_monthly_quota: int = Field(default=30, ge=0)
    finalization_lease_seconds: int = Field(default=300, ge=1)

    model_config = SettingsConfigDict(env_prefix="DREAMREEL_", extra="ignore")

    @field_validator("webhook_secret")
    @classmethod
    def _check_webhook_secret(cls, value: str) -> str:
        try:
            key = secret_bytes(value)
        except WebhookVerificationError as exc:
            raise ValueError(str(exc)) from exc
        if not key:
            raise ValueError("Webhook secret must not be empty")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
