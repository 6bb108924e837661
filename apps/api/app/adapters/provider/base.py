"""Render provider interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.domain.provider_status import first_output_url


class ProviderError(Exception):
    """Raised when the render provider rejects a call or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass(slots=True, frozen=True)
class ProviderPrediction:
    id: str
    status: str
    output: str | list[str] | None = None
    error: str | None = None

    @property
    def output_url(self) -> str | None:
        return first_output_url(self.output)


class RenderProvider(ABC):
    """Provider-neutral prediction API used by dispatch, status checks and finalization."""

    @abstractmethod
    async def create_prediction(self, *, prompt: str, webhook_url: str | None) -> ProviderPrediction:
        """Submit a render and return the accepted prediction."""

    @abstractmethod
    async def get_prediction(self, prediction_id: str) -> ProviderPrediction:
        """Return the provider's current view of a prediction."""

    @abstractmethod
    async def cancel_prediction(self, prediction_id: str) -> None:
        """Ask the provider to stop a prediction; providers may ignore it."""

    @abstractmethod
    async def download_output(self, url: str) -> bytes:
        """Fetch a rendered artifact from a provider output URL."""


__all__ = ["ProviderError", "ProviderPrediction", "RenderProvider"]
