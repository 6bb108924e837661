"""Deterministic in-process render provider for local development and tests."""

from dataclasses import dataclass, field
from uuid import uuid4

from app.adapters.provider.base import ProviderError, ProviderPrediction, RenderProvider


@dataclass(slots=True)
class FakeRenderProvider(RenderProvider):
    """Keeps predictions in a dict; tests drive them with ``set_status``.

    Failure injection mirrors the store failpoints: ``fail_next_create`` and
    ``fail_next_download`` raise once and reset.
    """

    predictions: dict[str, ProviderPrediction] = field(default_factory=dict)
    artifacts: dict[str, bytes] = field(default_factory=dict)
    created_prompts: list[str] = field(default_factory=list)
    cancelled_ids: list[str] = field(default_factory=list)
    download_count: int = 0
    fail_next_create: ProviderError | None = None
    fail_next_download: ProviderError | None = None
    fail_get: ProviderError | None = None
    fail_cancel: ProviderError | None = None

    async def create_prediction(self, *, prompt: str, webhook_url: str | None) -> ProviderPrediction:
        if self.fail_next_create is not None:
            error, self.fail_next_create = self.fail_next_create, None
            raise error
        prediction = ProviderPrediction(id=f"pred-{uuid4().hex[:16]}", status="starting")
        self.predictions[prediction.id] = prediction
        self.created_prompts.append(prompt)
        return prediction

    async def get_prediction(self, prediction_id: str) -> ProviderPrediction:
        if self.fail_get is not None:
            raise self.fail_get
        prediction = self.predictions.get(prediction_id)
        if prediction is None:
            raise ProviderError("Prediction not found", status_code=404)
        return prediction

    async def cancel_prediction(self, prediction_id: str) -> None:
        self.cancelled_ids.append(prediction_id)
        if self.fail_cancel is not None:
            raise self.fail_cancel
        prediction = self.predictions.get(prediction_id)
        if prediction is not None:
            self.predictions[prediction_id] = ProviderPrediction(id=prediction_id, status="canceled")

    async def download_output(self, url: str) -> bytes:
        self.download_count += 1
        if self.fail_next_download is not None:
            error, self.fail_next_download = self.fail_next_download, None
            raise error
        content = self.artifacts.get(url)
        if content is None:
            raise ProviderError("Artifact not found", status_code=404)
        return content

    def set_status(
        self,
        prediction_id: str,
        status: str,
        *,
        output: str | list[str] | None = None,
        error: str | None = None,
        artifact: bytes | None = None,
    ) -> ProviderPrediction:
        prediction = ProviderPrediction(id=prediction_id, status=status, output=output, error=error)
        self.predictions[prediction_id] = prediction
        if artifact is not None and prediction.output_url:
            self.artifacts[prediction.output_url] = artifact
        return prediction


__all__ = ["FakeRenderProvider"]
