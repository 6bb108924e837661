"""Replicate predictions API adapter."""

from __future__ import annotations

import json
import logging

import httpx

from app.adapters.provider.base import ProviderError, ProviderPrediction, RenderProvider

logger = logging.getLogger(__name__)

_PROMPT_PREFIX = "Cinematic, dreamlike, ethereal atmosphere: "
_NEGATIVE_PROMPT = "blurry, low quality, distorted, ugly, bad anatomy"
_DURATION_SECONDS = 5
_ASPECT_RATIO = "16:9"


def _error_message(response: httpx.Response) -> str:
    text = response.text or f"HTTP {response.status_code}"
    try:
        payload = response.json()
    except (json.JSONDecodeError, ValueError):
        return text
    if isinstance(payload, dict):
        for key in ("detail", "title", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return text


def _to_prediction(response: httpx.Response) -> ProviderPrediction:
    try:
        payload = response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise ProviderError("Provider returned a non-JSON prediction body") from exc
    if not isinstance(payload, dict):
        raise ProviderError("Provider returned a malformed prediction body")

    prediction_id = payload.get("id")
    status = payload.get("status")
    if not isinstance(prediction_id, str) or not isinstance(status, str):
        raise ProviderError("Provider returned a prediction without id or status")
    return ProviderPrediction(
        id=prediction_id,
        status=status,
        output=payload.get("output"),
        error=payload.get("error"),
    )


class ReplicateRenderProvider(RenderProvider):
    """Talks to ``/predictions`` with a bearer token; every failure surfaces as ``ProviderError``."""

    def __init__(
        self,
        *,
        api_token: str | None,
        model_version: str,
        base_url: str = "https://api.replicate.com/v1",
        timeout_seconds: float = 30.0,
        download_timeout_seconds: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_token = api_token
        self._model_version = model_version
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._download_timeout = download_timeout_seconds
        self._transport = transport

    def _client(self, *, timeout: float) -> httpx.AsyncClient:
        if not self._api_token:
            raise ProviderError("Render provider token is not configured")
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_token}"},
            timeout=timeout,
            transport=self._transport,
            trust_env=False,
        )

    async def _request(self, method: str, path: str, *, json_body: dict | None = None) -> httpx.Response:
        try:
            async with self._client(timeout=self._timeout) as client:
                response = await client.request(method, path, json=json_body)
        except httpx.TimeoutException as exc:
            raise ProviderError("Render provider timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Render provider unreachable: {type(exc).__name__}") from exc

        if response.is_error:
            raise ProviderError(_error_message(response), status_code=response.status_code)
        return response

    async def create_prediction(self, *, prompt: str, webhook_url: str | None) -> ProviderPrediction:
        body: dict = {
            "version": self._model_version,
            "input": {
                "prompt": f"{_PROMPT_PREFIX}{prompt}",
                "duration": _DURATION_SECONDS,
                "aspect_ratio": _ASPECT_RATIO,
                "negative_prompt": _NEGATIVE_PROMPT,
            },
        }
        if webhook_url:
            body["webhook"] = webhook_url
            body["webhook_events_filter"] = ["completed"]

        response = await self._request("POST", "/predictions", json_body=body)
        return _to_prediction(response)

    async def get_prediction(self, prediction_id: str) -> ProviderPrediction:
        response = await self._request("GET", f"/predictions/{prediction_id}")
        return _to_prediction(response)

    async def cancel_prediction(self, prediction_id: str) -> None:
        await self._request("POST", f"/predictions/{prediction_id}/cancel")

    async def download_output(self, url: str) -> bytes:
        # Output URLs are pre-signed delivery links; the API token must not be sent to them.
        try:
            async with httpx.AsyncClient(
                timeout=self._download_timeout,
                transport=self._transport,
                follow_redirects=True,
                trust_env=False,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Artifact download failed: {type(exc).__name__}") from exc

        if response.is_error:
            raise ProviderError("Artifact download failed", status_code=response.status_code)
        if not response.content:
            raise ProviderError("Artifact download returned an empty body")
        return response.content


__all__ = ["ReplicateRenderProvider"]
