"""HTTP client for the video endpoints, used by app and CLI consumers."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.schemas.usage import Eligibility
from app.schemas.video_job import GenerateVideoAccepted, VideoStatusResponse

logger = logging.getLogger(__name__)

_API_PREFIX = "/api/v1"


class VideoApiError(Exception):
    """Non-2xx answer from the API, carrying the structured error body when present."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.details = details
        super().__init__(message)


class VideoApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=self._timeout_seconds,
            transport=self._transport,
            trust_env=False,
        )

    async def generate_video(self, *, dream_id: str, prompt: str) -> GenerateVideoAccepted:
        payload = await self._request("POST", "/videos", json={"dream_id": dream_id, "prompt": prompt})
        return GenerateVideoAccepted.model_validate(payload)

    async def check_status(self, provider_job_id: str) -> VideoStatusResponse:
        payload = await self._request("POST", "/videos/status", json={"provider_job_id": provider_job_id})
        return VideoStatusResponse.model_validate(payload)

    async def get_usage(self) -> Eligibility:
        payload = await self._request("GET", "/usage")
        return Eligibility.model_validate(payload)

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        async with self._build_client() as client:
            response = await client.request(method, f"{_API_PREFIX}{path}", json=json)

        if response.is_success:
            return response.json()

        raise _error_from_response(response)


def _error_from_response(response: httpx.Response) -> VideoApiError:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("code"), str):
        details = body.get("details")
        return VideoApiError(
            status_code=response.status_code,
            code=body["code"],
            message=str(body.get("message") or body["code"]),
            details=details if isinstance(details, dict) else None,
        )

    logger.warning("client.unstructured_error status=%s", response.status_code)
    return VideoApiError(
        status_code=response.status_code,
        code="HTTP_ERROR",
        message=f"Request failed with status {response.status_code}",
    )


__all__ = ["VideoApiClient", "VideoApiError"]
