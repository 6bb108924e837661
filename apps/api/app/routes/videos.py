"""Video generation routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from app.routes.dependencies import (
    get_authenticated_principal,
    get_dispatcher,
    get_status_service,
    get_video_job_service,
)
from app.schemas.auth import AuthPrincipal
from app.schemas.error import (
    ErrorResponse,
    GenerationFailedError,
    NoCreditsError,
    NoLeakNotFoundError,
    ProviderUnavailableError,
    QuotaExceededError,
    UnitsExhaustedError,
    VideoNotReadyError,
)
from app.schemas.video_job import (
    GenerateVideoAccepted,
    GenerateVideoRequest,
    VideoJob,
    VideoPlayback,
    VideoStatusRequest,
    VideoStatusResponse,
)
from app.services.dispatcher import RenderDispatcher
from app.services.video_jobs import VideoJobService
from app.services.video_status import VideoStatusService

router = APIRouter(tags=["Videos"])


@router.post(
    "/videos",
    response_model=GenerateVideoAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        401: {"model": ErrorResponse},
        402: {"model": NoCreditsError},
        404: {"model": NoLeakNotFoundError},
        409: {"model": UnitsExhaustedError},
        429: {"model": QuotaExceededError},
        502: {"model": GenerationFailedError},
    },
)
async def generate_video(
    payload: GenerateVideoRequest,
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    dispatcher: Annotated[RenderDispatcher, Depends(get_dispatcher)],
) -> GenerateVideoAccepted:
    return await dispatcher.dispatch(
        owner_id=principal.user_id,
        dream_id=payload.dream_id,
        prompt=payload.prompt,
    )


@router.post(
    "/videos/status",
    response_model=VideoStatusResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": NoLeakNotFoundError},
        502: {"model": ProviderUnavailableError},
    },
)
async def check_video_status(
    payload: VideoStatusRequest,
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[VideoStatusService, Depends(get_status_service)],
) -> VideoStatusResponse:
    return await service.check_status(owner_id=principal.user_id, provider_job_id=payload.provider_job_id)


@router.get(
    "/videos/jobs/{jobId}",
    response_model=VideoJob,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def get_video_job(
    job_id: Annotated[str, Path(alias="jobId")],
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[VideoJobService, Depends(get_video_job_service)],
) -> VideoJob:
    return service.get_job(owner_id=principal.user_id, job_id=job_id)


@router.get(
    "/videos/jobs/{jobId}/playback",
    response_model=VideoPlayback,
    responses={
        404: {"model": NoLeakNotFoundError},
        409: {"model": VideoNotReadyError},
    },
)
async def get_video_playback(
    job_id: Annotated[str, Path(alias="jobId")],
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[VideoJobService, Depends(get_video_job_service)],
) -> VideoPlayback:
    return service.get_playback(owner_id=principal.user_id, job_id=job_id)


@router.get(
    "/dreams/{dreamId}/videos",
    response_model=list[VideoJob],
    responses={404: {"model": NoLeakNotFoundError}},
)
async def list_dream_videos(
    dream_id: Annotated[str, Path(alias="dreamId")],
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    service: Annotated[VideoJobService, Depends(get_video_job_service)],
) -> list[VideoJob]:
    return service.list_jobs_for_dream(owner_id=principal.user_id, dream_id=dream_id)
