"""Provider webhook routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.routes.dependencies import get_webhook_receiver
from app.schemas.error import ErrorResponse
from app.schemas.webhook import WebhookAck
from app.services.webhooks import WebhookReceiver

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/provider",
    response_model=WebhookAck,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
    },
)
async def post_provider_webhook(
    request: Request,
    receiver: Annotated[WebhookReceiver, Depends(get_webhook_receiver)],
) -> WebhookAck:
    # Signature covers the exact bytes sent, so the body is read raw rather than parsed by FastAPI.
    body = await request.body()
    return await receiver.receive(body=body, headers=request.headers)
