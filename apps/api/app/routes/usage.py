"""Usage routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.routes.dependencies import get_authenticated_principal, get_usage_ledger
from app.schemas.auth import AuthPrincipal
from app.schemas.error import ErrorResponse
from app.schemas.usage import Eligibility
from app.services.usage_ledger import UsageLedgerService

router = APIRouter(prefix="/usage", tags=["Usage"])


@router.get(
    "",
    response_model=Eligibility,
    responses={401: {"model": ErrorResponse}},
)
async def get_usage(
    principal: Annotated[AuthPrincipal, Depends(get_authenticated_principal)],
    ledger: Annotated[UsageLedgerService, Depends(get_usage_ledger)],
) -> Eligibility:
    return ledger.check_eligibility(user_id=principal.user_id)
