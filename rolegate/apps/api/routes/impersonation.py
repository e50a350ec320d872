from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.apps.api.deps import get_auth_context, get_db
from rolegate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rolegate.apps.api.response import SuccessEnvelope, success_response
from rolegate.services.audit import log_impersonation
from rolegate.services.authz.context import AuthContext


router = APIRouter(prefix="/impersonation", tags=["impersonation"], responses=DEFAULT_ERROR_RESPONSES)


class ImpersonationLogRequest(BaseModel):
    # Identity is never accepted from the body; it comes from the caller's claims.
    impersonated_roles: list[str] = Field(default_factory=list)
    action: str

    model_config = {"extra": "forbid"}


class ImpersonationLogResponse(BaseModel):
    success: bool
    message: str


@router.post("/log", response_model=SuccessEnvelope[ImpersonationLogResponse])
async def record_impersonation(
    request: Request,
    payload: ImpersonationLogRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Always 200: a refused log entry is reported in the body for the admin banner to show.
    result = await log_impersonation(
        db,
        ctx,
        requested_roles=payload.impersonated_roles,
        action=payload.action,
    )
    data = ImpersonationLogResponse(success=result.success, message=result.message)
    return success_response(request=request, data=data)
