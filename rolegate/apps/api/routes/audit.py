from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.apps.api.deps import get_auth_context, get_db
from rolegate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rolegate.apps.api.response import SuccessEnvelope, success_response
from rolegate.domain.models import AdminAuditLog
from rolegate.services.audit import list_admin_audit_log, resolve_audit_limit
from rolegate.services.authz.context import AuthContext


router = APIRouter(prefix="/audit", tags=["audit"], responses=DEFAULT_ERROR_RESPONSES)


class AdminAuditEntryResponse(BaseModel):
    id: int
    real_user_id: str
    real_user_email: str | None
    event_type: str
    event_data: dict[str, Any]
    created_at: str


class AdminAuditPage(BaseModel):
    items: list[AdminAuditEntryResponse]
    next_offset: int | None


def _to_response(entry: AdminAuditLog) -> AdminAuditEntryResponse:
    return AdminAuditEntryResponse(
        id=entry.id,
        real_user_id=entry.real_user_id,
        real_user_email=entry.real_user_email,
        event_type=entry.event_type,
        event_data=entry.event_data or {},
        created_at=entry.created_at.isoformat(),
    )


@router.get("/admin-log", response_model=SuccessEnvelope[AdminAuditPage])
async def get_admin_audit_log(
    request: Request,
    event_type: str | None = None,
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Real admins only; an impersonating admin keeps access since the check uses real roles.
    entries = await list_admin_audit_log(db, ctx, event_type=event_type, limit=limit, offset=offset)
    # A full page means there may be more; the default page size counts too.
    page_size = resolve_audit_limit(limit)
    next_offset = offset + len(entries) if entries and len(entries) == page_size else None
    page = AdminAuditPage(items=[_to_response(entry) for entry in entries], next_offset=next_offset)
    return success_response(request=request, data=page)
