from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from rolegate.apps.api.deps import get_auth_context, get_grant_store
from rolegate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rolegate.apps.api.response import SuccessEnvelope, success_response
from rolegate.persistence.repos.grants import SqlGrantStore
from rolegate.services.authz.context import AuthContext
from rolegate.services.authz.evaluator import can, can_execute_action, table_permissions


router = APIRouter(prefix="/authz", tags=["authz"], responses=DEFAULT_ERROR_RESPONSES)


class WhoAmIResponse(BaseModel):
    subject_id: str | None
    email: str | None
    real_roles: list[str]
    effective_roles: list[str]
    is_admin: bool
    is_real_admin: bool
    impersonating: bool


class DecisionResponse(BaseModel):
    allowed: bool


class TablePermissionsResponse(BaseModel):
    table_name: str
    create: bool
    read: bool
    update: bool
    delete: bool


@router.get("/me", response_model=SuccessEnvelope[WhoAmIResponse])
async def who_am_i(
    request: Request,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    # UIs use this to render the impersonation banner and admin menus.
    payload = WhoAmIResponse(
        subject_id=ctx.subject_id,
        email=ctx.email,
        real_roles=list(ctx.real_roles),
        effective_roles=list(ctx.effective_roles),
        is_admin=ctx.is_admin,
        is_real_admin=ctx.is_real_admin,
        impersonating=ctx.impersonating,
    )
    return success_response(request=request, data=payload)


@router.get("/can", response_model=SuccessEnvelope[DecisionResponse])
async def check_table_permission(
    request: Request,
    table_name: str = Query(min_length=1),
    operation: str = Query(min_length=1),
    ctx: AuthContext = Depends(get_auth_context),
    store: SqlGrantStore = Depends(get_grant_store),
) -> dict:
    allowed = await can(store, table_name=table_name, operation=operation, effective_roles=ctx.effective_roles)
    return success_response(request=request, data=DecisionResponse(allowed=allowed))


@router.get("/tables/{table_name}", response_model=SuccessEnvelope[TablePermissionsResponse])
async def get_table_permissions(
    request: Request,
    table_name: str,
    ctx: AuthContext = Depends(get_auth_context),
    store: SqlGrantStore = Depends(get_grant_store),
) -> dict:
    flags = await table_permissions(store, table_name=table_name, effective_roles=ctx.effective_roles)
    return success_response(request=request, data=TablePermissionsResponse(table_name=table_name, **flags))


@router.get("/entity-actions/{action_id}", response_model=SuccessEnvelope[DecisionResponse])
async def check_entity_action(
    request: Request,
    action_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    store: SqlGrantStore = Depends(get_grant_store),
) -> dict:
    allowed = await can_execute_action(store, action_id=action_id, effective_roles=ctx.effective_roles)
    return success_response(request=request, data=DecisionResponse(allowed=allowed))
