from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.apps.api.deps import get_auth_context, get_db
from rolegate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rolegate.apps.api.response import SuccessEnvelope, success_response
from rolegate.domain.models import Permission, Role
from rolegate.services.authz import grants as grants_service
from rolegate.services.authz.context import AuthContext


router = APIRouter(tags=["roles"], responses=DEFAULT_ERROR_RESPONSES)


class RoleResponse(BaseModel):
    id: int
    display_name: str
    description: str | None


class RoleListResponse(BaseModel):
    items: list[RoleResponse]


class PermissionResponse(BaseModel):
    id: int
    table_name: str
    permission: str


class RolePermissionsResponse(BaseModel):
    role_id: int
    items: list[PermissionResponse]


class RoleActionsResponse(BaseModel):
    role_id: int
    entity_action_ids: list[int]


class RoleCreateRequest(BaseModel):
    display_name: str = Field(max_length=100)
    description: str | None = None

    model_config = {"extra": "forbid"}


class TableGrantRequest(BaseModel):
    role_id: int
    table_name: str = Field(min_length=1, max_length=128)
    # Validated by the mutation itself so callers get the soft error shape.
    permission: str

    model_config = {"extra": "forbid"}


class EnsureTablePermissionsRequest(BaseModel):
    table_name: str = Field(max_length=128)

    model_config = {"extra": "forbid"}


class MutationResponse(BaseModel):
    success: bool
    error: str | None = None
    role_id: int | None = None
    created: int | None = None
    message: str | None = None


def _role_payload(role: Role) -> RoleResponse:
    return RoleResponse(id=role.id, display_name=role.display_name, description=role.description)


def _permission_payload(permission: Permission) -> PermissionResponse:
    return PermissionResponse(id=permission.id, table_name=permission.table_name, permission=permission.permission)


def _mutation_payload(result: grants_service.MutationResult) -> MutationResponse:
    return MutationResponse(**result.as_dict())


@router.get("/roles", response_model=SuccessEnvelope[RoleListResponse])
async def list_roles(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    # Role names are not sensitive; every caller may list them.
    roles = await grants_service.list_roles(db)
    return success_response(request=request, data=RoleListResponse(items=[_role_payload(role) for role in roles]))


@router.get("/roles/{role_id}/permissions", response_model=SuccessEnvelope[RolePermissionsResponse])
async def get_role_permissions(request: Request, role_id: int, db: AsyncSession = Depends(get_db)) -> dict:
    permissions = await grants_service.list_role_permissions(db, role_id=role_id)
    payload = RolePermissionsResponse(
        role_id=role_id,
        items=[_permission_payload(permission) for permission in permissions],
    )
    return success_response(request=request, data=payload)


@router.get("/roles/{role_id}/entity-actions", response_model=SuccessEnvelope[RoleActionsResponse])
async def get_role_entity_actions(request: Request, role_id: int, db: AsyncSession = Depends(get_db)) -> dict:
    action_ids = await grants_service.list_role_action_ids(db, role_id=role_id)
    return success_response(request=request, data=RoleActionsResponse(role_id=role_id, entity_action_ids=action_ids))


@router.post(
    "/admin/roles",
    response_model=SuccessEnvelope[MutationResponse],
    response_model_exclude_none=True,
)
async def create_role(
    request: Request,
    payload: RoleCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await grants_service.create_role(
        db,
        ctx,
        display_name=payload.display_name,
        description=payload.description,
    )
    return success_response(request=request, data=_mutation_payload(result))


@router.post(
    "/admin/permissions",
    response_model=SuccessEnvelope[MutationResponse],
    response_model_exclude_none=True,
)
async def grant_table_permission(
    request: Request,
    payload: TableGrantRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await grants_service.grant_table_permission(
        db,
        ctx,
        role_id=payload.role_id,
        table_name=payload.table_name,
        operation=payload.permission,
    )
    return success_response(request=request, data=_mutation_payload(result))


@router.delete(
    "/admin/permissions",
    response_model=SuccessEnvelope[MutationResponse],
    response_model_exclude_none=True,
)
async def revoke_table_permission(
    request: Request,
    payload: TableGrantRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await grants_service.revoke_table_permission(
        db,
        ctx,
        role_id=payload.role_id,
        table_name=payload.table_name,
        operation=payload.permission,
    )
    return success_response(request=request, data=_mutation_payload(result))


@router.post(
    "/admin/permissions/ensure",
    response_model=SuccessEnvelope[MutationResponse],
    response_model_exclude_none=True,
)
async def ensure_table_permissions(
    request: Request,
    payload: EnsureTablePermissionsRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await grants_service.ensure_table_permissions(db, ctx, table_name=payload.table_name)
    return success_response(request=request, data=_mutation_payload(result))
