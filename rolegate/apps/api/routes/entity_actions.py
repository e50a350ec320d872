from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.apps.api.deps import get_auth_context, get_db
from rolegate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rolegate.apps.api.response import SuccessEnvelope, success_response
from rolegate.apps.api.routes.roles import MutationResponse
from rolegate.domain.models import EntityAction
from rolegate.services import entity_actions as actions_service
from rolegate.services.authz import grants as grants_service
from rolegate.services.authz.context import AuthContext


router = APIRouter(tags=["entity-actions"], responses=DEFAULT_ERROR_RESPONSES)

ButtonStyle = Literal["primary", "secondary", "accent", "success", "warning", "error", "ghost"]
# Patch fields that may be explicitly cleared with null.
_NULLABLE_ACTION_FIELDS = {
    "description",
    "icon",
    "confirmation_message",
    "visibility_condition",
    "enabled_condition",
    "disabled_tooltip",
    "default_success_message",
    "default_navigate_to",
}


class EntityActionResponse(BaseModel):
    id: int
    table_name: str
    action_name: str
    display_name: str
    description: str | None
    icon: str | None
    button_style: str
    sort_order: int
    rpc_function: str
    requires_confirmation: bool
    confirmation_message: str | None
    visibility_condition: dict[str, Any] | None
    enabled_condition: dict[str, Any] | None
    disabled_tooltip: str | None
    default_success_message: str | None
    default_navigate_to: str | None
    refresh_after_action: bool
    show_on_detail: bool
    can_execute: bool | None = None


class EntityActionListResponse(BaseModel):
    table_name: str
    items: list[EntityActionResponse]


class EntityActionCreateRequest(BaseModel):
    table_name: str = Field(min_length=1, max_length=128)
    action_name: str = Field(min_length=1, max_length=100)
    display_name: str = Field(min_length=1)
    rpc_function: str = Field(min_length=1, max_length=128)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=50)
    button_style: ButtonStyle = "primary"
    sort_order: int = 0
    requires_confirmation: bool = False
    confirmation_message: str | None = None
    visibility_condition: dict[str, Any] | None = None
    enabled_condition: dict[str, Any] | None = None
    disabled_tooltip: str | None = None
    default_success_message: str | None = None
    default_navigate_to: str | None = None
    refresh_after_action: bool = True
    show_on_detail: bool = True

    model_config = {"extra": "forbid"}


class EntityActionPatchRequest(BaseModel):
    # table_name and action_name are the action's identity and cannot be patched.
    display_name: str | None = Field(default=None, min_length=1)
    rpc_function: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=50)
    button_style: ButtonStyle | None = None
    sort_order: int | None = None
    requires_confirmation: bool | None = None
    confirmation_message: str | None = None
    visibility_condition: dict[str, Any] | None = None
    enabled_condition: dict[str, Any] | None = None
    disabled_tooltip: str | None = None
    default_success_message: str | None = None
    default_navigate_to: str | None = None
    refresh_after_action: bool | None = None
    show_on_detail: bool | None = None

    model_config = {"extra": "forbid"}


def _action_payload(action: EntityAction, *, can_execute: bool | None = None) -> EntityActionResponse:
    return EntityActionResponse(
        id=action.id,
        table_name=action.table_name,
        action_name=action.action_name,
        display_name=action.display_name,
        description=action.description,
        icon=action.icon,
        button_style=action.button_style,
        sort_order=action.sort_order,
        rpc_function=action.rpc_function,
        requires_confirmation=action.requires_confirmation,
        confirmation_message=action.confirmation_message,
        visibility_condition=action.visibility_condition,
        enabled_condition=action.enabled_condition,
        disabled_tooltip=action.disabled_tooltip,
        default_success_message=action.default_success_message,
        default_navigate_to=action.default_navigate_to,
        refresh_after_action=action.refresh_after_action,
        show_on_detail=action.show_on_detail,
        can_execute=can_execute,
    )


@router.get("/entity-actions", response_model=SuccessEnvelope[EntityActionListResponse])
async def list_entity_actions(
    request: Request,
    table_name: str = Query(min_length=1),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    visible = await actions_service.list_actions_for_table(db, ctx, table_name=table_name)
    payload = EntityActionListResponse(
        table_name=table_name,
        items=[_action_payload(item.action, can_execute=item.can_execute) for item in visible],
    )
    return success_response(request=request, data=payload)


@router.post(
    "/admin/entity-actions",
    response_model=SuccessEnvelope[EntityActionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_entity_action(
    request: Request,
    payload: EntityActionCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    action = await actions_service.create_action(db, ctx, **payload.model_dump())
    return success_response(request=request, data=_action_payload(action))


@router.patch("/admin/entity-actions/{action_id}", response_model=SuccessEnvelope[EntityActionResponse])
async def update_entity_action(
    request: Request,
    action_id: int,
    payload: EntityActionPatchRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in _NULLABLE_ACTION_FIELDS
    }
    action = await actions_service.update_action(db, ctx, action_id, changes)
    return success_response(request=request, data=_action_payload(action))


@router.post(
    "/admin/entity-actions/{action_id}/roles/{role_id}",
    response_model=SuccessEnvelope[MutationResponse],
    response_model_exclude_none=True,
)
async def grant_entity_action(
    request: Request,
    action_id: int,
    role_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await grants_service.grant_action_permission(db, ctx, action_id=action_id, role_id=role_id)
    return success_response(request=request, data=MutationResponse(**result.as_dict()))


@router.delete(
    "/admin/entity-actions/{action_id}/roles/{role_id}",
    response_model=SuccessEnvelope[MutationResponse],
    response_model_exclude_none=True,
)
async def revoke_entity_action(
    request: Request,
    action_id: int,
    role_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await grants_service.revoke_action_permission(db, ctx, action_id=action_id, role_id=role_id)
    return success_response(request=request, data=MutationResponse(**result.as_dict()))
