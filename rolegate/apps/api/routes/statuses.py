from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.apps.api.deps import get_auth_context, get_db
from rolegate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rolegate.apps.api.response import SuccessEnvelope, success_response
from rolegate.domain.models import Status
from rolegate.services import statuses as statuses_service
from rolegate.services.authz.context import AuthContext


router = APIRouter(tags=["statuses"], responses=DEFAULT_ERROR_RESPONSES)

_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
_NULLABLE_STATUS_FIELDS = {"description", "color"}


class StatusResponse(BaseModel):
    id: int
    entity_type: str
    status_key: str
    display_name: str
    description: str | None
    color: str | None
    sort_order: int
    is_initial: bool
    is_terminal: bool


class StatusListResponse(BaseModel):
    entity_type: str
    items: list[StatusResponse]


class StatusDomainResponse(BaseModel):
    entity_type: str
    description: str | None
    status_count: int


class StatusDomainListResponse(BaseModel):
    items: list[StatusDomainResponse]


class StatusIdResponse(BaseModel):
    entity_type: str
    status_key: str
    status_id: int


class StatusTypeCreateRequest(BaseModel):
    entity_type: str = Field(min_length=1, max_length=128)
    description: str | None = None

    model_config = {"extra": "forbid"}


class StatusCreateRequest(BaseModel):
    entity_type: str = Field(min_length=1, max_length=128)
    display_name: str = Field(min_length=1, max_length=50)
    status_key: str | None = Field(default=None, max_length=50)
    description: str | None = None
    color: str | None = Field(default=None, pattern=_HEX_COLOR)
    sort_order: int = 0
    is_initial: bool = False
    is_terminal: bool = False

    model_config = {"extra": "forbid"}


class StatusPatchRequest(BaseModel):
    # status_key is deliberately absent: it is immutable once created.
    display_name: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = None
    color: str | None = Field(default=None, pattern=_HEX_COLOR)
    sort_order: int | None = None
    is_initial: bool | None = None
    is_terminal: bool | None = None

    model_config = {"extra": "forbid"}


class StatusColumnRequest(BaseModel):
    # null clears the mapping and stops validation for the column.
    entity_type: str | None = Field(default=None, max_length=128)

    model_config = {"extra": "forbid"}


class StatusColumnResponse(BaseModel):
    table_name: str
    column_name: str
    entity_type: str | None


def _status_payload(row: Status) -> StatusResponse:
    return StatusResponse(
        id=row.id,
        entity_type=row.entity_type,
        status_key=row.status_key,
        display_name=row.display_name,
        description=row.description,
        color=row.color,
        sort_order=row.sort_order,
        is_initial=row.is_initial,
        is_terminal=row.is_terminal,
    )


def _patch_changes(payload: StatusPatchRequest) -> dict:
    # Explicit nulls only clear the nullable display fields.
    return {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in _NULLABLE_STATUS_FIELDS
    }


def _invalid(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"code": "STATUS_INVALID", "message": message},
    )


# ---- reads ----


@router.get("/statuses/types", response_model=SuccessEnvelope[StatusDomainListResponse])
async def list_status_domains(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    domains = await statuses_service.list_status_domains(db)
    payload = StatusDomainListResponse(
        items=[
            StatusDomainResponse(
                entity_type=domain.entity_type,
                description=domain.description,
                status_count=domain.status_count,
            )
            for domain in domains
        ]
    )
    return success_response(request=request, data=payload)


@router.get("/statuses/{entity_type}", response_model=SuccessEnvelope[StatusListResponse])
async def get_statuses(request: Request, entity_type: str, db: AsyncSession = Depends(get_db)) -> dict:
    # Unknown domains return an empty list, matching an empty domain.
    rows = await statuses_service.get_statuses_for_domain(db, entity_type)
    payload = StatusListResponse(entity_type=entity_type, items=[_status_payload(row) for row in rows])
    return success_response(request=request, data=payload)


@router.get("/statuses/{entity_type}/initial", response_model=SuccessEnvelope[StatusResponse | None])
async def get_initial_status(request: Request, entity_type: str, db: AsyncSession = Depends(get_db)) -> dict:
    row = await statuses_service.get_initial_status(db, entity_type)
    return success_response(request=request, data=_status_payload(row) if row is not None else None)


@router.get("/statuses/{entity_type}/keys/{status_key}", response_model=SuccessEnvelope[StatusIdResponse])
async def get_status_id(
    request: Request,
    entity_type: str,
    status_key: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    status_id = await statuses_service.get_status_id(db, entity_type, status_key)
    if status_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": f"Status {status_key} not found in {entity_type}"},
        )
    payload = StatusIdResponse(entity_type=entity_type, status_key=status_key, status_id=status_id)
    return success_response(request=request, data=payload)


# ---- admin writes ----


@router.post(
    "/admin/status-types",
    response_model=SuccessEnvelope[StatusDomainResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_status_type(
    request: Request,
    payload: StatusTypeCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        created = await statuses_service.create_status_type(
            db, ctx, entity_type=payload.entity_type, description=payload.description
        )
    except ValueError as exc:
        raise _invalid(str(exc)) from exc
    data = StatusDomainResponse(entity_type=created.entity_type, description=created.description, status_count=0)
    return success_response(request=request, data=data)


@router.delete("/admin/status-types/{entity_type}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_status_type(
    entity_type: str,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> None:
    await statuses_service.delete_status_type(db, ctx, entity_type)


@router.post(
    "/admin/statuses",
    response_model=SuccessEnvelope[StatusResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_status(
    request: Request,
    payload: StatusCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        row = await statuses_service.create_status(db, ctx, **payload.model_dump())
    except ValueError as exc:
        raise _invalid(str(exc)) from exc
    return success_response(request=request, data=_status_payload(row))


@router.patch("/admin/statuses/{status_id}", response_model=SuccessEnvelope[StatusResponse])
async def update_status(
    request: Request,
    status_id: int,
    payload: StatusPatchRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        row = await statuses_service.update_status(db, ctx, status_id, _patch_changes(payload))
    except ValueError as exc:
        raise _invalid(str(exc)) from exc
    return success_response(request=request, data=_status_payload(row))


@router.delete("/admin/statuses/{status_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_status(
    status_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> None:
    await statuses_service.delete_status(db, ctx, status_id)


@router.put(
    "/admin/status-columns/{table_name}/{column_name}",
    response_model=SuccessEnvelope[StatusColumnResponse],
)
async def set_status_column(
    request: Request,
    table_name: str,
    column_name: str,
    payload: StatusColumnRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    mapping = await statuses_service.set_status_column(
        db,
        ctx,
        table_name=table_name,
        column_name=column_name,
        entity_type=payload.entity_type,
    )
    data = StatusColumnResponse(
        table_name=mapping.table_name,
        column_name=mapping.column_name,
        entity_type=mapping.status_entity_type,
    )
    return success_response(request=request, data=data)
