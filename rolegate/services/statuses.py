from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.core.errors import NotFoundError, StatusConflictError
from rolegate.domain.models import PropertyMetadata, Status, StatusType, derive_status_key
from rolegate.persistence.repos import statuses as statuses_repo
from rolegate.services.authz.context import AuthContext, require_admin


logger = logging.getLogger(__name__)

# Display metadata an update may touch; entity_type and status_key are identity.
_MUTABLE_STATUS_FIELDS = (
    "display_name",
    "description",
    "color",
    "sort_order",
    "is_initial",
    "is_terminal",
)

# Path segments under /statuses/ that belong to the API, not to a domain.
_RESERVED_ENTITY_TYPES = frozenset({"types"})


@dataclass(frozen=True)
class StatusDomainSummary:
    entity_type: str
    description: str | None
    status_count: int


# ---- reads (any caller) ----


async def get_statuses_for_domain(session: AsyncSession, entity_type: str) -> list[Status]:
    return await statuses_repo.list_statuses(session, entity_type)


async def get_initial_status(session: AsyncSession, entity_type: str) -> Status | None:
    return await statuses_repo.get_initial_status(session, entity_type)


async def get_status_id(session: AsyncSession, entity_type: str, status_key: str) -> int | None:
    # Stable lookup for code paths that must not depend on display names.
    status = await statuses_repo.get_status_by_key(session, entity_type, status_key)
    return status.id if status is not None else None


async def list_status_domains(session: AsyncSession) -> list[StatusDomainSummary]:
    rows = await statuses_repo.list_status_types_with_counts(session)
    return [
        StatusDomainSummary(
            entity_type=status_type.entity_type,
            description=status_type.description,
            status_count=count,
        )
        for status_type, count in rows
    ]


# ---- writes (effective admin) ----


async def _commit_or_conflict(session: AsyncSession, message: str) -> None:
    # Unique constraints are the final word when a concurrent write slips past the pre-checks.
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.info("status_conflict message=%s", message, exc_info=exc)
        raise StatusConflictError(message) from exc


async def create_status_type(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    entity_type: str,
    description: str | None = None,
) -> StatusType:
    require_admin(ctx, operation="create status domains")
    name = entity_type.strip()
    if not name:
        raise ValueError("entity_type cannot be empty")
    if name in _RESERVED_ENTITY_TYPES:
        raise ValueError(f"entity_type {name} is reserved")
    if await statuses_repo.get_status_type(session, name) is not None:
        raise StatusConflictError(f"Status domain {name} already exists")
    status_type = StatusType(entity_type=name, description=description)
    session.add(status_type)
    await _commit_or_conflict(session, f"Status domain {name} already exists")
    logger.info("status_domain_created entity_type=%s subject_id=%s", name, ctx.subject_id)
    return status_type


async def delete_status_type(session: AsyncSession, ctx: AuthContext, entity_type: str) -> None:
    """Delete a domain and, through the cascade, all of its values.

    Column mappings that name the domain are left alone: writes to those columns
    keep failing until the mapping is changed, instead of silently going unchecked.
    """
    require_admin(ctx, operation="delete status domains")
    try:
        deleted = await statuses_repo.delete_status_type(session, entity_type)
    except IntegrityError as exc:
        await session.rollback()
        raise StatusConflictError(f"Status domain {entity_type} still has referenced values") from exc
    if not deleted:
        await session.rollback()
        raise NotFoundError(f"Status domain {entity_type} not found")
    await _commit_or_conflict(session, f"Status domain {entity_type} still has referenced values")
    logger.info("status_domain_deleted entity_type=%s subject_id=%s", entity_type, ctx.subject_id)


async def _ensure_no_other_initial(session: AsyncSession, entity_type: str, *, exclude_id: int | None) -> None:
    current = await statuses_repo.get_initial_status(session, entity_type)
    if current is not None and current.id != exclude_id:
        raise StatusConflictError(
            f"Status domain {entity_type} already has an initial status ({current.display_name})"
        )


async def create_status(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    entity_type: str,
    display_name: str,
    status_key: str | None = None,
    description: str | None = None,
    color: str | None = None,
    sort_order: int = 0,
    is_initial: bool = False,
    is_terminal: bool = False,
) -> Status:
    require_admin(ctx, operation="create status values")
    if await statuses_repo.get_status_type(session, entity_type) is None:
        raise NotFoundError(f"Status domain {entity_type} not found")
    name = display_name.strip()
    if not name:
        raise ValueError("display_name cannot be empty")
    key = status_key.strip() if status_key and status_key.strip() else derive_status_key(name)

    if is_initial:
        await _ensure_no_other_initial(session, entity_type, exclude_id=None)
    if await statuses_repo.get_status_by_display_name(session, entity_type, name) is not None:
        raise StatusConflictError(f"Status {name} already exists in {entity_type}")
    if await statuses_repo.get_status_by_key(session, entity_type, key) is not None:
        raise StatusConflictError(f"Status key {key} already exists in {entity_type}")

    status = Status(
        entity_type=entity_type,
        status_key=key,
        display_name=name,
        description=description,
        sort_order=sort_order,
        is_initial=is_initial,
        is_terminal=is_terminal,
    )
    if color is not None:
        status.color = color
    session.add(status)
    await _commit_or_conflict(session, f"Status {name} conflicts with an existing value in {entity_type}")
    logger.info(
        "status_created entity_type=%s status_key=%s subject_id=%s",
        entity_type,
        key,
        ctx.subject_id,
    )
    return status


async def update_status(
    session: AsyncSession,
    ctx: AuthContext,
    status_id: int,
    changes: dict[str, Any],
) -> Status:
    require_admin(ctx, operation="update status values")
    status = await statuses_repo.get_status(session, status_id)
    if status is None:
        raise NotFoundError(f"Status {status_id} not found")
    unknown = set(changes) - set(_MUTABLE_STATUS_FIELDS)
    if unknown:
        # status_key stays stable so code referencing it keeps working after renames.
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    if changes.get("is_initial") and not status.is_initial:
        await _ensure_no_other_initial(session, status.entity_type, exclude_id=status.id)
    if "display_name" in changes:
        name = str(changes["display_name"] or "").strip()
        if not name:
            raise ValueError("display_name cannot be empty")
        existing = await statuses_repo.get_status_by_display_name(session, status.entity_type, name)
        if existing is not None and existing.id != status.id:
            raise StatusConflictError(f"Status {name} already exists in {status.entity_type}")
        changes = {**changes, "display_name": name}

    for field_name, value in changes.items():
        setattr(status, field_name, value)
    await _commit_or_conflict(session, f"Status {status_id} conflicts with an existing value")
    await session.refresh(status)
    logger.info("status_updated status_id=%s fields=%s subject_id=%s", status_id, ",".join(changes), ctx.subject_id)
    return status


async def delete_status(session: AsyncSession, ctx: AuthContext, status_id: int) -> None:
    require_admin(ctx, operation="delete status values")
    status = await statuses_repo.get_status(session, status_id)
    if status is None:
        raise NotFoundError(f"Status {status_id} not found")
    await session.delete(status)
    await _commit_or_conflict(session, f"Status {status_id} is still referenced")
    logger.info("status_deleted status_id=%s subject_id=%s", status_id, ctx.subject_id)


async def set_status_column(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    table_name: str,
    column_name: str,
    entity_type: str | None,
) -> PropertyMetadata:
    """Declare (or clear, with ``entity_type=None``) the domain of a status column.

    The mapping is what the flush-time validator consults; a column without
    one is never checked.
    """
    require_admin(ctx, operation="configure status columns")
    if entity_type is not None and await statuses_repo.get_status_type(session, entity_type) is None:
        raise NotFoundError(f"Status domain {entity_type} not found")
    mapping = await statuses_repo.get_column_mapping(session, table_name, column_name)
    if mapping is None:
        mapping = PropertyMetadata(table_name=table_name, column_name=column_name)
        session.add(mapping)
    mapping.status_entity_type = entity_type
    await session.commit()
    logger.info(
        "status_column_configured table=%s column=%s entity_type=%s subject_id=%s",
        table_name,
        column_name,
        entity_type,
        ctx.subject_id,
    )
    return mapping
