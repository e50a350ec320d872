from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.core.errors import NotFoundError
from rolegate.domain.models import CRUD_OPERATIONS, Permission, Role
from rolegate.persistence.repos import grants as grants_repo
from rolegate.services.audit import PERMISSION_CHANGE_EVENT, record_admin_event
from rolegate.services.authz.context import AuthContext


logger = logging.getLogger(__name__)

_ADMIN_REQUIRED = "Admin access required"


@dataclass(frozen=True)
class MutationResult:
    # Structured outcome for admin UIs; routine denials are never raised.
    success: bool
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
        payload.update(self.data)
        return payload


def _denied() -> MutationResult:
    return MutationResult(success=False, error=_ADMIN_REQUIRED)


def _invalid_operation(operation: str) -> MutationResult:
    return MutationResult(
        success=False,
        error=f"Invalid permission type: {operation}. Must be one of: {', '.join(CRUD_OPERATIONS)}",
    )


async def _finish(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    changed: bool,
    change: dict[str, Any],
) -> MutationResult:
    # Audit only effective changes, then commit grant and audit row together.
    try:
        if changed:
            await record_admin_event(session, ctx, event_type=PERMISSION_CHANGE_EVENT, event_data=change)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("grant_change_failed change=%s", change, exc_info=exc)
        return MutationResult(success=False, error="Database error while updating permissions")
    logger.info(
        "grant_changed subject_id=%s changed=%s change=%s",
        ctx.subject_id,
        changed,
        change,
    )
    return MutationResult(success=True)


async def grant_table_permission(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    role_id: int,
    table_name: str,
    operation: str,
) -> MutationResult:
    """Grant ``operation`` on ``table_name`` to a role.

    Idempotent: granting an existing pair succeeds without changes. The
    permission row for (table, operation) is created on first use.
    """
    if not ctx.is_admin:
        return _denied()
    if operation not in CRUD_OPERATIONS:
        return _invalid_operation(operation)
    if await grants_repo.get_role(session, role_id) is None:
        return MutationResult(success=False, error="Role not found")
    try:
        permission_id, _created = await grants_repo.ensure_permission(
            session, table_name=table_name, operation=operation
        )
        changed = await grants_repo.add_permission_role(session, permission_id=permission_id, role_id=role_id)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("grant_change_failed table=%s operation=%s", table_name, operation, exc_info=exc)
        return MutationResult(success=False, error="Database error while updating permissions")
    return await _finish(
        session,
        ctx,
        changed=changed,
        change={"change": "grant", "table_name": table_name, "operation": operation, "role_id": role_id},
    )


async def revoke_table_permission(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    role_id: int,
    table_name: str,
    operation: str,
) -> MutationResult:
    # Idempotent: revoking an absent pair is a successful no-op.
    if not ctx.is_admin:
        return _denied()
    if operation not in CRUD_OPERATIONS:
        return _invalid_operation(operation)
    try:
        changed = await grants_repo.remove_table_grant(
            session, table_name=table_name, operation=operation, role_id=role_id
        )
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("grant_change_failed table=%s operation=%s", table_name, operation, exc_info=exc)
        return MutationResult(success=False, error="Database error while updating permissions")
    return await _finish(
        session,
        ctx,
        changed=changed,
        change={"change": "revoke", "table_name": table_name, "operation": operation, "role_id": role_id},
    )


async def grant_action_permission(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    action_id: int,
    role_id: int,
) -> MutationResult:
    if not ctx.is_admin:
        return _denied()
    if await grants_repo.get_entity_action(session, action_id) is None:
        return MutationResult(success=False, error="Entity action not found")
    if await grants_repo.get_role(session, role_id) is None:
        return MutationResult(success=False, error="Role not found")
    try:
        changed = await grants_repo.add_action_role(session, action_id=action_id, role_id=role_id)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("grant_change_failed action_id=%s role_id=%s", action_id, role_id, exc_info=exc)
        return MutationResult(success=False, error="Database error while updating permissions")
    return await _finish(
        session,
        ctx,
        changed=changed,
        change={"change": "grant", "entity_action_id": action_id, "role_id": role_id},
    )


async def revoke_action_permission(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    action_id: int,
    role_id: int,
) -> MutationResult:
    if not ctx.is_admin:
        return _denied()
    try:
        changed = await grants_repo.remove_action_role(session, action_id=action_id, role_id=role_id)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("grant_change_failed action_id=%s role_id=%s", action_id, role_id, exc_info=exc)
        return MutationResult(success=False, error="Database error while updating permissions")
    return await _finish(
        session,
        ctx,
        changed=changed,
        change={"change": "revoke", "entity_action_id": action_id, "role_id": role_id},
    )


async def ensure_table_permissions(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    table_name: str,
) -> MutationResult:
    # Create the four CRUD permission rows for a new table; existing rows are kept.
    if not ctx.is_admin:
        return _denied()
    if not table_name.strip():
        return MutationResult(success=False, error="Table name cannot be empty")
    created = 0
    try:
        for operation in CRUD_OPERATIONS:
            _permission_id, was_created = await grants_repo.ensure_permission(
                session, table_name=table_name, operation=operation
            )
            created += int(was_created)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("ensure_table_permissions_failed table=%s", table_name, exc_info=exc)
        return MutationResult(success=False, error="Database error while updating permissions")
    return MutationResult(
        success=True,
        data={"created": created, "message": f"Ensured permissions exist for table {table_name}"},
    )


async def create_role(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    display_name: str,
    description: str | None = None,
) -> MutationResult:
    if not ctx.is_admin:
        return _denied()
    name = (display_name or "").strip()
    if not name:
        return MutationResult(success=False, error="Role name cannot be empty")
    if await grants_repo.get_role_by_name(session, name) is not None:
        return MutationResult(success=False, error="Role with this name already exists")
    try:
        role = await grants_repo.create_role(
            session,
            display_name=name,
            description=description.strip() if description else None,
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("create_role_failed display_name=%s", name, exc_info=exc)
        return MutationResult(success=False, error="Database error while creating role")
    return MutationResult(success=True, data={"role_id": role.id})


# ---- read paths (any caller) ----


async def list_roles(session: AsyncSession) -> list[Role]:
    return await grants_repo.list_roles(session)


async def list_role_permissions(session: AsyncSession, *, role_id: int) -> list[Permission]:
    if await grants_repo.get_role(session, role_id) is None:
        raise NotFoundError(f"Role {role_id} not found")
    return await grants_repo.list_role_permissions(session, role_id=role_id)


async def list_role_action_ids(session: AsyncSession, *, role_id: int) -> list[int]:
    if await grants_repo.get_role(session, role_id) is None:
        raise NotFoundError(f"Role {role_id} not found")
    return await grants_repo.list_role_action_ids(session, role_id=role_id)
