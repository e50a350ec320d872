from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.domain.models import (
    EntityAction,
    EntityActionRole,
    Permission,
    PermissionRole,
    Role,
)


class SqlGrantStore:
    # GrantStore backed by the permission_roles / entity_action_roles relations.
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def roles_for_table(self, table_name: str, operation: str) -> set[str]:
        result = await self._session.execute(
            select(Role.display_name)
            .join(PermissionRole, PermissionRole.role_id == Role.id)
            .join(Permission, Permission.id == PermissionRole.permission_id)
            .where(Permission.table_name == table_name, Permission.permission == operation)
        )
        return set(result.scalars().all())

    async def roles_for_action(self, action_id: int) -> set[str]:
        result = await self._session.execute(
            select(Role.display_name)
            .join(EntityActionRole, EntityActionRole.role_id == Role.id)
            .where(EntityActionRole.entity_action_id == action_id)
        )
        return set(result.scalars().all())


def _insert_ignore(session: AsyncSession, model: Any, values: dict[str, Any]):
    # INSERT ... ON CONFLICT DO NOTHING keeps concurrent grants idempotent.
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
    return insert(model).values(**values).on_conflict_do_nothing()


async def get_role(session: AsyncSession, role_id: int) -> Role | None:
    return await session.get(Role, role_id)


async def get_role_by_name(session: AsyncSession, display_name: str) -> Role | None:
    result = await session.execute(select(Role).where(Role.display_name == display_name))
    return result.scalar_one_or_none()


async def list_roles(session: AsyncSession) -> list[Role]:
    result = await session.execute(select(Role).order_by(Role.id.asc()))
    return list(result.scalars().all())


async def create_role(session: AsyncSession, *, display_name: str, description: str | None) -> Role:
    role = Role(display_name=display_name, description=description)
    session.add(role)
    await session.flush()
    return role


async def ensure_permission(session: AsyncSession, *, table_name: str, operation: str) -> tuple[int, bool]:
    # Return the permission id for (table, operation), creating the row on first use.
    result = await session.execute(
        _insert_ignore(session, Permission, {"table_name": table_name, "permission": operation})
    )
    created = bool(result.rowcount)
    permission_id = (
        await session.execute(
            select(Permission.id).where(
                Permission.table_name == table_name,
                Permission.permission == operation,
            )
        )
    ).scalar_one()
    return permission_id, created


async def add_permission_role(session: AsyncSession, *, permission_id: int, role_id: int) -> bool:
    result = await session.execute(
        _insert_ignore(session, PermissionRole, {"permission_id": permission_id, "role_id": role_id})
    )
    return bool(result.rowcount)


async def remove_table_grant(
    session: AsyncSession,
    *,
    table_name: str,
    operation: str,
    role_id: int,
) -> bool:
    permission_ids = select(Permission.id).where(
        Permission.table_name == table_name,
        Permission.permission == operation,
    )
    result = await session.execute(
        delete(PermissionRole).where(
            PermissionRole.role_id == role_id,
            PermissionRole.permission_id.in_(permission_ids),
        )
    )
    return bool(result.rowcount)


async def add_action_role(session: AsyncSession, *, action_id: int, role_id: int) -> bool:
    result = await session.execute(
        _insert_ignore(session, EntityActionRole, {"entity_action_id": action_id, "role_id": role_id})
    )
    return bool(result.rowcount)


async def remove_action_role(session: AsyncSession, *, action_id: int, role_id: int) -> bool:
    result = await session.execute(
        delete(EntityActionRole).where(
            EntityActionRole.entity_action_id == action_id,
            EntityActionRole.role_id == role_id,
        )
    )
    return bool(result.rowcount)


async def list_role_permissions(session: AsyncSession, *, role_id: int) -> list[Permission]:
    result = await session.execute(
        select(Permission)
        .join(PermissionRole, PermissionRole.permission_id == Permission.id)
        .where(PermissionRole.role_id == role_id)
        .order_by(Permission.table_name.asc(), Permission.permission.asc())
    )
    return list(result.scalars().all())


async def list_role_action_ids(session: AsyncSession, *, role_id: int) -> list[int]:
    result = await session.execute(
        select(EntityActionRole.entity_action_id)
        .where(EntityActionRole.role_id == role_id)
        .order_by(EntityActionRole.entity_action_id.asc())
    )
    return list(result.scalars().all())


async def get_entity_action(session: AsyncSession, action_id: int) -> EntityAction | None:
    return await session.get(EntityAction, action_id)
