from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.domain.models import PropertyMetadata, Status, StatusType


async def get_status_type(session: AsyncSession, entity_type: str) -> StatusType | None:
    return await session.get(StatusType, entity_type)


async def list_status_types_with_counts(session: AsyncSession) -> list[tuple[StatusType, int]]:
    # Outer join so empty domains still show up with a zero count.
    stmt = (
        select(StatusType, func.count(Status.id))
        .outerjoin(Status, Status.entity_type == StatusType.entity_type)
        .group_by(StatusType.entity_type)
        .order_by(StatusType.entity_type.asc())
    )
    result = await session.execute(stmt)
    return [(row[0], int(row[1])) for row in result.all()]


async def delete_status_type(session: AsyncSession, entity_type: str) -> bool:
    # Values go with the domain through ON DELETE CASCADE.
    result = await session.execute(delete(StatusType).where(StatusType.entity_type == entity_type))
    return bool(result.rowcount)


async def get_status(session: AsyncSession, status_id: int) -> Status | None:
    return await session.get(Status, status_id)


async def list_statuses(session: AsyncSession, entity_type: str) -> list[Status]:
    result = await session.execute(
        select(Status)
        .where(Status.entity_type == entity_type)
        .order_by(Status.sort_order.asc(), Status.display_name.asc())
    )
    return list(result.scalars().all())


async def get_initial_status(session: AsyncSession, entity_type: str) -> Status | None:
    result = await session.execute(
        select(Status).where(Status.entity_type == entity_type, Status.is_initial.is_(True))
    )
    return result.scalars().first()


async def get_status_by_key(session: AsyncSession, entity_type: str, status_key: str) -> Status | None:
    result = await session.execute(
        select(Status).where(Status.entity_type == entity_type, Status.status_key == status_key)
    )
    return result.scalar_one_or_none()


async def get_status_by_display_name(session: AsyncSession, entity_type: str, display_name: str) -> Status | None:
    result = await session.execute(
        select(Status).where(Status.entity_type == entity_type, Status.display_name == display_name)
    )
    return result.scalar_one_or_none()


async def get_column_mapping(session: AsyncSession, table_name: str, column_name: str) -> PropertyMetadata | None:
    return await session.get(PropertyMetadata, (table_name, column_name))

