from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.domain.models import EntityAction


async def get_action(session: AsyncSession, action_id: int) -> EntityAction | None:
    return await session.get(EntityAction, action_id)


async def get_action_by_name(session: AsyncSession, *, table_name: str, action_name: str) -> EntityAction | None:
    result = await session.execute(
        select(EntityAction).where(
            EntityAction.table_name == table_name,
            EntityAction.action_name == action_name,
        )
    )
    return result.scalar_one_or_none()


async def list_actions(session: AsyncSession, *, table_name: str) -> list[EntityAction]:
    stmt = select(EntityAction).where(
        EntityAction.table_name == table_name,
        EntityAction.show_on_detail.is_(True),
    )
    stmt = stmt.order_by(EntityAction.sort_order.asc(), EntityAction.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())
