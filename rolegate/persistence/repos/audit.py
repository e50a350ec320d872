from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.domain.models import AdminAuditLog


async def append_entry(session: AsyncSession, entry: AdminAuditLog) -> AdminAuditLog:
    # The only write path: entries are never updated or deleted.
    session.add(entry)
    await session.flush()
    return entry


async def list_entries(
    session: AsyncSession,
    *,
    event_type: str | None = None,
    offset: int = 0,
    limit: int = 100,
) -> list[AdminAuditLog]:
    stmt = select(AdminAuditLog)
    if event_type:
        stmt = stmt.where(AdminAuditLog.event_type == event_type)
    # id breaks ties between entries written within the same clock tick.
    stmt = stmt.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
    stmt = stmt.offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
