from __future__ import annotations

import argparse

from sqlalchemy import func, select

from rolegate.domain.models import PermissionRole, PropertyMetadata, Role, Status
from rolegate.persistence.db import SessionLocal
from scripts import seed_demo


async def _counts() -> tuple[int, int, int]:
    async with SessionLocal() as session:
        roles = (await session.execute(select(func.count()).select_from(Role))).scalar()
        grants = (await session.execute(select(func.count()).select_from(PermissionRole))).scalar()
        statuses = (await session.execute(select(func.count()).select_from(Status))).scalar()
    return int(roles or 0), int(grants or 0), int(statuses or 0)


async def test_seed_demo_is_rerunnable() -> None:
    args = argparse.Namespace(table="issues", column="status_id", operator="seed_demo")
    assert await seed_demo._seed(args) == 0
    first = await _counts()
    assert await seed_demo._seed(args) == 0
    assert await _counts() == first == (3, 4, 3)

    async with SessionLocal() as session:
        mapping = await session.get(PropertyMetadata, ("issues", "status_id"))
    assert mapping is not None
    assert mapping.status_entity_type == "issues_status"
