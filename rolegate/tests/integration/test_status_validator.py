from __future__ import annotations

import pytest
from sqlalchemy import insert, select, update

from rolegate.core.errors import StatusDomainError, StatusDomainUnverifiableError
from rolegate.domain.models import PropertyMetadata
from rolegate.persistence.db import SessionLocal
from rolegate.tests.utils.models import Issue
from rolegate.tests.utils.seed import create_domain, map_status_column


async def _seed() -> tuple[dict[str, int], dict[str, int], dict[str, int]]:
    issue_statuses = await create_domain("issues_status", ("Open", True), ("In Progress", False), ("Closed", False))
    priorities = await create_domain("issues_priority", ("Low", True), ("High", False))
    orders = await create_domain("orders_status", ("Pending", True))
    await map_status_column("issues", "status_id", "issues_status")
    await map_status_column("issues", "priority_id", "issues_priority")
    return issue_statuses, priorities, orders


async def test_valid_status_is_accepted() -> None:
    statuses, priorities, _orders = await _seed()
    async with SessionLocal() as session:
        session.add(Issue(title="pothole", status_id=statuses["open"], priority_id=priorities["high"]))
        await session.commit()
        stored = (await session.execute(select(Issue))).scalar_one()
    assert stored.status_id == statuses["open"]


async def test_status_from_other_domain_is_rejected() -> None:
    _statuses, _priorities, orders = await _seed()
    async with SessionLocal() as session:
        session.add(Issue(title="pothole", status_id=orders["pending"]))
        with pytest.raises(StatusDomainError) as excinfo:
            await session.commit()
        await session.rollback()
    err = excinfo.value
    assert err.column_name == "status_id"
    assert err.expected == "issues_status"
    assert err.actual == "orders_status"
    assert "expected entity_type issues_status, got orders_status" in str(err)

    async with SessionLocal() as session:
        assert (await session.execute(select(Issue))).scalars().all() == []


async def test_each_status_column_is_checked_independently() -> None:
    statuses, _priorities, _orders = await _seed()
    async with SessionLocal() as session:
        # A valid issues_status id in the priority column is still the wrong domain.
        session.add(Issue(title="pothole", status_id=statuses["open"], priority_id=statuses["closed"]))
        with pytest.raises(StatusDomainError) as excinfo:
            await session.commit()
        await session.rollback()
    assert excinfo.value.column_name == "priority_id"
    assert excinfo.value.expected == "issues_priority"


async def test_missing_status_is_reported_as_not_found() -> None:
    await _seed()
    async with SessionLocal() as session:
        session.add(Issue(title="pothole", status_id=987654))
        with pytest.raises(StatusDomainError) as excinfo:
            await session.commit()
        await session.rollback()
    assert excinfo.value.not_found
    assert "NULL (status not found)" in str(excinfo.value)


async def test_null_status_is_not_validated() -> None:
    await _seed()
    async with SessionLocal() as session:
        session.add(Issue(title="untriaged", status_id=None, priority_id=None))
        await session.commit()


async def test_updates_are_validated() -> None:
    statuses, _priorities, orders = await _seed()
    async with SessionLocal() as session:
        issue = Issue(title="pothole", status_id=statuses["open"])
        session.add(issue)
        await session.commit()

        issue.status_id = statuses["in_progress"]
        await session.commit()

        issue.status_id = orders["pending"]
        with pytest.raises(StatusDomainError):
            await session.commit()
        await session.rollback()

    async with SessionLocal() as session:
        stored = (await session.execute(select(Issue))).scalar_one()
    assert stored.status_id == statuses["in_progress"]


async def test_cleared_mapping_stops_validation() -> None:
    _statuses, _priorities, orders = await _seed()
    async with SessionLocal() as session:
        mapping = await session.get(PropertyMetadata, ("issues", "status_id"))
        mapping.status_entity_type = None
        await session.commit()

        session.add(Issue(title="legacy", status_id=orders["pending"]))
        await session.commit()


async def test_bulk_update_is_validated() -> None:
    statuses, _priorities, orders = await _seed()
    async with SessionLocal() as session:
        session.add(Issue(title="pothole", status_id=statuses["open"]))
        await session.commit()

        await session.execute(update(Issue).values(status_id=statuses["closed"]))
        await session.commit()

        with pytest.raises(StatusDomainError) as excinfo:
            await session.execute(update(Issue).values(status_id=orders["pending"]))
        await session.rollback()
    assert excinfo.value.column_name == "status_id"
    assert excinfo.value.actual == "orders_status"

    async with SessionLocal() as session:
        stored = (await session.execute(select(Issue))).scalar_one()
    assert stored.status_id == statuses["closed"]


async def test_bulk_insert_is_validated() -> None:
    statuses, priorities, orders = await _seed()
    async with SessionLocal() as session:
        with pytest.raises(StatusDomainError):
            await session.execute(insert(Issue).values(title="pothole", status_id=orders["pending"]))
        await session.rollback()

        with pytest.raises(StatusDomainError) as excinfo:
            await session.execute(
                insert(Issue),
                [
                    {"title": "first", "status_id": statuses["open"]},
                    {"title": "second", "status_id": statuses["open"], "priority_id": statuses["open"]},
                ],
            )
        await session.rollback()
    assert excinfo.value.column_name == "priority_id"

    async with SessionLocal() as session:
        assert (await session.execute(select(Issue))).scalars().all() == []
        await session.execute(
            insert(Issue),
            [
                {"title": "first", "status_id": statuses["open"]},
                {"title": "second", "status_id": statuses["in_progress"], "priority_id": priorities["low"]},
            ],
        )
        await session.commit()
        assert len((await session.execute(select(Issue))).scalars().all()) == 2


async def test_expression_assignment_is_rejected() -> None:
    statuses, _priorities, _orders = await _seed()
    async with SessionLocal() as session:
        session.add(Issue(title="pothole", status_id=statuses["open"]))
        await session.commit()

        with pytest.raises(StatusDomainUnverifiableError) as excinfo:
            await session.execute(update(Issue).values(status_id=Issue.priority_id))
        await session.rollback()
    assert excinfo.value.column_name == "status_id"
    assert not excinfo.value.not_found
    assert "cannot be verified" in str(excinfo.value)


async def test_bulk_update_of_unmapped_columns_is_not_checked() -> None:
    statuses, _priorities, _orders = await _seed()
    async with SessionLocal() as session:
        session.add(Issue(title="pothole", status_id=statuses["open"]))
        await session.commit()

        await session.execute(update(Issue).values(title="sinkhole"))
        await session.commit()
        stored = (await session.execute(select(Issue))).scalar_one()
    assert stored.title == "sinkhole"
