from __future__ import annotations

from rolegate.domain.models import EntityAction, PropertyMetadata, Role, Status, StatusType
from rolegate.persistence.db import SessionLocal


async def create_role(display_name: str, description: str | None = None) -> int:
    async with SessionLocal() as session:
        role = Role(display_name=display_name, description=description)
        session.add(role)
        await session.commit()
        return role.id


async def create_domain(entity_type: str, *values: tuple[str, bool]) -> dict[str, int]:
    # Seed a status domain; each value is (display_name, is_initial). Returns key -> id.
    async with SessionLocal() as session:
        session.add(StatusType(entity_type=entity_type))
        await session.flush()
        rows = []
        for index, (display_name, is_initial) in enumerate(values):
            row = Status(
                entity_type=entity_type,
                display_name=display_name,
                status_key="",
                sort_order=index,
                is_initial=is_initial,
            )
            session.add(row)
            rows.append(row)
        await session.commit()
        return {row.status_key: row.id for row in rows}


async def map_status_column(table_name: str, column_name: str, entity_type: str) -> None:
    async with SessionLocal() as session:
        session.add(
            PropertyMetadata(table_name=table_name, column_name=column_name, status_entity_type=entity_type)
        )
        await session.commit()


async def create_entity_action(table_name: str, action_name: str, **fields) -> int:
    async with SessionLocal() as session:
        action = EntityAction(
            table_name=table_name,
            action_name=action_name,
            display_name=fields.pop("display_name", action_name.replace("_", " ").title()),
            rpc_function=fields.pop("rpc_function", action_name),
            **fields,
        )
        session.add(action)
        await session.commit()
        return action.id
