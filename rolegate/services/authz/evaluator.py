from __future__ import annotations

from typing import Iterable, Protocol

from rolegate.domain.models import CRUD_OPERATIONS
from rolegate.services.auth.impersonation import ADMIN_ROLE


class GrantStore(Protocol):
    # Read side of the grant relation; any backing store can implement it.
    async def roles_for_table(self, table_name: str, operation: str) -> set[str]: ...

    async def roles_for_action(self, action_id: int) -> set[str]: ...


def is_admin(roles: Iterable[str]) -> bool:
    return ADMIN_ROLE in set(roles)


def decide(effective_roles: Iterable[str], granted_roles: Iterable[str]) -> bool:
    # Admin bypass, else grant membership. No grants at all means admin-only.
    roles = set(effective_roles)
    if ADMIN_ROLE in roles:
        return True
    return not roles.isdisjoint(granted_roles)


async def can(
    store: GrantStore,
    *,
    table_name: str,
    operation: str,
    effective_roles: Iterable[str],
) -> bool:
    roles = set(effective_roles)
    if is_admin(roles):
        return True
    if operation not in CRUD_OPERATIONS:
        return False
    granted = await store.roles_for_table(table_name, operation)
    return decide(roles, granted)


async def can_execute_action(
    store: GrantStore,
    *,
    action_id: int,
    effective_roles: Iterable[str],
) -> bool:
    roles = set(effective_roles)
    if is_admin(roles):
        return True
    granted = await store.roles_for_action(action_id)
    return decide(roles, granted)


async def table_permissions(
    store: GrantStore,
    *,
    table_name: str,
    effective_roles: Iterable[str],
) -> dict[str, bool]:
    # CRUD flags for one table, as consumed by UI projection layers.
    roles = tuple(effective_roles)
    return {
        operation: await can(store, table_name=table_name, operation=operation, effective_roles=roles)
        for operation in CRUD_OPERATIONS
    }
