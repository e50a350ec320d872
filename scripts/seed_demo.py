from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
import sys

from rolegate.core.errors import StatusConflictError
from rolegate.persistence.db import SessionLocal
from rolegate.persistence.repos import grants as grants_repo
from rolegate.persistence.repos import statuses as statuses_repo
from rolegate.services import statuses as statuses_service
from rolegate.services.authz import grants as grants_service
from rolegate.services.authz.context import AuthContext, build_auth_context


@dataclass(frozen=True)
class DemoStatus:
    display_name: str
    color: str
    is_initial: bool = False
    is_terminal: bool = False


DEMO_ROLES = (
    ("admin", "Full access; bypasses table and action grants"),
    ("editor", "Can triage and update issues"),
    ("viewer", "Read-only access"),
)
DEMO_GRANTS = (
    ("editor", "issues", "read"),
    ("editor", "issues", "create"),
    ("editor", "issues", "update"),
    ("viewer", "issues", "read"),
)
DEMO_DOMAIN = "issues_status"
DEMO_STATUSES = (
    DemoStatus("Open", "#3B82F6", is_initial=True),
    DemoStatus("In Progress", "#F59E0B"),
    DemoStatus("Closed", "#10B981", is_terminal=True),
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed demo roles, grants and an issue status domain")
    parser.add_argument("--table", default="issues", help="Table whose status column gets mapped")
    parser.add_argument("--column", default="status_id", help="Status-referencing column name")
    parser.add_argument("--operator", default="seed_demo", help="Subject id recorded in the audit log")
    return parser


async def _ensure_roles(ctx: AuthContext) -> dict[str, int]:
    role_ids: dict[str, int] = {}
    async with SessionLocal() as session:
        for name, description in DEMO_ROLES:
            existing = await grants_repo.get_role_by_name(session, name)
            if existing is None:
                result = await grants_service.create_role(session, ctx, display_name=name, description=description)
                if not result.success:
                    raise RuntimeError(result.error)
                role_ids[name] = int(result.data["role_id"])
            else:
                role_ids[name] = existing.id
    return role_ids


async def _ensure_grants(ctx: AuthContext, role_ids: dict[str, int]) -> None:
    async with SessionLocal() as session:
        for role_name, table_name, operation in DEMO_GRANTS:
            result = await grants_service.grant_table_permission(
                session, ctx, role_id=role_ids[role_name], table_name=table_name, operation=operation
            )
            if not result.success:
                raise RuntimeError(result.error)


async def _ensure_statuses(ctx: AuthContext, *, table_name: str, column_name: str) -> None:
    async with SessionLocal() as session:
        if await statuses_repo.get_status_type(session, DEMO_DOMAIN) is None:
            await statuses_service.create_status_type(
                session, ctx, entity_type=DEMO_DOMAIN, description="Issue workflow"
            )
        for index, item in enumerate(DEMO_STATUSES):
            try:
                await statuses_service.create_status(
                    session,
                    ctx,
                    entity_type=DEMO_DOMAIN,
                    display_name=item.display_name,
                    color=item.color,
                    sort_order=index,
                    is_initial=item.is_initial,
                    is_terminal=item.is_terminal,
                )
            except StatusConflictError:
                # Already seeded on a previous run.
                continue
        await statuses_service.set_status_column(
            session, ctx, table_name=table_name, column_name=column_name, entity_type=DEMO_DOMAIN
        )


async def _seed(args: argparse.Namespace) -> int:
    # Operator tool: acts with a synthetic admin identity instead of request claims.
    ctx = build_auth_context({"sub": args.operator, "roles": ["admin"]})
    role_ids = await _ensure_roles(ctx)
    await _ensure_grants(ctx, role_ids)
    await _ensure_statuses(ctx, table_name=args.table, column_name=args.column)
    print("Demo data seeded:")
    print(f"  roles: {', '.join(sorted(role_ids))}")
    print(f"  status domain: {DEMO_DOMAIN} -> {args.table}.{args.column}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_seed(args))
    except Exception as exc:  # noqa: BLE001 - surface seeding failures clearly
        print(f"seed_demo failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
