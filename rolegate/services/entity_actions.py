from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.core.errors import EntityActionConflictError, EntityActionInvalidError, NotFoundError
from rolegate.domain.models import BUTTON_STYLES, EntityAction
from rolegate.persistence.repos import entity_actions as actions_repo
from rolegate.persistence.repos.grants import SqlGrantStore
from rolegate.services.authz.context import AuthContext, require_admin
from rolegate.services.authz.evaluator import can_execute_action


logger = logging.getLogger(__name__)

# Everything except (table_name, action_name) may be edited after creation.
_MUTABLE_ACTION_FIELDS = (
    "display_name",
    "description",
    "icon",
    "button_style",
    "sort_order",
    "rpc_function",
    "requires_confirmation",
    "confirmation_message",
    "visibility_condition",
    "enabled_condition",
    "disabled_tooltip",
    "default_success_message",
    "default_navigate_to",
    "refresh_after_action",
    "show_on_detail",
)


@dataclass(frozen=True)
class VisibleAction:
    action: EntityAction
    can_execute: bool


def _validate_definition(*, button_style: str, requires_confirmation: bool, confirmation_message: str | None) -> None:
    if button_style not in BUTTON_STYLES:
        raise EntityActionInvalidError(
            f"Invalid button_style: {button_style}. Must be one of: {', '.join(BUTTON_STYLES)}"
        )
    if requires_confirmation and not (confirmation_message or "").strip():
        raise EntityActionInvalidError("confirmation_message is required when requires_confirmation is true")


async def list_actions_for_table(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    table_name: str,
) -> list[VisibleAction]:
    # Every caller sees the detail-page actions; can_execute tells the UI which to enable.
    store = SqlGrantStore(session)
    actions = await actions_repo.list_actions(session, table_name=table_name)
    visible: list[VisibleAction] = []
    for action in actions:
        allowed = await can_execute_action(store, action_id=action.id, effective_roles=ctx.effective_roles)
        visible.append(VisibleAction(action=action, can_execute=allowed))
    return visible


async def create_action(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    table_name: str,
    action_name: str,
    display_name: str,
    rpc_function: str,
    **fields: Any,
) -> EntityAction:
    require_admin(ctx, operation="create entity actions")
    unknown = set(fields) - set(_MUTABLE_ACTION_FIELDS)
    if unknown:
        raise EntityActionInvalidError(f"Unknown entity action fields: {', '.join(sorted(unknown))}")
    _validate_definition(
        button_style=fields.get("button_style") or "primary",
        requires_confirmation=bool(fields.get("requires_confirmation")),
        confirmation_message=fields.get("confirmation_message"),
    )
    existing = await actions_repo.get_action_by_name(session, table_name=table_name, action_name=action_name)
    if existing is not None:
        raise EntityActionConflictError(f"Entity action {action_name} already exists on {table_name}")

    action = EntityAction(
        table_name=table_name,
        action_name=action_name,
        display_name=display_name,
        rpc_function=rpc_function,
        **{key: value for key, value in fields.items() if value is not None},
    )
    session.add(action)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise EntityActionConflictError(f"Entity action {action_name} already exists on {table_name}") from exc
    await session.refresh(action)
    logger.info(
        "entity_action_created action_id=%s table=%s action=%s subject_id=%s",
        action.id,
        table_name,
        action_name,
        ctx.subject_id,
    )
    return action


async def update_action(
    session: AsyncSession,
    ctx: AuthContext,
    action_id: int,
    changes: dict[str, Any],
) -> EntityAction:
    require_admin(ctx, operation="update entity actions")
    action = await actions_repo.get_action(session, action_id)
    if action is None:
        raise NotFoundError(f"Entity action {action_id} not found")
    unknown = set(changes) - set(_MUTABLE_ACTION_FIELDS)
    if unknown:
        raise EntityActionInvalidError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    # Validate the merged definition, not just the patch.
    _validate_definition(
        button_style=changes.get("button_style", action.button_style),
        requires_confirmation=changes.get("requires_confirmation", action.requires_confirmation),
        confirmation_message=changes.get("confirmation_message", action.confirmation_message),
    )
    for field_name, value in changes.items():
        setattr(action, field_name, value)
    await session.commit()
    await session.refresh(action)
    logger.info("entity_action_updated action_id=%s fields=%s subject_id=%s", action_id, ",".join(changes), ctx.subject_id)
    return action
