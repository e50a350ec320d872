from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.core.config import get_settings
from rolegate.core.errors import AdminAccessRequiredError
from rolegate.domain.models import AdminAuditLog
from rolegate.persistence.repos import audit as audit_repo
from rolegate.services.authz.context import AuthContext


logger = logging.getLogger(__name__)

IMPERSONATION_ACTIONS = ("start", "stop")
PERMISSION_CHANGE_EVENT = "permission_change"

_SENSITIVE_KEY_PATTERNS = ["api_key", "authorization", "token", "secret", "password"]
_REDACTED_VALUE = "[REDACTED]"


@dataclass(frozen=True)
class AuditResult:
    success: bool
    message: str


def _is_sensitive_key(key: str) -> bool:
    # Match sensitive key fragments case-insensitively to enforce redaction policy.
    lowered = key.lower()
    return any(pattern in lowered for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_metadata(value: Any) -> Any:
    # Recursively scrub sensitive fields while preserving safe structure.
    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            key = str(raw_key)
            if _is_sensitive_key(key):
                sanitized[key] = _REDACTED_VALUE
            else:
                sanitized[key] = sanitize_metadata(raw_value)
        return sanitized
    if isinstance(value, list):
        return [sanitize_metadata(item) for item in value]
    return value


def _require_real_admin(ctx: AuthContext, *, operation: str) -> None:
    if not ctx.is_real_admin or ctx.subject_id is None:
        logger.warning(
            "authz_admin_required operation=%s subject_id=%s effective_roles=%s",
            operation,
            ctx.subject_id,
            ",".join(ctx.effective_roles),
        )
        raise AdminAccessRequiredError(f"Only admins can {operation}")


async def record_admin_event(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    event_type: str,
    event_data: dict[str, Any] | None = None,
    commit: bool = False,
) -> AdminAuditLog:
    """Append one admin audit entry for the caller's real identity.

    Identity fields come from ``ctx`` (derived from claims before impersonation
    resolution), never from caller input, so an impersonated session cannot
    forge an entry for another user.
    """
    _require_real_admin(ctx, operation="write audit entries")
    entry = AdminAuditLog(
        real_user_id=ctx.subject_id,
        real_user_email=ctx.email,
        event_type=event_type,
        event_data=sanitize_metadata(event_data or {}),
        created_at=datetime.now(timezone.utc),
    )
    await audit_repo.append_entry(session, entry)
    if commit:
        await session.commit()
    return entry


async def log_impersonation(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    requested_roles: Iterable[str],
    action: str,
) -> AuditResult:
    # Soft result: callers render the message instead of handling exceptions.
    if not ctx.is_real_admin or ctx.subject_id is None:
        return AuditResult(success=False, message="Only admins can use role impersonation")
    if action not in IMPERSONATION_ACTIONS:
        return AuditResult(success=False, message='Invalid action. Must be "start" or "stop"')

    roles = list(requested_roles)
    try:
        await record_admin_event(
            session,
            ctx,
            event_type=f"impersonation_{action}",
            event_data={"impersonated_roles": roles},
            commit=True,
        )
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error(
            "audit_write_failed event_type=impersonation_%s subject_id=%s",
            action,
            ctx.subject_id,
            exc_info=exc,
        )
        return AuditResult(success=False, message="Failed to record impersonation event")

    logger.info(
        "impersonation_logged action=%s subject_id=%s roles=%s",
        action,
        ctx.subject_id,
        ",".join(roles),
    )
    return AuditResult(success=True, message=f"Impersonation {action} logged")


def resolve_audit_limit(limit: int | None) -> int:
    settings = get_settings()
    resolved = settings.audit_default_limit if limit is None else limit
    return max(0, min(int(resolved), settings.audit_max_limit))


async def list_admin_audit_log(
    session: AsyncSession,
    ctx: AuthContext,
    *,
    event_type: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[AdminAuditLog]:
    # Hard failure for non-real-admins: reading audit data is an access violation.
    _require_real_admin(ctx, operation="view audit logs")
    return await audit_repo.list_entries(
        session,
        event_type=event_type,
        offset=max(0, int(offset)),
        limit=resolve_audit_limit(limit),
    )
