from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from rolegate.core.errors import AdminAccessRequiredError
from rolegate.services.auth.claims import extract_identity
from rolegate.services.auth.impersonation import (
    is_real_admin,
    parse_impersonation_header,
    resolve_effective_roles,
)
from rolegate.services.authz.evaluator import is_admin


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Per-request authorization context.

    Built once at the edge of each request and passed explicitly to every engine
    call. It is never cached or shared between requests, since doing so would
    leak one caller's impersonation into another caller's permissions.
    """

    subject_id: str | None
    email: str | None
    real_roles: tuple[str, ...]
    effective_roles: tuple[str, ...]
    is_real_admin: bool

    @property
    def is_admin(self) -> bool:
        # Effective roles on purpose: lets a real admin test the app as a non-admin.
        return is_admin(self.effective_roles)

    @property
    def impersonating(self) -> bool:
        return self.is_real_admin and self.effective_roles != self.real_roles


def build_auth_context(
    claims: Any,
    impersonation_header: str | None = None,
    *,
    client_id: str = "myclient",
    impersonation_enabled: bool = True,
) -> AuthContext:
    identity = extract_identity(claims, client_id=client_id)
    requested = parse_impersonation_header(impersonation_header) if impersonation_enabled else None
    return AuthContext(
        subject_id=identity.subject_id,
        email=identity.email,
        real_roles=identity.roles,
        effective_roles=resolve_effective_roles(identity.roles, requested),
        is_real_admin=is_real_admin(identity.roles),
    )


def require_admin(ctx: AuthContext, *, operation: str) -> None:
    # Registry writes follow the effective role set, like every other permission check.
    if not ctx.is_admin:
        logger.warning(
            "authz_admin_required operation=%s subject_id=%s effective_roles=%s",
            operation,
            ctx.subject_id,
            ",".join(ctx.effective_roles),
        )
        raise AdminAccessRequiredError(f"Admin access required to {operation}")
