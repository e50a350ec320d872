from __future__ import annotations

import logging
from typing import Iterable


logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def parse_impersonation_header(raw: str | None) -> tuple[str, ...] | None:
    # Comma-separated role names; blank or unparseable input means "no impersonation".
    if raw is None:
        return None
    try:
        roles: list[str] = []
        for part in str(raw).split(","):
            name = part.strip()
            if name and name not in roles:
                roles.append(name)
    except Exception:  # noqa: BLE001 - a bad header falls back to real roles
        logger.debug("impersonation_header_unparseable", exc_info=True)
        return None
    return tuple(roles) or None


def is_real_admin(real_roles: Iterable[str]) -> bool:
    # Trust anchor: evaluated on unmodified claim roles only.
    return ADMIN_ROLE in set(real_roles)


def resolve_effective_roles(
    real_roles: tuple[str, ...],
    requested_roles: tuple[str, ...] | None,
) -> tuple[str, ...]:
    """Return the role set used for every downstream permission decision.

    Only real administrators can impersonate. A non-empty request replaces the
    real roles outright, so an admin requesting ``editor`` loses admin access
    for the duration of the request.
    """
    if not is_real_admin(real_roles):
        return real_roles
    if not requested_roles:
        return real_roles
    return requested_roles
