from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
import json
import logging
from typing import Any, Mapping


logger = logging.getLogger(__name__)

ANONYMOUS_ROLE = "anonymous"


@dataclass(frozen=True)
class ClaimsIdentity:
    # Identity as asserted by already-verified claims; subject_id is None for anonymous callers.
    subject_id: str | None
    roles: tuple[str, ...]
    email: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.subject_id is None


ANONYMOUS = ClaimsIdentity(subject_id=None, roles=(ANONYMOUS_ROLE,), email=None)


def parse_claims_header(raw: str | None) -> dict[str, Any] | None:
    # Accept a plain JSON object or base64url JSON (gateway x-jwt-payload style).
    if not raw:
        return None
    text = raw.strip()
    if not text:
        return None
    try:
        if not text.startswith("{"):
            padded = text + "=" * (-len(text) % 4)
            text = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        payload = json.loads(text)
    except (ValueError, UnicodeError, binascii.Error):
        logger.debug("claims_header_unparseable")
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def _role_list(value: Any) -> list[str] | None:
    # A claim shape counts as present only when it is a list.
    if not isinstance(value, list):
        return None
    roles: list[str] = []
    for item in value:
        if isinstance(item, str) and item and item not in roles:
            roles.append(item)
    return roles


def _nested(claims: Mapping[str, Any], *path: str) -> Any:
    node: Any = claims
    for part in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node


def extract_roles(claims: Mapping[str, Any], *, client_id: str) -> tuple[str, ...]:
    """Return roles from the first recognized claim shape.

    Shapes are tried in order: realm-wide ``realm_access.roles``, client-scoped
    ``resource_access.<client_id>.roles``, then a bare top-level ``roles``. When
    none is present the caller is authenticated but roleless.
    """
    for candidate in (
        _nested(claims, "realm_access", "roles"),
        _nested(claims, "resource_access", client_id, "roles"),
        claims.get("roles"),
    ):
        roles = _role_list(candidate)
        if roles is not None:
            return tuple(roles)
    return ()


def extract_identity(claims: Any, *, client_id: str = "myclient") -> ClaimsIdentity:
    # Never raises: absent or malformed claims degrade to the anonymous identity.
    try:
        if not isinstance(claims, Mapping):
            return ANONYMOUS
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            return ANONYMOUS
        email = claims.get("email")
        return ClaimsIdentity(
            subject_id=subject,
            roles=extract_roles(claims, client_id=client_id),
            email=email if isinstance(email, str) else None,
        )
    except Exception:  # noqa: BLE001 - claim parsing must never fail the request
        logger.debug("claims_extraction_failed", exc_info=True)
        return ANONYMOUS
