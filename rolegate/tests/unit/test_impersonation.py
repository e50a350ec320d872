from __future__ import annotations

from rolegate.services.auth.impersonation import (
    is_real_admin,
    parse_impersonation_header,
    resolve_effective_roles,
)
from rolegate.services.authz.context import build_auth_context


def test_parse_header_trims_and_drops_empties() -> None:
    assert parse_impersonation_header(" editor, ,viewer ,") == ("editor", "viewer")


def test_parse_header_blank_means_no_impersonation() -> None:
    assert parse_impersonation_header(None) is None
    assert parse_impersonation_header("") is None
    assert parse_impersonation_header(" , ,") is None


def test_non_admin_request_is_ignored() -> None:
    assert resolve_effective_roles(("editor",), ("admin",)) == ("editor",)


def test_admin_request_replaces_roles() -> None:
    # The admin role is dropped too, so the admin sees exactly what an editor sees.
    assert resolve_effective_roles(("admin", "editor"), ("viewer",)) == ("viewer",)


def test_admin_without_request_keeps_real_roles() -> None:
    assert resolve_effective_roles(("admin",), None) == ("admin",)
    assert resolve_effective_roles(("admin",), ()) == ("admin",)


def test_real_admin_flag_uses_real_roles_only() -> None:
    assert is_real_admin(("admin",))
    assert not is_real_admin(("editor",))


def test_context_keeps_real_admin_while_impersonating() -> None:
    ctx = build_auth_context({"sub": "a1", "roles": ["admin"]}, "editor")
    assert ctx.effective_roles == ("editor",)
    assert ctx.real_roles == ("admin",)
    assert ctx.is_real_admin
    assert not ctx.is_admin
    assert ctx.impersonating


def test_context_ignores_header_when_disabled() -> None:
    ctx = build_auth_context({"sub": "a1", "roles": ["admin"]}, "editor", impersonation_enabled=False)
    assert ctx.effective_roles == ("admin",)
    assert not ctx.impersonating


def test_non_admin_cannot_escalate_through_header() -> None:
    ctx = build_auth_context({"sub": "u1", "roles": ["editor"]}, "admin")
    assert ctx.effective_roles == ("editor",)
    assert not ctx.is_admin
    assert not ctx.is_real_admin
    assert not ctx.impersonating


def test_anonymous_context() -> None:
    ctx = build_auth_context(None, "admin")
    assert ctx.subject_id is None
    assert ctx.effective_roles == ("anonymous",)
    assert not ctx.is_admin
