from __future__ import annotations

from httpx import ASGITransport, AsyncClient
import pytest
from sqlalchemy import func, select

from rolegate.apps.api.main import create_app
from rolegate.core.config import get_settings
from rolegate.core.errors import AdminAccessRequiredError
from rolegate.domain.models import AdminAuditLog
from rolegate.persistence.db import SessionLocal
from rolegate.services.audit import list_admin_audit_log, log_impersonation, record_admin_event
from rolegate.tests.utils.auth import admin_context, admin_headers, claims_headers, make_context


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test")


async def _count_entries() -> int:
    async with SessionLocal() as session:
        result = await session.execute(select(func.count()).select_from(AdminAuditLog))
        return int(result.scalar() or 0)


async def test_impersonation_start_is_logged_with_real_identity() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/impersonation/log",
            json={"impersonated_roles": ["editor", "viewer"], "action": "start"},
            # Already impersonating: the entry must still name the real admin.
            headers=admin_headers(impersonate=["editor", "viewer"]),
        )
    assert response.status_code == 200
    body = response.json()
    assert body["data"] == {"success": True, "message": "Impersonation start logged"}
    assert body["meta"]["api_version"] == "v1"

    async with SessionLocal() as session:
        entry = (await session.execute(select(AdminAuditLog))).scalar_one()
    assert entry.real_user_id == "admin-1"
    assert entry.real_user_email == "admin@example.com"
    assert entry.event_type == "impersonation_start"
    assert entry.event_data == {"impersonated_roles": ["editor", "viewer"]}


async def test_impersonation_log_refuses_non_admins_softly() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/impersonation/log",
            json={"impersonated_roles": ["admin"], "action": "start"},
            headers=claims_headers(roles=["editor"]),
        )
    assert response.status_code == 200
    assert response.json()["data"] == {"success": False, "message": "Only admins can use role impersonation"}
    assert await _count_entries() == 0


async def test_impersonation_log_rejects_unknown_action() -> None:
    async with SessionLocal() as session:
        result = await log_impersonation(session, admin_context(), requested_roles=["editor"], action="pause")
    assert not result.success
    assert result.message == 'Invalid action. Must be "start" or "stop"'
    assert await _count_entries() == 0


async def test_identity_fields_in_body_are_rejected() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/impersonation/log",
            json={"impersonated_roles": ["editor"], "action": "start", "real_user_id": "someone-else"},
            headers=admin_headers(),
        )
    assert response.status_code == 422
    assert await _count_entries() == 0


async def test_admin_log_is_newest_first_and_filterable() -> None:
    ctx = admin_context()
    async with SessionLocal() as session:
        await log_impersonation(session, ctx, requested_roles=["editor"], action="start")
        await record_admin_event(session, ctx, event_type="permission_change", event_data={"change": "grant"}, commit=True)
        await log_impersonation(session, ctx, requested_roles=["editor"], action="stop")

    async with _client() as client:
        everything = await client.get("/v1/audit/admin-log", headers=admin_headers())
        only_start = await client.get(
            "/v1/audit/admin-log", params={"event_type": "impersonation_start"}, headers=admin_headers()
        )
        paged = await client.get("/v1/audit/admin-log", params={"limit": 1, "offset": 1}, headers=admin_headers())

    assert everything.status_code == 200
    types = [item["event_type"] for item in everything.json()["data"]["items"]]
    assert types == ["impersonation_stop", "permission_change", "impersonation_start"]
    assert [item["event_type"] for item in only_start.json()["data"]["items"]] == ["impersonation_start"]
    assert [item["event_type"] for item in paged.json()["data"]["items"]] == ["permission_change"]
    assert paged.json()["data"]["next_offset"] == 2


async def test_default_page_size_reports_next_offset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "audit_default_limit", 2)
    ctx = admin_context()
    async with SessionLocal() as session:
        for action in ("start", "stop", "start"):
            await log_impersonation(session, ctx, requested_roles=["editor"], action=action)

    async with _client() as client:
        first = await client.get("/v1/audit/admin-log", headers=admin_headers())
        last = await client.get("/v1/audit/admin-log", params={"offset": 2}, headers=admin_headers())

    assert len(first.json()["data"]["items"]) == 2
    assert first.json()["data"]["next_offset"] == 2
    assert len(last.json()["data"]["items"]) == 1
    assert last.json()["data"]["next_offset"] is None


async def test_admin_log_forbidden_for_non_admins() -> None:
    async with _client() as client:
        response = await client.get("/v1/audit/admin-log", headers=claims_headers(roles=["editor"]))
        anonymous = await client.get("/v1/audit/admin-log")
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ADMIN_REQUIRED"
    assert anonymous.status_code == 403


async def test_impersonating_admin_can_still_read_admin_log() -> None:
    async with _client() as client:
        response = await client.get("/v1/audit/admin-log", headers=admin_headers(impersonate=["viewer"]))
    assert response.status_code == 200


async def test_audit_read_raises_for_non_real_admin() -> None:
    async with SessionLocal() as session:
        with pytest.raises(AdminAccessRequiredError):
            await list_admin_audit_log(session, make_context(roles=["editor"]))
