from __future__ import annotations

from httpx import ASGITransport, AsyncClient

from rolegate.apps.api.main import create_app
from rolegate.tests.utils.auth import admin_headers, claims_headers
from rolegate.tests.utils.seed import create_entity_action, create_role


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test")


async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/v1/health")
    assert response.status_code == 200
    assert response.json()["data"] == {"status": "ok"}
    assert response.headers["X-Request-Id"]


async def test_me_reports_impersonation_state() -> None:
    async with _client() as client:
        plain = await client.get("/v1/authz/me", headers=admin_headers(encode=True))
        impersonating = await client.get("/v1/authz/me", headers=admin_headers(impersonate=["editor"]))
        anonymous = await client.get("/v1/authz/me")

    assert plain.json()["data"]["is_admin"] is True
    assert plain.json()["data"]["impersonating"] is False

    data = impersonating.json()["data"]
    assert data["real_roles"] == ["admin"]
    assert data["effective_roles"] == ["editor"]
    assert data["is_admin"] is False
    assert data["is_real_admin"] is True
    assert data["impersonating"] is True

    assert anonymous.json()["data"]["subject_id"] is None
    assert anonymous.json()["data"]["effective_roles"] == ["anonymous"]


async def test_grant_then_check_over_http() -> None:
    editor_id = await create_role("editor")
    async with _client() as client:
        before = await client.get(
            "/v1/authz/can",
            params={"table_name": "issues", "operation": "update"},
            headers=claims_headers(roles=["editor"]),
        )
        granted = await client.post(
            "/v1/admin/permissions",
            json={"role_id": editor_id, "table_name": "issues", "permission": "update"},
            headers=admin_headers(),
        )
        after = await client.get(
            "/v1/authz/can",
            params={"table_name": "issues", "operation": "update"},
            headers=claims_headers(roles=["editor"]),
        )
        flags = await client.get("/v1/authz/tables/issues", headers=claims_headers(roles=["editor"]))
        as_admin_impersonating = await client.get(
            "/v1/authz/tables/issues", headers=admin_headers(impersonate=["editor"])
        )
        revoked = await client.request(
            "DELETE",
            "/v1/admin/permissions",
            json={"role_id": editor_id, "table_name": "issues", "permission": "update"},
            headers=admin_headers(),
        )
        role_permissions = await client.get(f"/v1/roles/{editor_id}/permissions")

    assert before.json()["data"] == {"allowed": False}
    assert granted.json()["data"] == {"success": True}
    assert after.json()["data"] == {"allowed": True}
    expected_flags = {"table_name": "issues", "create": False, "read": False, "update": True, "delete": False}
    assert flags.json()["data"] == expected_flags
    # An impersonating admin sees exactly what the impersonated role sees.
    assert as_admin_impersonating.json()["data"] == expected_flags
    assert revoked.json()["data"] == {"success": True}
    assert role_permissions.json()["data"]["items"] == []


async def test_grant_mutation_errors_are_soft() -> None:
    editor_id = await create_role("editor")
    async with _client() as client:
        invalid = await client.post(
            "/v1/admin/permissions",
            json={"role_id": editor_id, "table_name": "issues", "permission": "execute"},
            headers=admin_headers(),
        )
        denied = await client.post(
            "/v1/admin/permissions",
            json={"role_id": editor_id, "table_name": "issues", "permission": "read"},
            headers=claims_headers(roles=["editor"]),
        )
    assert invalid.status_code == 200
    assert invalid.json()["data"]["success"] is False
    assert invalid.json()["data"]["error"].startswith("Invalid permission type: execute")
    assert denied.status_code == 200
    assert denied.json()["data"] == {"success": False, "error": "Admin access required"}


async def test_entity_action_check_and_role_listing() -> None:
    manager_id = await create_role("manager")
    action_id = await create_entity_action("issues", "close_issue")
    async with _client() as client:
        denied = await client.get(f"/v1/authz/entity-actions/{action_id}", headers=claims_headers(roles=["manager"]))
        await client.post(f"/v1/admin/entity-actions/{action_id}/roles/{manager_id}", headers=admin_headers())
        allowed = await client.get(f"/v1/authz/entity-actions/{action_id}", headers=claims_headers(roles=["manager"]))
        role_actions = await client.get(f"/v1/roles/{manager_id}/entity-actions")
        missing_role = await client.get("/v1/roles/9999/entity-actions")
    assert denied.json()["data"] == {"allowed": False}
    assert allowed.json()["data"] == {"allowed": True}
    assert role_actions.json()["data"] == {"role_id": manager_id, "entity_action_ids": [action_id]}
    assert missing_role.status_code == 404
