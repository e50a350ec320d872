from __future__ import annotations

from httpx import ASGITransport, AsyncClient

from rolegate.apps.api.main import create_app
from rolegate.tests.utils.auth import admin_headers, claims_headers
from rolegate.tests.utils.seed import create_entity_action, create_role


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test")


_CLOSE_ISSUE = {
    "table_name": "issues",
    "action_name": "close_issue",
    "display_name": "Close issue",
    "rpc_function": "close_issue",
    "button_style": "warning",
    "requires_confirmation": True,
    "confirmation_message": "Close this issue?",
    "visibility_condition": {"field": "status_id", "operator": "ne", "value": 3},
}


async def test_admin_creates_and_patches_action() -> None:
    async with _client() as client:
        created = await client.post("/v1/admin/entity-actions", json=_CLOSE_ISSUE, headers=admin_headers())
        assert created.status_code == 201
        action = created.json()["data"]
        assert action["button_style"] == "warning"
        assert action["refresh_after_action"] is True

        duplicate = await client.post("/v1/admin/entity-actions", json=_CLOSE_ISSUE, headers=admin_headers())
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "ENTITY_ACTION_CONFLICT"

        patched = await client.patch(
            f"/v1/admin/entity-actions/{action['id']}",
            json={"display_name": "Resolve", "sort_order": 5},
            headers=admin_headers(),
        )
        assert patched.status_code == 200
        assert patched.json()["data"]["display_name"] == "Resolve"
        assert patched.json()["data"]["action_name"] == "close_issue"

        identity = await client.patch(
            f"/v1/admin/entity-actions/{action['id']}",
            json={"action_name": "resolve_issue"},
            headers=admin_headers(),
        )
        assert identity.status_code == 422


async def test_confirmation_message_required() -> None:
    payload = {**_CLOSE_ISSUE, "confirmation_message": None}
    async with _client() as client:
        created = await client.post("/v1/admin/entity-actions", json=payload, headers=admin_headers())
        assert created.status_code == 422
        assert created.json()["error"]["code"] == "ENTITY_ACTION_INVALID"

        ok = await client.post("/v1/admin/entity-actions", json=_CLOSE_ISSUE, headers=admin_headers())
        # Clearing the message while confirmation is still required breaks the merged definition.
        cleared = await client.patch(
            f"/v1/admin/entity-actions/{ok.json()['data']['id']}",
            json={"confirmation_message": None},
            headers=admin_headers(),
        )
        assert cleared.status_code == 422


async def test_invalid_button_style_rejected() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/admin/entity-actions",
            json={**_CLOSE_ISSUE, "button_style": "danger"},
            headers=admin_headers(),
        )
    assert response.status_code == 422


async def test_non_admin_cannot_define_actions() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/admin/entity-actions", json=_CLOSE_ISSUE, headers=claims_headers(roles=["manager"])
        )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ADMIN_REQUIRED"


async def test_listing_flags_executable_actions() -> None:
    manager_id = await create_role("manager")
    close_id = await create_entity_action("issues", "close_issue", sort_order=1)
    reopen_id = await create_entity_action("issues", "reopen_issue", sort_order=2)
    await create_entity_action("issues", "internal_sync", show_on_detail=False)
    async with _client() as client:
        await client.post(f"/v1/admin/entity-actions/{close_id}/roles/{manager_id}", headers=admin_headers())
        as_manager = await client.get(
            "/v1/entity-actions", params={"table_name": "issues"}, headers=claims_headers(roles=["manager"])
        )
        as_admin = await client.get("/v1/entity-actions", params={"table_name": "issues"}, headers=admin_headers())

    items = as_manager.json()["data"]["items"]
    assert [(item["id"], item["can_execute"]) for item in items] == [(close_id, True), (reopen_id, False)]
    assert all(item["can_execute"] for item in as_admin.json()["data"]["items"])
