from __future__ import annotations

import base64
import json

from rolegate.services.auth.claims import (
    ANONYMOUS_ROLE,
    extract_identity,
    extract_roles,
    parse_claims_header,
)


def test_missing_claims_are_anonymous() -> None:
    identity = extract_identity(None)
    assert identity.subject_id is None
    assert identity.roles == (ANONYMOUS_ROLE,)
    assert identity.is_anonymous


def test_empty_subject_is_anonymous() -> None:
    identity = extract_identity({"sub": "  ", "roles": ["editor"]})
    assert identity.is_anonymous
    assert identity.roles == (ANONYMOUS_ROLE,)


def test_non_mapping_claims_are_anonymous() -> None:
    assert extract_identity(["sub", "user-1"]).is_anonymous
    assert extract_identity("user-1").is_anonymous


def test_realm_roles_take_precedence() -> None:
    claims = {
        "sub": "u1",
        "realm_access": {"roles": ["editor"]},
        "resource_access": {"myclient": {"roles": ["viewer"]}},
        "roles": ["admin"],
    }
    assert extract_identity(claims).roles == ("editor",)


def test_client_roles_used_when_realm_roles_absent() -> None:
    claims = {"sub": "u1", "resource_access": {"myclient": {"roles": ["viewer"]}}, "roles": ["admin"]}
    assert extract_identity(claims).roles == ("viewer",)


def test_client_id_is_configurable() -> None:
    claims = {"resource_access": {"portal": {"roles": ["manager"]}, "myclient": {"roles": ["viewer"]}}}
    assert extract_roles(claims, client_id="portal") == ("manager",)


def test_top_level_roles_are_last_resort() -> None:
    assert extract_identity({"sub": "u1", "roles": ["member"]}).roles == ("member",)


def test_no_role_shape_means_roleless_not_anonymous() -> None:
    identity = extract_identity({"sub": "u1", "email": "u1@example.com"})
    assert identity.subject_id == "u1"
    assert identity.roles == ()
    assert identity.email == "u1@example.com"


def test_non_string_roles_are_dropped_and_duplicates_removed() -> None:
    claims = {"sub": "u1", "realm_access": {"roles": ["editor", 7, None, "editor", "", "viewer"]}}
    assert extract_identity(claims).roles == ("editor", "viewer")


def test_malformed_role_shape_falls_through() -> None:
    # realm_access.roles is not a list, so the next shape is tried.
    claims = {"sub": "u1", "realm_access": {"roles": "admin"}, "roles": ["member"]}
    assert extract_identity(claims).roles == ("member",)


def test_parse_claims_header_accepts_json_and_base64url() -> None:
    payload = {"sub": "u1", "roles": ["member"]}
    raw = json.dumps(payload)
    encoded = base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")
    assert parse_claims_header(raw) == payload
    assert parse_claims_header(encoded) == payload


def test_parse_claims_header_rejects_garbage() -> None:
    assert parse_claims_header(None) is None
    assert parse_claims_header("") is None
    assert parse_claims_header("{not json") is None
    assert parse_claims_header("!!!") is None
    assert parse_claims_header(json.dumps(["sub"])) is None
