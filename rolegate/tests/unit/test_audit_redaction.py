from __future__ import annotations

from rolegate.services.audit import sanitize_metadata


def test_audit_redacts_tokens_and_secrets() -> None:
    payload = {
        "impersonated_roles": ["editor"],
        "access_token": "secret-access",
        "client_secret": "super-secret",
        "nested": {"Authorization": "Bearer abc", "items": [{"password": "p"}]},
        "safe": "value",
    }
    sanitized = sanitize_metadata(payload)
    assert sanitized["impersonated_roles"] == ["editor"]
    assert sanitized["access_token"] == "[REDACTED]"
    assert sanitized["client_secret"] == "[REDACTED]"
    assert sanitized["nested"]["Authorization"] == "[REDACTED]"
    assert sanitized["nested"]["items"][0]["password"] == "[REDACTED]"
    assert sanitized["safe"] == "value"
