from __future__ import annotations

from typing import Any

from rolegate.apps.api.response import ErrorEnvelope


def _error_response(description: str, *, code: str, message: str) -> dict[str, Any]:
    # Shared error envelope example for generated API docs.
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {
            "application/json": {
                "example": {
                    "error": {"code": code, "message": message},
                    "meta": {"request_id": "req_example", "api_version": "v1"},
                }
            }
        },
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    403: _error_response("Forbidden", code="ADMIN_REQUIRED", message="Only admins can view audit logs"),
    404: _error_response("Not found", code="NOT_FOUND", message="Resource not found"),
    409: _error_response(
        "Conflict",
        code="STATUS_CONFLICT",
        message="Status domain issues_status already has an initial status (Open)",
    ),
    422: _error_response(
        "Validation error",
        code="STATUS_DOMAIN_INVALID",
        message="Invalid status for column status_id: expected entity_type issues_status, got orders_status",
    ),
    500: _error_response("Internal server error", code="INTERNAL_ERROR", message="Internal server error"),
}
