from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from rolegate.apps.api.response import error_response
from rolegate.core.errors import (
    AdminAccessRequiredError,
    EntityActionConflictError,
    EntityActionInvalidError,
    NotFoundError,
    RolegateError,
    StatusConflictError,
    StatusDomainError,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}

# Domain error -> (HTTP status, stable error code). First match wins.
_DOMAIN_ERRORS: tuple[tuple[type[RolegateError], int, str], ...] = (
    (AdminAccessRequiredError, 403, "ADMIN_REQUIRED"),
    (StatusDomainError, 422, "STATUS_DOMAIN_INVALID"),
    (StatusConflictError, 409, "STATUS_CONFLICT"),
    (EntityActionInvalidError, 422, "ENTITY_ACTION_INVALID"),
    (EntityActionConflictError, 409, "ENTITY_ACTION_CONFLICT"),
    (NotFoundError, 404, "NOT_FOUND"),
)


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # HTTPException details may be a plain message or a {code, message, ...} dict.
    fallback = _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")
    if isinstance(detail, dict):
        code = str(detail.get("code") or fallback)
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return fallback, detail, None
    return fallback, "Request failed", None


def _domain_details(exc: RolegateError) -> dict[str, Any] | None:
    if isinstance(exc, StatusDomainError):
        return {
            "table_name": exc.table_name,
            "column_name": exc.column_name,
            "expected": exc.expected,
            "actual": exc.actual,
        }
    return None


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Structured details so admin UIs can point at the offending field.
    payload = error_response(
        request=request,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_errors(exc)},
    )
    return JSONResponse(content=payload, status_code=422)


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    # pydantic may attach the raw exception under ctx; keep only its message.
    errors: list[dict[str, Any]] = []
    for error in exc.errors():
        item = dict(error)
        ctx = item.get("ctx")
        if isinstance(ctx, dict):
            item["ctx"] = {key: str(value) for key, value in ctx.items()}
        errors.append(item)
    return errors


async def rolegate_exception_handler(request: Request, exc: RolegateError) -> JSONResponse:
    for error_type, status_code, code in _DOMAIN_ERRORS:
        if isinstance(exc, error_type):
            payload = error_response(
                request=request,
                code=code,
                message=str(exc),
                details=_domain_details(exc),
            )
            return JSONResponse(content=payload, status_code=status_code)
    return await unhandled_exception_handler(request, exc)


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # The request session is closed (and rolled back) by get_db on the way out.
    logger.error("database_error path=%s", request.url.path, exc_info=exc)
    payload = error_response(request=request, code="DATABASE_ERROR", message="Database error")
    return JSONResponse(content=payload, status_code=500)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak stack traces to clients.
    logger.error("unhandled_exception path=%s", request.url.path, exc_info=exc)
    payload = error_response(request=request, code="INTERNAL_ERROR", message="Internal server error")
    return JSONResponse(content=payload, status_code=500)
