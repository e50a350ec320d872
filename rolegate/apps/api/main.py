from __future__ import annotations

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from rolegate.apps.api.errors import (
    database_exception_handler,
    http_exception_handler,
    rolegate_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from rolegate.apps.api.response import API_VERSION
from rolegate.apps.api.routes.audit import router as audit_router
from rolegate.apps.api.routes.authz import router as authz_router
from rolegate.apps.api.routes.entity_actions import router as entity_actions_router
from rolegate.apps.api.routes.health import router as health_router
from rolegate.apps.api.routes.impersonation import router as impersonation_router
from rolegate.apps.api.routes.roles import router as roles_router
from rolegate.apps.api.routes.statuses import router as statuses_router
from rolegate.core.config import get_settings
from rolegate.core.errors import RolegateError
from rolegate.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="Rolegate API", docs_url="/v1/docs", openapi_url="/v1/openapi.json", redoc_url=None)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RolegateError, rolegate_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Mount versioned v1 API routes.
    app.include_router(health_router, prefix=f"/{API_VERSION}")
    # Decision endpoints consumed by UI projection layers.
    app.include_router(authz_router, prefix=f"/{API_VERSION}")
    app.include_router(impersonation_router, prefix=f"/{API_VERSION}")
    # Real-admin audit trail of impersonation and permission changes.
    app.include_router(audit_router, prefix=f"/{API_VERSION}")
    app.include_router(roles_router, prefix=f"/{API_VERSION}")
    app.include_router(statuses_router, prefix=f"/{API_VERSION}")
    app.include_router(entity_actions_router, prefix=f"/{API_VERSION}")

    def custom_openapi() -> dict:
        # Document the trusted claims and impersonation headers on every route.
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title="Rolegate API", version=API_VERSION, routes=app.routes)
        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["GatewayClaims"] = {"type": "apiKey", "in": "header", "name": settings.claims_header}
        security_schemes["Impersonation"] = {
            "type": "apiKey",
            "in": "header",
            "name": settings.impersonation_header,
        }
        for path, operations in schema.get("paths", {}).items():
            if path == f"/{API_VERSION}/health":
                continue
            for operation in operations.values():
                operation.setdefault("security", [{"GatewayClaims": []}, {"GatewayClaims": [], "Impersonation": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
