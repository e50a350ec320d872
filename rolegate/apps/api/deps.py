from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rolegate.core.config import get_settings
from rolegate.persistence.db import get_session
from rolegate.persistence.repos.grants import SqlGrantStore
from rolegate.services.auth.claims import parse_claims_header
from rolegate.services.authz.context import AuthContext, build_auth_context


logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; the context manager closes it on success and error.
    async with get_session() as session:
        yield session


def _request_claims(request: Request) -> object | None:
    # Claims placed on request.state by an auth middleware win over the gateway header.
    claims = getattr(request.state, "identity_claims", None)
    if claims is not None:
        return claims
    raw = request.headers.get(get_settings().claims_header)
    return parse_claims_header(raw) if raw else None


async def get_auth_context(request: Request) -> AuthContext:
    """Build the caller's AuthContext from this request alone.

    Nothing is cached between requests: impersonation is a per-request header and
    must never bleed into another caller's evaluation.
    """
    settings = get_settings()
    ctx = build_auth_context(
        _request_claims(request),
        request.headers.get(settings.impersonation_header),
        client_id=settings.claims_client_id,
        impersonation_enabled=settings.impersonation_enabled,
    )
    if ctx.impersonating:
        logger.info(
            "impersonation_active subject_id=%s effective_roles=%s path=%s",
            ctx.subject_id,
            ",".join(ctx.effective_roles),
            request.url.path,
        )
    return ctx


async def get_grant_store(db: AsyncSession = Depends(get_db)) -> SqlGrantStore:
    return SqlGrantStore(db)
