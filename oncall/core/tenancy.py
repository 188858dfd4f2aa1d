"""Tenant resolution for API requests.

Stands in for the platform's tenant routing middleware: the tenant slug
arrives in a header, is looked up in the global registry, and requests get a
session routed to that tenant's schema.
"""

from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oncall.config import settings
from oncall.database import get_db, tenant_session
from oncall.logging_config import tenant_ctx
from oncall.models.tenant import Tenant


async def get_tenant(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Tenant:
    """Resolve the tenant named by the tenant header.

    Raises:
        HTTPException: 400 if the header is missing, 404 if the tenant is unknown.
    """
    slug = request.headers.get(settings.tenant_header, "").strip()
    if not slug:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {settings.tenant_header} header",
        )

    result = await db.execute(select(Tenant).where(Tenant.slug == slug))
    tenant = result.scalar_one_or_none()
    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found",
        )

    tenant_ctx.set(tenant.slug)
    return tenant


async def get_tenant_db(
    tenant: Tenant = Depends(get_tenant),
) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session scoped to the request's tenant."""
    async with tenant_session(tenant.slug) as session:
        yield session


def get_redis_client(request: Request) -> aioredis.Redis | None:
    """Redis client created at startup, or None when unavailable."""
    return getattr(request.app.state, "redis", None)
