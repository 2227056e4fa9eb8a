"""
db/session.py
-------------
Per-request tenant resolution and session dependencies.

The school is taken from the ?school= query parameter, or the X-School
header when the parameter is absent. Every request then gets its own
session on that school's store; it is closed when the request finishes and
rolled back if the handler raised.

Usage:
    @router.get("/example")
    async def handler(db: AsyncSession = Depends(get_db)):
        ...
"""

from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.logging import bind_school
from phrofs.db.registry import TenantResolution, TenantStoreRegistry, get_registry


async def get_tenant(
    request: Request,
    registry: Annotated[TenantStoreRegistry, Depends(get_registry)],
    school: Annotated[Optional[str], Query(description="School key, e.g. dlsu")] = None,
    x_school: Annotated[Optional[str], Header()] = None,
) -> TenantResolution:
    resolution = registry.resolve(school if school is not None else x_school)
    request.state.school = resolution.tenant
    bind_school(resolution.tenant, resolution.used_fallback)
    return resolution


async def get_db(
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    registry: Annotated[TenantStoreRegistry, Depends(get_registry)],
) -> AsyncIterator[AsyncSession]:
    async with registry.session(tenant.tenant) as session:
        yield session
