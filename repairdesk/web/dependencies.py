"""Shared dependencies for RepairDesk web routes.

The tenant is resolved for every request from the configured header and is
never cached between requests.

Usage:
    from fastapi import Depends
    from repairdesk.web.dependencies import get_storage

    @router.get("/api/customers/{customer_id}")
    async def customer(customer_id: int, storage=Depends(get_storage)):
        return await storage.get_customer(customer_id)
"""

from __future__ import annotations

import structlog
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.config import get_config
from repairdesk.db.connection import get_db
from repairdesk.db.models import OrganizationModel
from repairdesk.exceptions import TenantNotFoundError
from repairdesk.storage.organizations import get_organization
from repairdesk.storage.tenant import TenantStorage


def _requested_org_id(request: Request) -> int:
    config = get_config()
    raw = request.headers.get(config.tenant_header)

    if raw is None:
        # Development convenience only; production config never sets a default
        if config.default_org_id is None:
            raise HTTPException(
                status_code=400,
                detail=f"Missing {config.tenant_header} header",
            )
        return config.default_org_id

    try:
        return int(raw)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {config.tenant_header} header: {raw!r}",
        ) from None


async def get_tenant(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> OrganizationModel:
    """Resolve the acting organization.

    Raises:
        HTTPException: 400 if the header is missing or malformed
        TenantNotFoundError: The organization does not exist (mapped to 404)
    """
    org_id = _requested_org_id(request)
    org = await get_organization(db, org_id)
    if org is None:
        raise TenantNotFoundError(org_id)

    structlog.contextvars.bind_contextvars(org_id=org.id)
    return org


async def get_tenant_id(org: OrganizationModel = Depends(get_tenant)) -> int:
    return org.id


async def get_storage(
    org: OrganizationModel = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
) -> TenantStorage:
    """Tenant-scoped storage bound to the request's session."""
    return TenantStorage(db, org.id, numbering=get_config().numbering)
