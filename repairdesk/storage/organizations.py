"""Organization (tenant) records."""

from __future__ import annotations

import re
import unicodedata

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.db.models import OrganizationModel
from repairdesk.models import OrganizationCreate

logger = structlog.get_logger(__name__)

_slug_re = re.compile(r"[^a-z0-9]+")


def slugify(s: str) -> str:
    s = unicodedata.normalize("NFKD", s).encode("ascii", "ignore").decode("ascii")
    s = s.lower().strip()
    s = _slug_re.sub("-", s).strip("-")
    return s or "shop"


async def _slug_taken(session: AsyncSession, slug: str) -> bool:
    result = await session.execute(
        select(OrganizationModel.id).where(OrganizationModel.slug == slug)
    )
    return result.scalar_one_or_none() is not None


async def create_organization(
    session: AsyncSession, payload: OrganizationCreate
) -> OrganizationModel:
    """Create a tenant with a unique slug (``acme``, ``acme-2``, ...)."""
    base = slugify(payload.slug or payload.name)
    slug = base
    suffix = 2
    while await _slug_taken(session, slug):
        slug = f"{base}-{suffix}"
        suffix += 1

    org = OrganizationModel(name=payload.name, slug=slug, settings=dict(payload.settings))
    session.add(org)
    await session.flush()
    await session.refresh(org)

    logger.info("organization_created", org_id=org.id, slug=org.slug)
    return org


async def get_organization(session: AsyncSession, org_id: int) -> OrganizationModel | None:
    result = await session.execute(
        select(OrganizationModel).where(
            OrganizationModel.id == org_id,
            OrganizationModel.deleted.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def get_organization_by_slug(
    session: AsyncSession, slug: str
) -> OrganizationModel | None:
    result = await session.execute(
        select(OrganizationModel).where(
            OrganizationModel.slug == slug,
            OrganizationModel.deleted.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def list_organizations(session: AsyncSession) -> list[OrganizationModel]:
    result = await session.execute(
        select(OrganizationModel)
        .where(OrganizationModel.deleted.is_(False))
        .order_by(OrganizationModel.id)
    )
    return list(result.scalars().all())
