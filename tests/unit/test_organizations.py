"""Tests for organization records and slug derivation."""

from __future__ import annotations

import pytest

from repairdesk.models import OrganizationCreate
from repairdesk.storage.organizations import (
    create_organization,
    get_organization,
    get_organization_by_slug,
    list_organizations,
    slugify,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Acme Repairs", "acme-repairs"),
        ("  Café Électronique!  ", "cafe-electronique"),
        ("Fix & Go #2", "fix-go-2"),
        ("!!!", "shop"),
    ],
)
def test_slugify(name, expected):
    assert slugify(name) == expected


@pytest.mark.asyncio
async def test_slug_collisions_get_suffix(db_session):
    first = await create_organization(db_session, OrganizationCreate(name="Acme Repairs"))
    second = await create_organization(db_session, OrganizationCreate(name="Acme Repairs"))
    third = await create_organization(db_session, OrganizationCreate(name="acme repairs"))

    assert [first.slug, second.slug, third.slug] == [
        "acme-repairs",
        "acme-repairs-2",
        "acme-repairs-3",
    ]


@pytest.mark.asyncio
async def test_lookup_by_id_and_slug(db_session):
    org = await create_organization(
        db_session, OrganizationCreate(name="Beta Fix", slug="beta", settings={"currency": "EUR"})
    )

    assert (await get_organization(db_session, org.id)).slug == "beta"
    assert (await get_organization_by_slug(db_session, "beta")).id == org.id
    assert await get_organization(db_session, org.id + 100) is None
    assert org.settings == {"currency": "EUR"}


@pytest.mark.asyncio
async def test_list_organizations_ordered_by_id(db_session, org_a, org_b):
    orgs = await list_organizations(db_session)

    assert [o.id for o in orgs] == sorted([org_a.id, org_b.id])
