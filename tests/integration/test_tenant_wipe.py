"""Integration tests for the bulk tenant wipe.

Uses a file-backed SQLite database because the wipe opens its own session
and must see data committed by the seeding session.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import event, func, select

from repairdesk.db.connection import build_engine, build_session_factory
from repairdesk.db.models import Base, DocumentSequenceModel, OrganizationModel, TENANT_MODELS
from repairdesk.exceptions import TenantWipeError
from repairdesk.models import OrganizationCreate
from repairdesk.storage.organizations import create_organization
from repairdesk.storage.tenant import TenantStorage
from repairdesk.storage.wipe import WIPE_ORDER, delete_all_data_for_tenant


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'wipe.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture()
async def two_shops(session_factory, seed_shop, numbering):
    async with session_factory() as session:
        async with session.begin():
            acme = await create_organization(session, OrganizationCreate(name="Acme Repairs"))
            beta = await create_organization(session, OrganizationCreate(name="Beta Fix"))
            await seed_shop(TenantStorage(session, acme.id, numbering=numbering))
            await seed_shop(TenantStorage(session, acme.id, numbering=numbering))
            await seed_shop(TenantStorage(session, beta.id, numbering=numbering))
    return acme.id, beta.id


async def _row_counts(session_factory, org_id) -> dict[str, int]:
    counts = {}
    async with session_factory() as session:
        for model in TENANT_MODELS + (DocumentSequenceModel,):
            result = await session.execute(
                select(func.count()).select_from(model).where(model.org_id == org_id)
            )
            counts[model.__tablename__] = result.scalar_one()
    return counts


@pytest.mark.asyncio
async def test_wipe_removes_only_target_tenant(session_factory, two_shops):
    acme_id, beta_id = two_shops
    before_beta = await _row_counts(session_factory, beta_id)

    summary = await delete_all_data_for_tenant(acme_id, session_factory=session_factory)

    assert set((await _row_counts(session_factory, acme_id)).values()) == {0}
    assert await _row_counts(session_factory, beta_id) == before_beta
    assert summary.deleted["customers"] == 2
    assert summary.deleted["repair_items"] == 4
    assert summary.deleted["document_sequences"] == 3
    assert list(summary.deleted) == [model.__tablename__ for model in WIPE_ORDER]


@pytest.mark.asyncio
async def test_wipe_includes_trashed_rows_and_keeps_organization(session_factory, two_shops):
    acme_id, _ = two_shops
    async with session_factory() as session:
        async with session.begin():
            storage = TenantStorage(session, acme_id)
            customers = await storage.get_customers()
            await storage.delete_customer(customers[0].id)

    await delete_all_data_for_tenant(acme_id, session_factory=session_factory)

    assert set((await _row_counts(session_factory, acme_id)).values()) == {0}
    async with session_factory() as session:
        assert await session.get(OrganizationModel, acme_id) is not None


@pytest.mark.asyncio
async def test_failure_on_third_delete_rolls_back(engine, session_factory, two_shops):
    acme_id, _ = two_shops
    before = await _row_counts(session_factory, acme_id)
    deletes = {"count": 0}

    def fail_third_delete(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("DELETE"):
            deletes["count"] += 1
            if deletes["count"] == 3:
                raise RuntimeError("disk full")

    event.listen(engine.sync_engine, "before_cursor_execute", fail_third_delete)
    try:
        with pytest.raises(TenantWipeError) as exc_info:
            await delete_all_data_for_tenant(acme_id, session_factory=session_factory)
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", fail_third_delete)

    assert exc_info.value.org_id == acme_id
    assert exc_info.value.table == "invoices"
    assert "No rows were removed" in str(exc_info.value)
    assert await _row_counts(session_factory, acme_id) == before


@pytest.mark.asyncio
async def test_wipe_of_empty_tenant(session_factory):
    async with session_factory() as session:
        async with session.begin():
            org = await create_organization(session, OrganizationCreate(name="Empty"))

    summary = await delete_all_data_for_tenant(org.id, session_factory=session_factory)

    assert summary.total == 0
