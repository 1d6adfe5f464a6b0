"""Pytest configuration and fixtures for RepairDesk tests.

Provides an in-memory database, two tenants and a seeded repair shop.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.config import NumberingConfig, reset_config
from repairdesk.db.connection import build_engine, build_session_factory
from repairdesk.db.models import Base
from repairdesk.models import (
    CustomerCreate,
    DeviceCreate,
    InventoryItemCreate,
    InvoiceCreate,
    ItemType,
    OrganizationCreate,
    QuoteCreate,
    RepairCreate,
    RepairItemCreate,
    TechnicianCreate,
)
from repairdesk.storage.organizations import create_organization
from repairdesk.storage.tenant import TenantStorage


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("DEFAULT_ORG_ID", "1")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    """Create in-memory database for testing."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = build_session_factory(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def org_a(db_session: AsyncSession):
    return await create_organization(db_session, OrganizationCreate(name="Acme Repairs"))


@pytest_asyncio.fixture()
async def org_b(db_session: AsyncSession):
    return await create_organization(db_session, OrganizationCreate(name="Beta Fix"))


@pytest.fixture
def numbering() -> NumberingConfig:
    return NumberingConfig()


@pytest.fixture
def storage_a(db_session, org_a, numbering) -> TenantStorage:
    return TenantStorage(db_session, org_a.id, numbering=numbering)


@pytest.fixture
def storage_b(db_session, org_b, numbering) -> TenantStorage:
    return TenantStorage(db_session, org_b.id, numbering=numbering)


async def _seed_shop(storage: TenantStorage) -> SimpleNamespace:
    customer = await storage.create_customer(
        CustomerCreate(
            first_name="Jane",
            last_name="Doe",
            email="jane@example.com",
            phone="555-0100",
        )
    )
    device = await storage.create_device(
        DeviceCreate(customer_id=customer.id, type="laptop", brand="Lenovo", model="ThinkPad X1")
    )
    technician = await storage.create_technician(
        TechnicianCreate(
            first_name="Sam",
            last_name="Lee",
            email="sam@example.com",
            role="senior technician",
        )
    )
    part = await storage.create_inventory_item(
        InventoryItemCreate(
            name="14in screen",
            category="displays",
            sku="SCR-14",
            price=Decimal("120.00"),
            cost=Decimal("80.00"),
            quantity=5,
        )
    )
    repair = await storage.create_repair(
        RepairCreate(
            customer_id=customer.id,
            device_id=device.id,
            technician_id=technician.id,
            issue="Cracked screen",
            priority_level=2,
        )
    )
    part_line = await storage.create_repair_item(
        RepairItemCreate(
            repair_id=repair.id,
            inventory_item_id=part.id,
            description="Replacement screen",
            unit_price=Decimal("120.00"),
            item_type=ItemType.PART,
        )
    )
    labor_line = await storage.create_repair_item(
        RepairItemCreate(
            repair_id=repair.id,
            description="Screen replacement labor",
            unit_price=Decimal("60.00"),
            item_type=ItemType.SERVICE,
        )
    )
    quote = await storage.create_quote(
        QuoteCreate(
            repair_id=repair.id,
            subtotal=Decimal("180.00"),
            tax=Decimal("18.00"),
            total=Decimal("198.00"),
        )
    )
    invoice = await storage.create_invoice(
        InvoiceCreate(
            repair_id=repair.id,
            subtotal=Decimal("180.00"),
            tax=Decimal("18.00"),
            total=Decimal("198.00"),
        )
    )
    return SimpleNamespace(
        customer=customer,
        device=device,
        technician=technician,
        part=part,
        repair=repair,
        part_line=part_line,
        labor_line=labor_line,
        quote=quote,
        invoice=invoice,
    )


@pytest.fixture
def seed_shop():
    """Async helper that creates a customer with a full repair subtree."""
    return _seed_shop


@pytest_asyncio.fixture()
async def shop_a(storage_a):
    return await _seed_shop(storage_a)
