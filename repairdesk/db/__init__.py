"""Database layer for RepairDesk with async SQLAlchemy."""

from repairdesk.db.connection import get_db, get_session, init_db
from repairdesk.db.models import (
    TENANT_MODELS,
    Base,
    CustomerModel,
    DeviceModel,
    DocumentSequenceModel,
    InventoryItemModel,
    InvoiceModel,
    OrganizationModel,
    QuoteModel,
    RepairItemModel,
    RepairModel,
    TechnicianModel,
)

__all__ = [
    "Base",
    "TENANT_MODELS",
    "OrganizationModel",
    "CustomerModel",
    "DeviceModel",
    "TechnicianModel",
    "InventoryItemModel",
    "RepairModel",
    "RepairItemModel",
    "QuoteModel",
    "InvoiceModel",
    "DocumentSequenceModel",
    "get_db",
    "get_session",
    "init_db",
]
