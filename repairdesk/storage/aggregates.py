"""Read-side aggregates assembled in application code."""

from __future__ import annotations

from dataclasses import dataclass, field

from repairdesk.db.models import (
    CustomerModel,
    DeviceModel,
    InventoryItemModel,
    InvoiceModel,
    QuoteModel,
    RepairItemModel,
    RepairModel,
    TechnicianModel,
)


@dataclass(slots=True)
class RepairLine:
    item: RepairItemModel
    inventory_item: InventoryItemModel | None = None


@dataclass(slots=True)
class RepairWithRelations:
    """A repair with everything the detail view needs.

    Built from independent reads, so a constituent can be slightly stale
    relative to the others under concurrent writes.
    """

    repair: RepairModel
    customer: CustomerModel | None = None
    device: DeviceModel | None = None
    technician: TechnicianModel | None = None
    items: list[RepairLine] = field(default_factory=list)
    quotes: list[QuoteModel] = field(default_factory=list)
    invoices: list[InvoiceModel] = field(default_factory=list)

    @property
    def quote(self) -> QuoteModel | None:
        return self.quotes[0] if self.quotes else None

    @property
    def invoice(self) -> InvoiceModel | None:
        return self.invoices[0] if self.invoices else None
