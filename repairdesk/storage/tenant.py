"""Tenant-scoped lifecycle manager.

``TenantStorage`` is built per request with the acting organization id and
every query it issues carries ``org_id = <tenant>``. Rows outside the tenant
are indistinguishable from rows that do not exist.

Lifecycle rules:
- Reads only see live rows (``deleted = false``).
- Deleting a customer, device or repair soft-deletes its live dependents
  depth-first (repair items, quotes, invoices, repair, device, customer), so
  a child is always trashed before its parent.
- Deleting a technician or inventory item unlinks the rows pointing at it
  instead of deleting them.
- Restoring flips exactly one row back to live. Dependents stay trashed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.config import NumberingConfig, get_config
from repairdesk.db.models import (
    Base,
    CustomerModel,
    DeviceModel,
    InventoryItemModel,
    InvoiceModel,
    QuoteModel,
    RepairItemModel,
    RepairModel,
    TechnicianModel,
)
from repairdesk.exceptions import DuplicateNumberError, InvalidReferenceError
from repairdesk.models import (
    CustomerCreate,
    CustomerUpdate,
    DeviceCreate,
    DeviceUpdate,
    InventoryItemCreate,
    InventoryItemUpdate,
    InvoiceCreate,
    InvoiceUpdate,
    QuoteCreate,
    QuoteUpdate,
    RepairCreate,
    RepairItemCreate,
    RepairItemUpdate,
    RepairStatus,
    RepairUpdate,
    TechnicianCreate,
    TechnicianUpdate,
)
from repairdesk.storage.aggregates import RepairLine, RepairWithRelations
from repairdesk.storage.numbering import (
    NUMBER_COLUMNS,
    ensure_number_available,
    is_number_conflict,
    next_number,
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

# Public entity name (URL segment, CLI argument) -> TenantStorage method suffix
ENTITIES = {
    "customers": "customer",
    "devices": "device",
    "technicians": "technician",
    "inventory": "inventory_item",
    "repairs": "repair",
    "repair-items": "repair_item",
    "quotes": "quote",
    "invoices": "invoice",
}

# Never taken from a payload
_PROTECTED_FIELDS = frozenset({"id", "org_id", "deleted", "deleted_at", "created_at"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


def _create_values(payload: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(payload, BaseModel):
        data = payload.model_dump(exclude_none=True)
    else:
        data = {k: v for k, v in payload.items() if v is not None}
    return {k: _enum_value(v) for k, v in data.items() if k not in _PROTECTED_FIELDS}


def _update_values(payload: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(payload, BaseModel):
        data = payload.model_dump(exclude_unset=True)
    else:
        data = dict(payload)
    return {k: _enum_value(v) for k, v in data.items() if k not in _PROTECTED_FIELDS}


class TenantStorage:
    """Tenant-scoped reads, writes, soft deletes and restores.

    The session is the caller's unit of work: methods flush so generated ids
    and numbers are visible, and the caller commits (``get_session()`` or the
    request dependency does this). A cascade therefore lands in one
    transaction with the rest of the request.
    """

    def __init__(
        self,
        session: AsyncSession,
        org_id: int,
        numbering: NumberingConfig | None = None,
    ):
        """Bind storage to one tenant.

        Args:
            session: SQLAlchemy async session
            org_id: Acting organization, resolved fresh for each request
            numbering: Document number settings (defaults to app config)
        """
        self.session = session
        self.org_id = org_id
        self.numbering = numbering or get_config().numbering
        self.log = logger.bind(org_id=org_id)

    # ------------------------------------------------------------------
    # Generic tenant-scoped helpers
    # ------------------------------------------------------------------

    def _live(self, model: type[ModelT]) -> Select:
        return select(model).where(model.org_id == self.org_id, model.deleted.is_(False))

    def _trashed(self, model: type[ModelT]) -> Select:
        return select(model).where(model.org_id == self.org_id, model.deleted.is_(True))

    async def _first(self, stmt: Select):
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def _all(self, stmt: Select) -> list:
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _get_live(self, model: type[ModelT], row_id: int) -> ModelT | None:
        return await self._first(self._live(model).where(model.id == row_id))

    async def _list_live(self, model: type[ModelT], *criteria) -> list[ModelT]:
        return await self._all(self._live(model).where(*criteria).order_by(model.id))

    async def _list_deleted(self, model: type[ModelT]) -> list[ModelT]:
        return await self._all(
            self._trashed(model).order_by(model.deleted_at.desc(), model.id)
        )

    async def _require_live(self, model: type[ModelT], row_id: int, entity: str) -> ModelT:
        row = await self._get_live(model, row_id)
        if row is None:
            raise InvalidReferenceError(entity, row_id)
        return row

    async def _insert(self, model: type[ModelT], values: dict[str, Any]) -> ModelT:
        row = model(**values, org_id=self.org_id)
        self.session.add(row)
        await self.session.flush()
        # Load server defaults (created_at, intake_date...) without lazy IO later
        await self.session.refresh(row)
        return row

    async def _insert_numbered(
        self, model: type[ModelT], values: dict[str, Any], kind: str
    ) -> ModelT:
        """Insert a ticket, quote or invoice inside a savepoint.

        A concurrent writer can take the same number between the availability
        check and the flush; the unique constraint then surfaces as
        DuplicateNumberError and the session stays usable.
        """
        number = values[NUMBER_COLUMNS[kind].key]
        try:
            async with self.session.begin_nested():
                return await self._insert(model, values)
        except IntegrityError as e:
            if not is_number_conflict(e, kind):
                raise
            self.log.warning("document_number_conflict", kind=kind, number=number)
            raise DuplicateNumberError(kind, number) from e

    async def _apply_update(self, row: ModelT, values: dict[str, Any]) -> ModelT:
        columns = row.__table__.columns
        for key, value in values.items():
            if key not in columns:
                raise ValueError(f"Unknown field for {row.__tablename__}: {key}")
            if value is None and not columns[key].nullable:
                continue
            setattr(row, key, value)
        await self.session.flush()
        return row

    @staticmethod
    def _mark_deleted(rows: Iterable[Base], now: datetime) -> int:
        count = 0
        for row in rows:
            row.deleted = True
            row.deleted_at = now
            count += 1
        return count

    async def _restore(self, model: type[ModelT], row_id: int, entity: str) -> ModelT | None:
        row = await self._first(self._trashed(model).where(model.id == row_id))
        if row is None:
            return None

        row.deleted = False
        row.deleted_at = None
        await self.session.flush()

        self.log.info(f"{entity}_restored", id=row_id)
        return row

    async def _soft_delete_leaf(self, model: type[ModelT], row_id: int, entity: str) -> bool:
        row = await self._get_live(model, row_id)
        if row is None:
            return False

        self._mark_deleted([row], _utcnow())
        await self.session.flush()

        self.log.info(f"{entity}_deleted", id=row_id)
        return True

    # ------------------------------------------------------------------
    # Cascades (children first, then the parent)
    # ------------------------------------------------------------------

    async def _cascade_repair(self, repair: RepairModel, now: datetime) -> int:
        trashed = 0
        for model in (RepairItemModel, QuoteModel, InvoiceModel):
            children = await self._list_live(model, model.repair_id == repair.id)
            trashed += self._mark_deleted(children, now)
            await self.session.flush()

        trashed += self._mark_deleted([repair], now)
        await self.session.flush()
        return trashed

    async def _cascade_device(self, device: DeviceModel, now: datetime) -> int:
        trashed = 0
        for repair in await self._list_live(RepairModel, RepairModel.device_id == device.id):
            trashed += await self._cascade_repair(repair, now)

        trashed += self._mark_deleted([device], now)
        await self.session.flush()
        return trashed

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def get_customers(self) -> list[CustomerModel]:
        return await self._list_live(CustomerModel)

    async def get_customer(self, customer_id: int) -> CustomerModel | None:
        return await self._get_live(CustomerModel, customer_id)

    async def get_customer_by_email(self, email: str) -> CustomerModel | None:
        return await self._first(
            self._live(CustomerModel)
            .where(CustomerModel.email == email)
            .order_by(CustomerModel.id)
        )

    async def create_customer(self, payload: CustomerCreate | Mapping[str, Any]) -> CustomerModel:
        customer = await self._insert(CustomerModel, _create_values(payload))
        self.log.info("customer_created", id=customer.id)
        return customer

    async def update_customer(
        self, customer_id: int, payload: CustomerUpdate | Mapping[str, Any]
    ) -> CustomerModel | None:
        customer = await self.get_customer(customer_id)
        if customer is None:
            return None
        return await self._apply_update(customer, _update_values(payload))

    async def delete_customer(self, customer_id: int) -> bool:
        """Soft-delete a customer, its devices and every repair subtree under it.

        Repairs reached through a device are trashed with that device; repairs
        attached straight to the customer are trashed afterwards. The customer
        row is flagged last.
        """
        customer = await self.get_customer(customer_id)
        if customer is None:
            return False

        now = _utcnow()
        trashed = 0
        for device in await self.get_devices_by_customer(customer_id):
            trashed += await self._cascade_device(device, now)

        for repair in await self.get_repairs_by_customer(customer_id):
            trashed += await self._cascade_repair(repair, now)

        trashed += self._mark_deleted([customer], now)
        await self.session.flush()

        self.log.info("customer_deleted", id=customer_id, rows_trashed=trashed)
        return True

    async def restore_customer(self, customer_id: int) -> CustomerModel | None:
        return await self._restore(CustomerModel, customer_id, "customer")

    async def get_deleted_customers(self) -> list[CustomerModel]:
        return await self._list_deleted(CustomerModel)

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def get_devices(self) -> list[DeviceModel]:
        return await self._list_live(DeviceModel)

    async def get_devices_by_customer(self, customer_id: int) -> list[DeviceModel]:
        return await self._list_live(DeviceModel, DeviceModel.customer_id == customer_id)

    async def get_device(self, device_id: int) -> DeviceModel | None:
        return await self._get_live(DeviceModel, device_id)

    async def create_device(self, payload: DeviceCreate | Mapping[str, Any]) -> DeviceModel:
        values = _create_values(payload)
        await self._require_live(CustomerModel, values.get("customer_id"), "customer")

        device = await self._insert(DeviceModel, values)
        self.log.info("device_created", id=device.id, customer_id=device.customer_id)
        return device

    async def update_device(
        self, device_id: int, payload: DeviceUpdate | Mapping[str, Any]
    ) -> DeviceModel | None:
        """Update a device.

        Moving the device to another customer is refused while live repairs
        on it belong to a different customer, since a repair's customer and
        its device's owner must agree.

        Raises:
            InvalidReferenceError: new customer is not live in this tenant,
                or live repairs on the device name another customer
        """
        device = await self.get_device(device_id)
        if device is None:
            return None

        values = _update_values(payload)
        new_customer_id = values.get("customer_id")
        if new_customer_id is not None and new_customer_id != device.customer_id:
            await self._require_live(CustomerModel, new_customer_id, "customer")
            blocking = await self._list_live(
                RepairModel,
                RepairModel.device_id == device_id,
                RepairModel.customer_id != new_customer_id,
            )
            if blocking:
                raise InvalidReferenceError(
                    "customer",
                    new_customer_id,
                    f"Device {device_id} has live repairs for customer "
                    f"{blocking[0].customer_id} ({len(blocking)} total)",
                )
        return await self._apply_update(device, values)

    async def delete_device(self, device_id: int) -> bool:
        device = await self.get_device(device_id)
        if device is None:
            return False

        trashed = await self._cascade_device(device, _utcnow())
        self.log.info("device_deleted", id=device_id, rows_trashed=trashed)
        return True

    async def restore_device(self, device_id: int) -> DeviceModel | None:
        return await self._restore(DeviceModel, device_id, "device")

    async def get_deleted_devices(self) -> list[DeviceModel]:
        return await self._list_deleted(DeviceModel)

    # ------------------------------------------------------------------
    # Technicians
    # ------------------------------------------------------------------

    async def get_technicians(self) -> list[TechnicianModel]:
        return await self._list_live(TechnicianModel)

    async def get_technician(self, technician_id: int) -> TechnicianModel | None:
        return await self._get_live(TechnicianModel, technician_id)

    async def create_technician(
        self, payload: TechnicianCreate | Mapping[str, Any]
    ) -> TechnicianModel:
        technician = await self._insert(TechnicianModel, _create_values(payload))
        self.log.info("technician_created", id=technician.id)
        return technician

    async def update_technician(
        self, technician_id: int, payload: TechnicianUpdate | Mapping[str, Any]
    ) -> TechnicianModel | None:
        technician = await self.get_technician(technician_id)
        if technician is None:
            return None
        return await self._apply_update(technician, _update_values(payload))

    async def delete_technician(self, technician_id: int) -> bool:
        """Unassign the technician from every repair, then soft-delete them."""
        technician = await self.get_technician(technician_id)
        if technician is None:
            return False

        assigned = await self._all(
            select(RepairModel).where(
                RepairModel.org_id == self.org_id,
                RepairModel.technician_id == technician_id,
            )
        )
        for repair in assigned:
            repair.technician_id = None
        await self.session.flush()

        self._mark_deleted([technician], _utcnow())
        await self.session.flush()

        self.log.info("technician_deleted", id=technician_id, repairs_unassigned=len(assigned))
        return True

    async def restore_technician(self, technician_id: int) -> TechnicianModel | None:
        return await self._restore(TechnicianModel, technician_id, "technician")

    async def get_deleted_technicians(self) -> list[TechnicianModel]:
        return await self._list_deleted(TechnicianModel)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def get_inventory_items(self) -> list[InventoryItemModel]:
        return await self._list_live(InventoryItemModel)

    async def get_inventory_item(self, item_id: int) -> InventoryItemModel | None:
        return await self._get_live(InventoryItemModel, item_id)

    async def get_inventory_item_by_sku(self, sku: str) -> InventoryItemModel | None:
        return await self._first(
            self._live(InventoryItemModel)
            .where(InventoryItemModel.sku == sku)
            .order_by(InventoryItemModel.id)
        )

    async def create_inventory_item(
        self, payload: InventoryItemCreate | Mapping[str, Any]
    ) -> InventoryItemModel:
        item = await self._insert(InventoryItemModel, _create_values(payload))
        self.log.info("inventory_item_created", id=item.id, sku=item.sku)
        return item

    async def update_inventory_item(
        self, item_id: int, payload: InventoryItemUpdate | Mapping[str, Any]
    ) -> InventoryItemModel | None:
        item = await self.get_inventory_item(item_id)
        if item is None:
            return None
        return await self._apply_update(item, _update_values(payload))

    async def adjust_inventory_quantity(self, item_id: int, delta: int) -> InventoryItemModel | None:
        """Add ``delta`` (may be negative) to the stock level, floored at zero."""
        item = await self.get_inventory_item(item_id)
        if item is None:
            return None

        item.quantity = max(0, (item.quantity or 0) + delta)
        await self.session.flush()

        self.log.info("inventory_adjusted", id=item_id, delta=delta, quantity=item.quantity)
        return item

    async def delete_inventory_item(self, item_id: int) -> bool:
        """Unlink the item from every repair line, then soft-delete it."""
        item = await self.get_inventory_item(item_id)
        if item is None:
            return False

        lines = await self._all(
            select(RepairItemModel).where(
                RepairItemModel.org_id == self.org_id,
                RepairItemModel.inventory_item_id == item_id,
            )
        )
        for line in lines:
            line.inventory_item_id = None
        await self.session.flush()

        self._mark_deleted([item], _utcnow())
        await self.session.flush()

        self.log.info("inventory_item_deleted", id=item_id, lines_unlinked=len(lines))
        return True

    async def restore_inventory_item(self, item_id: int) -> InventoryItemModel | None:
        return await self._restore(InventoryItemModel, item_id, "inventory_item")

    async def get_deleted_inventory_items(self) -> list[InventoryItemModel]:
        return await self._list_deleted(InventoryItemModel)

    # ------------------------------------------------------------------
    # Repairs
    # ------------------------------------------------------------------

    async def get_repairs(self) -> list[RepairModel]:
        return await self._list_live(RepairModel)

    async def get_repair(self, repair_id: int) -> RepairModel | None:
        return await self._get_live(RepairModel, repair_id)

    async def get_repair_by_ticket_number(self, ticket_number: str) -> RepairModel | None:
        return await self._first(
            self._live(RepairModel).where(RepairModel.ticket_number == ticket_number)
        )

    async def get_repairs_by_customer(self, customer_id: int) -> list[RepairModel]:
        return await self._list_live(RepairModel, RepairModel.customer_id == customer_id)

    async def get_repairs_by_device(self, device_id: int) -> list[RepairModel]:
        return await self._list_live(RepairModel, RepairModel.device_id == device_id)

    async def get_repairs_by_technician(self, technician_id: int) -> list[RepairModel]:
        return await self._list_live(RepairModel, RepairModel.technician_id == technician_id)

    async def get_repairs_by_status(self, status: RepairStatus | str) -> list[RepairModel]:
        status = RepairStatus(status)
        return await self._list_live(RepairModel, RepairModel.status == status.value)

    async def get_repairs_by_priority(self, priority: int | list[int]) -> list[RepairModel]:
        if isinstance(priority, (list, tuple, set)):
            levels = [int(p) for p in priority]
            return await self._list_live(RepairModel, RepairModel.priority_level.in_(levels))
        return await self._list_live(RepairModel, RepairModel.priority_level == int(priority))

    async def _require_device_for_customer(self, device_id: int, customer_id: int) -> DeviceModel:
        device = await self._require_live(DeviceModel, device_id, "device")
        if device.customer_id != customer_id:
            raise InvalidReferenceError(
                "device",
                device_id,
                f"Device {device_id} does not belong to customer {customer_id}",
            )
        return device

    async def create_repair(self, payload: RepairCreate | Mapping[str, Any]) -> RepairModel:
        """Open a repair ticket.

        Raises:
            InvalidReferenceError: customer, device or technician is not live
                in this tenant, or the device belongs to another customer
            DuplicateNumberError: a supplied ticket number is already used
        """
        values = _create_values(payload)
        customer_id = values.get("customer_id")
        await self._require_live(CustomerModel, customer_id, "customer")

        if values.get("device_id") is not None:
            await self._require_device_for_customer(values["device_id"], customer_id)
        if values.get("technician_id") is not None:
            await self._require_live(TechnicianModel, values["technician_id"], "technician")

        if values.get("ticket_number"):
            await ensure_number_available(
                self.session, self.org_id, "ticket", values["ticket_number"]
            )
        else:
            values["ticket_number"] = await next_number(
                self.session, self.org_id, "ticket", self.numbering
            )

        repair = await self._insert_numbered(RepairModel, values, "ticket")
        self.log.info("repair_created", id=repair.id, ticket_number=repair.ticket_number)
        return repair

    async def update_repair(
        self, repair_id: int, payload: RepairUpdate | Mapping[str, Any]
    ) -> RepairModel | None:
        repair = await self.get_repair(repair_id)
        if repair is None:
            return None

        values = _update_values(payload)
        if values.get("customer_id") is not None:
            await self._require_live(CustomerModel, values["customer_id"], "customer")

        customer_id = values.get("customer_id") or repair.customer_id
        device_id = values["device_id"] if "device_id" in values else repair.device_id
        if device_id is not None and ("device_id" in values or "customer_id" in values):
            await self._require_device_for_customer(device_id, customer_id)

        if values.get("technician_id") is not None:
            await self._require_live(TechnicianModel, values["technician_id"], "technician")

        return await self._apply_update(repair, values)

    async def delete_repair(self, repair_id: int) -> bool:
        repair = await self.get_repair(repair_id)
        if repair is None:
            return False

        trashed = await self._cascade_repair(repair, _utcnow())
        self.log.info("repair_deleted", id=repair_id, rows_trashed=trashed)
        return True

    async def restore_repair(self, repair_id: int) -> RepairModel | None:
        return await self._restore(RepairModel, repair_id, "repair")

    async def get_deleted_repairs(self) -> list[RepairModel]:
        return await self._list_deleted(RepairModel)

    # ------------------------------------------------------------------
    # Repair items
    # ------------------------------------------------------------------

    async def get_repair_items(self, repair_id: int) -> list[RepairItemModel]:
        return await self._list_live(RepairItemModel, RepairItemModel.repair_id == repair_id)

    async def get_repair_item(self, item_id: int) -> RepairItemModel | None:
        return await self._get_live(RepairItemModel, item_id)

    async def create_repair_item(
        self, payload: RepairItemCreate | Mapping[str, Any]
    ) -> RepairItemModel:
        values = _create_values(payload)
        await self._require_live(RepairModel, values.get("repair_id"), "repair")
        if values.get("inventory_item_id") is not None:
            await self._require_live(
                InventoryItemModel, values["inventory_item_id"], "inventory_item"
            )

        item = await self._insert(RepairItemModel, values)
        self.log.info("repair_item_created", id=item.id, repair_id=item.repair_id)
        return item

    async def update_repair_item(
        self, item_id: int, payload: RepairItemUpdate | Mapping[str, Any]
    ) -> RepairItemModel | None:
        item = await self.get_repair_item(item_id)
        if item is None:
            return None

        values = _update_values(payload)
        values.pop("repair_id", None)  # lines never move between repairs
        if values.get("inventory_item_id") is not None:
            await self._require_live(
                InventoryItemModel, values["inventory_item_id"], "inventory_item"
            )
        return await self._apply_update(item, values)

    async def delete_repair_item(self, item_id: int) -> bool:
        return await self._soft_delete_leaf(RepairItemModel, item_id, "repair_item")

    async def restore_repair_item(self, item_id: int) -> RepairItemModel | None:
        return await self._restore(RepairItemModel, item_id, "repair_item")

    async def get_deleted_repair_items(self) -> list[RepairItemModel]:
        return await self._list_deleted(RepairItemModel)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def get_quotes(self) -> list[QuoteModel]:
        return await self._list_live(QuoteModel)

    async def get_quotes_by_repair(self, repair_id: int) -> list[QuoteModel]:
        return await self._list_live(QuoteModel, QuoteModel.repair_id == repair_id)

    async def get_quote(self, quote_id: int) -> QuoteModel | None:
        return await self._get_live(QuoteModel, quote_id)

    async def create_quote(self, payload: QuoteCreate | Mapping[str, Any]) -> QuoteModel:
        values = _create_values(payload)
        await self._require_live(RepairModel, values.get("repair_id"), "repair")

        if values.get("quote_number"):
            await ensure_number_available(
                self.session, self.org_id, "quote", values["quote_number"]
            )
        else:
            values["quote_number"] = await next_number(
                self.session, self.org_id, "quote", self.numbering
            )

        quote = await self._insert_numbered(QuoteModel, values, "quote")
        self.log.info("quote_created", id=quote.id, quote_number=quote.quote_number)
        return quote

    async def update_quote(
        self, quote_id: int, payload: QuoteUpdate | Mapping[str, Any]
    ) -> QuoteModel | None:
        quote = await self.get_quote(quote_id)
        if quote is None:
            return None

        values = _update_values(payload)
        values.pop("repair_id", None)
        values.pop("quote_number", None)
        return await self._apply_update(quote, values)

    async def delete_quote(self, quote_id: int) -> bool:
        return await self._soft_delete_leaf(QuoteModel, quote_id, "quote")

    async def restore_quote(self, quote_id: int) -> QuoteModel | None:
        return await self._restore(QuoteModel, quote_id, "quote")

    async def get_deleted_quotes(self) -> list[QuoteModel]:
        return await self._list_deleted(QuoteModel)

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    async def get_invoices(self) -> list[InvoiceModel]:
        return await self._list_live(InvoiceModel)

    async def get_invoices_by_repair(self, repair_id: int) -> list[InvoiceModel]:
        return await self._list_live(InvoiceModel, InvoiceModel.repair_id == repair_id)

    async def get_invoice(self, invoice_id: int) -> InvoiceModel | None:
        return await self._get_live(InvoiceModel, invoice_id)

    async def create_invoice(self, payload: InvoiceCreate | Mapping[str, Any]) -> InvoiceModel:
        values = _create_values(payload)
        await self._require_live(RepairModel, values.get("repair_id"), "repair")

        if values.get("invoice_number"):
            await ensure_number_available(
                self.session, self.org_id, "invoice", values["invoice_number"]
            )
        else:
            values["invoice_number"] = await next_number(
                self.session, self.org_id, "invoice", self.numbering
            )

        invoice = await self._insert_numbered(InvoiceModel, values, "invoice")
        self.log.info("invoice_created", id=invoice.id, invoice_number=invoice.invoice_number)
        return invoice

    async def update_invoice(
        self, invoice_id: int, payload: InvoiceUpdate | Mapping[str, Any]
    ) -> InvoiceModel | None:
        invoice = await self.get_invoice(invoice_id)
        if invoice is None:
            return None

        values = _update_values(payload)
        values.pop("repair_id", None)
        values.pop("invoice_number", None)
        return await self._apply_update(invoice, values)

    async def delete_invoice(self, invoice_id: int) -> bool:
        return await self._soft_delete_leaf(InvoiceModel, invoice_id, "invoice")

    async def restore_invoice(self, invoice_id: int) -> InvoiceModel | None:
        return await self._restore(InvoiceModel, invoice_id, "invoice")

    async def get_deleted_invoices(self) -> list[InvoiceModel]:
        return await self._list_deleted(InvoiceModel)

    # ------------------------------------------------------------------
    # Composite read
    # ------------------------------------------------------------------

    async def _best_effort(
        self,
        relation: str,
        repair_id: int,
        fetch: Callable[[], Awaitable],
        default=None,
    ):
        # One savepoint per lookup; a failed statement must not abort the
        # outer transaction the later lookups run in
        try:
            async with self.session.begin_nested():
                return await fetch()
        except Exception as exc:
            self.log.warning(
                "repair_relation_unavailable",
                repair_id=repair_id,
                relation=relation,
                error=str(exc),
            )
            return default

    async def get_repair_with_relations(self, repair_id: int) -> RepairWithRelations | None:
        """Assemble a repair with its customer, device, technician, lines,
        quotes and invoices.

        A failing secondary lookup leaves that field empty instead of failing
        the whole read.
        """
        repair = await self.get_repair(repair_id)
        if repair is None:
            return None

        details = RepairWithRelations(repair=repair)
        details.customer = await self._best_effort(
            "customer", repair_id, lambda: self.get_customer(repair.customer_id)
        )
        if repair.device_id is not None:
            details.device = await self._best_effort(
                "device", repair_id, lambda: self.get_device(repair.device_id)
            )
        if repair.technician_id is not None:
            details.technician = await self._best_effort(
                "technician", repair_id, lambda: self.get_technician(repair.technician_id)
            )

        items = await self._best_effort(
            "items", repair_id, lambda: self.get_repair_items(repair_id), default=[]
        )
        for item in items:
            line = RepairLine(item=item)
            if item.inventory_item_id is not None:
                line.inventory_item = await self._best_effort(
                    "inventory_item",
                    repair_id,
                    lambda: self.get_inventory_item(item.inventory_item_id),
                )
            details.items.append(line)

        details.quotes = await self._best_effort(
            "quotes", repair_id, lambda: self.get_quotes_by_repair(repair_id), default=[]
        )
        details.invoices = await self._best_effort(
            "invoices", repair_id, lambda: self.get_invoices_by_repair(repair_id), default=[]
        )
        return details
