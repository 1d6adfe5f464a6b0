"""RepairDesk Pydantic models for validated create/update payloads.

Payloads never carry ``org_id``: the tenant is injected server-side by
``TenantStorage``. Create models forbid unknown fields, so a client that tries
to smuggle an ``org_id`` in is rejected at validation time.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class RepairStatus(str, Enum):
    """Repair ticket workflow states."""

    INTAKE = "intake"
    DIAGNOSING = "diagnosing"
    AWAITING_APPROVAL = "awaiting_approval"
    PARTS_ORDERED = "parts_ordered"
    IN_REPAIR = "in_repair"
    READY_FOR_PICKUP = "ready_for_pickup"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InvoiceStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    CANCELLED = "cancelled"


class ItemType(str, Enum):
    PART = "part"
    SERVICE = "service"


def _non_negative(value: Decimal | int | None, name: str):
    if value is not None and value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


class OrganizationCreate(BaseModel):
    """New tenant."""

    name: str = Field(min_length=1)
    slug: str | None = None  # derived from name when omitted
    settings: dict = Field(default_factory=dict)

    class Config:
        extra = "forbid"


# Customers

class CustomerCreate(BaseModel):
    """Repair shop customer."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: str = Field(min_length=1)
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    notes: str | None = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "first_name": "Jane",
                "last_name": "Doe",
                "email": "jane@example.com",
                "phone": "555-0100",
            }
        }


class CustomerUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, min_length=3)
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    notes: str | None = None

    class Config:
        extra = "forbid"


# Devices

class DeviceCreate(BaseModel):
    customer_id: int
    type: str = Field(min_length=1)  # laptop, desktop, tablet, phone...
    brand: str = Field(min_length=1)
    model: str = Field(min_length=1)
    serial_number: str | None = None
    password: str | None = None
    condition: str | None = None
    accessories: str | None = None

    class Config:
        extra = "forbid"


class DeviceUpdate(BaseModel):
    customer_id: int | None = None
    type: str | None = None
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    password: str | None = None
    condition: str | None = None
    accessories: str | None = None

    class Config:
        extra = "forbid"


# Technicians

class TechnicianCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: str | None = None
    role: str = Field(min_length=1)  # senior technician, hardware specialist...
    specialty: str | None = None
    is_active: bool = True

    class Config:
        extra = "forbid"


class TechnicianUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    role: str | None = None
    specialty: str | None = None
    is_active: bool | None = None

    class Config:
        extra = "forbid"


# Inventory

class InventoryItemCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    category: str = Field(min_length=1)
    sku: str | None = None
    price: Decimal
    cost: Decimal | None = None
    quantity: int = 0
    location: str | None = None
    supplier: str | None = None
    min_level: int = 1
    is_active: bool = True

    @field_validator("price", "cost", "quantity", "min_level")
    @classmethod
    def validate_non_negative(cls, v, info):
        return _non_negative(v, info.field_name)

    class Config:
        extra = "forbid"


class InventoryItemUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    sku: str | None = None
    price: Decimal | None = None
    cost: Decimal | None = None
    quantity: int | None = None
    location: str | None = None
    supplier: str | None = None
    min_level: int | None = None
    is_active: bool | None = None

    @field_validator("price", "cost", "quantity", "min_level")
    @classmethod
    def validate_non_negative(cls, v, info):
        return _non_negative(v, info.field_name)

    class Config:
        extra = "forbid"


# Repairs

class RepairCreate(BaseModel):
    """New repair ticket. ``ticket_number`` is generated when omitted."""

    customer_id: int
    device_id: int | None = None
    technician_id: int | None = None
    ticket_number: str | None = None
    status: RepairStatus = RepairStatus.INTAKE
    issue: str = Field(min_length=1)
    notes: str | None = None
    intake_date: datetime | None = None
    estimated_completion_date: datetime | None = None
    priority_level: int = Field(default=3, ge=1, le=5)  # 1 is highest
    is_under_warranty: bool = False
    diagnostic_notes: str | None = None

    @field_validator("estimated_completion_date", mode="before")
    @classmethod
    def empty_string_to_none(cls, v):
        if v == "":
            return None
        return v

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "customer_id": 1,
                "device_id": 1,
                "issue": "Cracked screen",
                "status": "intake",
                "priority_level": 2,
            }
        }


class RepairUpdate(BaseModel):
    customer_id: int | None = None
    device_id: int | None = None
    technician_id: int | None = None
    status: RepairStatus | None = None
    issue: str | None = None
    notes: str | None = None
    estimated_completion_date: datetime | None = None
    actual_completion_date: datetime | None = None
    priority_level: int | None = Field(default=None, ge=1, le=5)
    is_under_warranty: bool | None = None
    diagnostic_notes: str | None = None
    customer_approval: bool | None = None
    total_cost: Decimal | None = None

    @field_validator("estimated_completion_date", "actual_completion_date", mode="before")
    @classmethod
    def empty_string_to_none(cls, v):
        if v == "":
            return None
        return v

    class Config:
        extra = "forbid"


# Repair items

class RepairItemCreate(BaseModel):
    repair_id: int
    inventory_item_id: int | None = None
    description: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal
    item_type: ItemType
    is_completed: bool = False

    @field_validator("unit_price")
    @classmethod
    def validate_unit_price(cls, v: Decimal) -> Decimal:
        return _non_negative(v, "unit_price")

    class Config:
        extra = "forbid"


class RepairItemUpdate(BaseModel):
    inventory_item_id: int | None = None
    description: str | None = None
    quantity: int | None = Field(default=None, ge=1)
    unit_price: Decimal | None = None
    item_type: ItemType | None = None
    is_completed: bool | None = None

    @field_validator("unit_price")
    @classmethod
    def validate_unit_price(cls, v: Decimal | None) -> Decimal | None:
        return _non_negative(v, "unit_price")

    class Config:
        extra = "forbid"


# Quotes and invoices

class QuoteCreate(BaseModel):
    """New quote. ``quote_number`` is generated when omitted."""

    repair_id: int
    quote_number: str | None = None
    date_created: datetime | None = None
    expiration_date: datetime | None = None
    subtotal: Decimal
    tax: Decimal | None = None
    total: Decimal
    status: QuoteStatus = QuoteStatus.PENDING
    notes: str | None = None

    @field_validator("subtotal", "tax", "total")
    @classmethod
    def validate_amounts(cls, v, info):
        return _non_negative(v, info.field_name)

    class Config:
        extra = "forbid"


class QuoteUpdate(BaseModel):
    expiration_date: datetime | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    total: Decimal | None = None
    status: QuoteStatus | None = None
    notes: str | None = None

    @field_validator("subtotal", "tax", "total")
    @classmethod
    def validate_amounts(cls, v, info):
        return _non_negative(v, info.field_name)

    class Config:
        extra = "forbid"


class InvoiceCreate(BaseModel):
    """New invoice. ``invoice_number`` is generated when omitted."""

    repair_id: int
    invoice_number: str | None = None
    date_issued: datetime | None = None
    subtotal: Decimal
    tax: Decimal | None = None
    total: Decimal
    status: InvoiceStatus = InvoiceStatus.UNPAID
    payment_method: str | None = None
    notes: str | None = None

    @field_validator("subtotal", "tax", "total")
    @classmethod
    def validate_amounts(cls, v, info):
        return _non_negative(v, info.field_name)

    class Config:
        extra = "forbid"


class InvoiceUpdate(BaseModel):
    date_paid: datetime | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    total: Decimal | None = None
    status: InvoiceStatus | None = None
    payment_method: str | None = None
    notes: str | None = None

    @field_validator("subtotal", "tax", "total")
    @classmethod
    def validate_amounts(cls, v, info):
        return _non_negative(v, info.field_name)

    class Config:
        extra = "forbid"
