"""Unit tests for RepairDesk Pydantic payloads.

Tests field constraints and the rule that payloads never carry a tenant id.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from repairdesk.models import (
    CustomerCreate,
    InventoryItemCreate,
    InventoryItemUpdate,
    RepairCreate,
    RepairItemCreate,
    RepairStatus,
    RepairUpdate,
)


class TestTenantField:
    """Payloads reject a client-supplied org_id."""

    def test_customer_create_rejects_org_id(self):
        with pytest.raises(ValidationError):
            CustomerCreate(
                first_name="Jane",
                last_name="Doe",
                email="jane@example.com",
                phone="555-0100",
                org_id=2,
            )

    def test_repair_update_rejects_org_id(self):
        with pytest.raises(ValidationError):
            RepairUpdate(org_id=2)


class TestRepairCreate:
    def test_defaults(self):
        repair = RepairCreate(customer_id=1, issue="Won't boot")

        assert repair.status == RepairStatus.INTAKE
        assert repair.priority_level == 3
        assert repair.ticket_number is None
        assert repair.is_under_warranty is False

    @pytest.mark.parametrize("priority", [0, 6])
    def test_priority_out_of_range(self, priority):
        with pytest.raises(ValidationError):
            RepairCreate(customer_id=1, issue="Won't boot", priority_level=priority)

    def test_empty_completion_date_becomes_none(self):
        repair = RepairCreate(customer_id=1, issue="Fan noise", estimated_completion_date="")

        assert repair.estimated_completion_date is None

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            RepairCreate(customer_id=1, issue="Fan noise", status="lost")


class TestInventoryItem:
    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            InventoryItemCreate(name="Battery", category="power", price=Decimal("-1"))

        assert "price must be non-negative" in str(exc_info.value)

    def test_update_only_tracks_set_fields(self):
        update = InventoryItemUpdate(quantity=4)

        assert update.model_dump(exclude_unset=True) == {"quantity": 4}


class TestRepairItem:
    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            RepairItemCreate(
                repair_id=1,
                description="Thermal paste",
                quantity=0,
                unit_price=Decimal("5.00"),
                item_type="part",
            )

    def test_item_type_limited_to_part_or_service(self):
        with pytest.raises(ValidationError):
            RepairItemCreate(
                repair_id=1,
                description="Coffee",
                unit_price=Decimal("2.00"),
                item_type="snack",
            )
