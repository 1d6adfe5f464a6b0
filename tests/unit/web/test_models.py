"""Tests for repairdesk.web.models - request bodies."""

import pytest
from pydantic import ValidationError

from repairdesk.web.models import InventoryAdjustment


def test_adjustment_accepts_negative_delta():
    assert InventoryAdjustment(delta=-3).delta == -3


def test_adjustment_rejects_extra_fields():
    with pytest.raises(ValidationError):
        InventoryAdjustment(delta=1, quantity=10)
