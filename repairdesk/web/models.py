"""Request bodies used only by the HTTP adapter."""

from __future__ import annotations

from pydantic import BaseModel


class InventoryAdjustment(BaseModel):
    """Stock change, negative to consume."""

    delta: int

    class Config:
        extra = "forbid"
        json_schema_extra = {"example": {"delta": -2}}
