"""Errors raised by the RepairDesk storage layer.

A row that is missing or owned by another tenant is never an error: lookups
return None, deletes return False. The exceptions below cover requests that
are invalid rather than pointed at nothing.
"""

from __future__ import annotations


class RepairDeskError(Exception):
    """Base class for RepairDesk errors."""


class InvalidReferenceError(RepairDeskError):
    """A payload references a row that is not live in the acting tenant."""

    def __init__(self, entity: str, reference_id: int | None, message: str | None = None):
        self.entity = entity
        self.reference_id = reference_id
        super().__init__(message or f"{entity} {reference_id} does not exist")


class DuplicateNumberError(RepairDeskError):
    """A ticket, quote or invoice number is already taken in the tenant.

    Raised for a caller-supplied duplicate and when a concurrent writer
    commits the same number first.
    """

    def __init__(self, kind: str, number: str):
        self.kind = kind
        self.number = number
        super().__init__(f"{kind} number {number} is already in use")


class TenantNotFoundError(RepairDeskError):
    """The tenant context names an organization that does not exist."""

    def __init__(self, org_id: int | str | None):
        self.org_id = org_id
        super().__init__(f"Organization {org_id} not found")


class TenantWipeError(RepairDeskError):
    """A bulk tenant wipe failed and was rolled back."""

    def __init__(self, org_id: int, table: str, cause: Exception):
        self.org_id = org_id
        self.table = table
        super().__init__(
            f"Wipe of organization {org_id} failed at table {table!r}: {cause}. "
            "No rows were removed."
        )
