"""Tenant-scoped storage: lifecycle manager, numbering, organizations, wipe."""

from repairdesk.storage.aggregates import RepairLine, RepairWithRelations
from repairdesk.storage.organizations import (
    create_organization,
    get_organization,
    get_organization_by_slug,
    list_organizations,
)
from repairdesk.storage.tenant import ENTITIES, TenantStorage
from repairdesk.storage.wipe import WipeSummary, delete_all_data_for_tenant

__all__ = [
    "ENTITIES",
    "RepairLine",
    "RepairWithRelations",
    "TenantStorage",
    "WipeSummary",
    "create_organization",
    "delete_all_data_for_tenant",
    "get_organization",
    "get_organization_by_slug",
    "list_organizations",
]
