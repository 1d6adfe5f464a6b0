"""Lifecycle routes: soft delete, restore, trash, repair details, tenant wipe.

Routes:
- DELETE /api/tenant/data?confirm=<slug>   - Hard-delete all tenant data
- GET    /api/trash/{entity}               - List soft-deleted rows
- GET    /api/repairs/{repair_id}/details  - Repair with related rows
- POST   /api/inventory/{item_id}/adjust   - Change stock level
- DELETE /api/{entity}/{entity_id}         - Soft delete (cascades)
- POST   /api/{entity}/{entity_id}/restore - Restore one row
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.encoders import jsonable_encoder

from repairdesk.db.models import Base, OrganizationModel
from repairdesk.storage.aggregates import RepairWithRelations
from repairdesk.storage.tenant import ENTITIES, TenantStorage
from repairdesk.storage.wipe import delete_all_data_for_tenant
from repairdesk.web.dependencies import get_storage, get_tenant
from repairdesk.web.models import InventoryAdjustment

router = APIRouter(prefix="/api", tags=["lifecycle"])


def _entity_name(entity: str) -> str:
    name = ENTITIES.get(entity)
    if name is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity: {entity}")
    return name


def serialize_row(row: Base | None) -> dict | None:
    if row is None:
        return None
    return jsonable_encoder({c.name: getattr(row, c.name) for c in row.__table__.columns})


def serialize_details(details: RepairWithRelations) -> dict:
    items = []
    for line in details.items:
        item = serialize_row(line.item)
        item["inventory_item"] = serialize_row(line.inventory_item)
        items.append(item)

    return {
        "repair": serialize_row(details.repair),
        "customer": serialize_row(details.customer),
        "device": serialize_row(details.device),
        "technician": serialize_row(details.technician),
        "items": items,
        "quotes": [serialize_row(q) for q in details.quotes],
        "invoices": [serialize_row(i) for i in details.invoices],
        "quote": serialize_row(details.quote),
        "invoice": serialize_row(details.invoice),
    }


# ============================================================================
# Tenant-wide routes (registered before the generic /{entity}/{id} routes)
# ============================================================================

@router.delete("/tenant/data")
async def wipe_tenant_data(
    confirm: str | None = Query(default=None),
    org: OrganizationModel = Depends(get_tenant),
):
    """Irreversibly delete every row owned by the acting organization.

    The caller must repeat the organization slug in ``confirm``.
    """
    if confirm != org.slug:
        raise HTTPException(
            status_code=400,
            detail="Pass confirm=<organization slug> to wipe tenant data",
        )

    summary = await delete_all_data_for_tenant(org.id)
    return {"org_id": summary.org_id, "deleted": summary.deleted, "total": summary.total}


@router.get("/trash/{entity}")
async def list_trash(entity: str, storage: TenantStorage = Depends(get_storage)):
    name = _entity_name(entity)
    rows = await getattr(storage, f"get_deleted_{name}s")()
    return [serialize_row(row) for row in rows]


@router.get("/repairs/{repair_id}/details")
async def repair_details(repair_id: int, storage: TenantStorage = Depends(get_storage)):
    details = await storage.get_repair_with_relations(repair_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Repair not found")
    return serialize_details(details)


@router.post("/inventory/{item_id}/adjust")
async def adjust_inventory(
    item_id: int,
    body: InventoryAdjustment,
    storage: TenantStorage = Depends(get_storage),
):
    item = await storage.adjust_inventory_quantity(item_id, body.delta)
    if item is None:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return serialize_row(item)


# ============================================================================
# Per-entity soft delete / restore
# ============================================================================

@router.delete("/{entity}/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def soft_delete(
    entity: str,
    entity_id: int,
    storage: TenantStorage = Depends(get_storage),
):
    name = _entity_name(entity)
    deleted = await getattr(storage, f"delete_{name}")(entity_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"{name} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{entity}/{entity_id}/restore")
async def restore(
    entity: str,
    entity_id: int,
    storage: TenantStorage = Depends(get_storage),
):
    name = _entity_name(entity)
    row = await getattr(storage, f"restore_{name}")(entity_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Deleted {name} not found")
    return serialize_row(row)
