"""Operator-triggered bulk wipe of one tenant's data.

This is the only place rows are physically removed. Everything runs in one
transaction on a dedicated session: either every table is cleared for the
tenant or nothing is.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repairdesk.db.connection import get_session_factory
from repairdesk.db.models import (
    CustomerModel,
    DeviceModel,
    DocumentSequenceModel,
    InventoryItemModel,
    InvoiceModel,
    QuoteModel,
    RepairItemModel,
    RepairModel,
    TechnicianModel,
)
from repairdesk.exceptions import TenantWipeError

logger = structlog.get_logger(__name__)

# Children before parents so foreign keys hold after every statement
WIPE_ORDER = (
    RepairItemModel,
    QuoteModel,
    InvoiceModel,
    RepairModel,
    DeviceModel,
    CustomerModel,
    TechnicianModel,
    InventoryItemModel,
    DocumentSequenceModel,
)


@dataclass
class WipeSummary:
    """Rows removed per table."""

    org_id: int
    deleted: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.deleted.values())


async def delete_all_data_for_tenant(
    org_id: int,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> WipeSummary:
    """Hard-delete every row owned by ``org_id``.

    The organization row itself is kept so the tenant can start over.

    Args:
        org_id: Tenant to wipe
        session_factory: Session factory (defaults to the application one)

    Returns:
        WipeSummary with per-table counts

    Raises:
        TenantWipeError: Any statement failed; the transaction was rolled back
    """
    factory = session_factory or get_session_factory()
    summary = WipeSummary(org_id=org_id)
    table = "<begin>"

    logger.warning("tenant_wipe_started", org_id=org_id)

    try:
        async with factory() as session:
            async with session.begin():
                for model in WIPE_ORDER:
                    table = model.__tablename__
                    stmt = (
                        delete(model)
                        .where(model.org_id == org_id)
                        .execution_options(synchronize_session=False)
                    )
                    result = await session.execute(stmt)
                    summary.deleted[table] = result.rowcount
                table = "<commit>"
    except Exception as e:
        logger.error("tenant_wipe_failed", org_id=org_id, table=table, error=str(e))
        raise TenantWipeError(org_id, table, e) from e

    logger.warning("tenant_wipe_completed", org_id=org_id, rows_deleted=summary.total)
    return summary
