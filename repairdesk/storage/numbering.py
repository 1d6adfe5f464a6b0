"""Per-tenant ticket, quote and invoice numbers.

Numbers look like ``RT-1001``: a configured prefix, a dash and a zero padded
counter. Each organization has its own counters, so numbers are unique inside
a tenant but may repeat across tenants.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.config import NumberingConfig
from repairdesk.db.models import DocumentSequenceModel, InvoiceModel, QuoteModel, RepairModel
from repairdesk.exceptions import DuplicateNumberError

logger = structlog.get_logger(__name__)

NUMBER_COLUMNS = {
    "ticket": RepairModel.ticket_number,
    "quote": QuoteModel.quote_number,
    "invoice": InvoiceModel.invoice_number,
}


def format_number(prefix: str, value: int, width: int = 4) -> str:
    return f"{prefix}-{value:0{width}d}"


async def number_in_use(session: AsyncSession, org_id: int, kind: str, number: str) -> bool:
    """True if ``number`` already exists in the tenant, trashed rows included."""
    column = NUMBER_COLUMNS[kind]
    model = column.class_
    stmt = select(model.id).where(model.org_id == org_id, column == number).limit(1)
    result = await session.execute(stmt)
    return result.scalar_one_or_none() is not None


async def ensure_number_available(
    session: AsyncSession, org_id: int, kind: str, number: str
) -> None:
    if await number_in_use(session, org_id, kind, number):
        raise DuplicateNumberError(kind, number)


def is_number_conflict(exc: IntegrityError, kind: str) -> bool:
    """True if ``exc`` is the per-tenant unique constraint on ``kind``'s number.

    SQLite names the columns ("repairs.ticket_number") and PostgreSQL names
    the constraint and echoes the key, so the column name shows up in both.
    """
    return NUMBER_COLUMNS[kind].key in str(exc.orig)


async def next_number(
    session: AsyncSession,
    org_id: int,
    kind: str,
    numbering: NumberingConfig,
) -> str:
    """Advance the tenant's counter for ``kind`` and return the formatted number.

    Skips values already taken by caller-supplied numbers. The counter row is
    locked for the rest of the transaction on databases that support it.

    Args:
        session: Database session (caller owns the transaction)
        org_id: Acting tenant
        kind: "ticket", "quote" or "invoice"
        numbering: Prefix / start / width settings

    Returns:
        Formatted number, e.g. "RT-1001"
    """
    if kind not in NUMBER_COLUMNS:
        raise ValueError(f"Unknown document kind: {kind}")

    stmt = (
        select(DocumentSequenceModel)
        .where(
            DocumentSequenceModel.org_id == org_id,
            DocumentSequenceModel.kind == kind,
        )
        .with_for_update()
    )
    sequence = (await session.execute(stmt)).scalar_one_or_none()

    if sequence is None:
        sequence = DocumentSequenceModel(
            org_id=org_id, kind=kind, last_value=numbering.start_for(kind) - 1
        )
        try:
            async with session.begin_nested():
                session.add(sequence)
                await session.flush()
        except IntegrityError:
            # A concurrent transaction created the counter first; use theirs
            logger.info("sequence_created_concurrently", org_id=org_id, kind=kind)
            sequence = (await session.execute(stmt)).scalar_one()

    prefix = numbering.prefix_for(kind)
    while True:
        sequence.last_value += 1
        candidate = format_number(prefix, sequence.last_value, numbering.width)
        if not await number_in_use(session, org_id, kind, candidate):
            break

    await session.flush()
    return candidate
