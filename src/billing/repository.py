"""Invoice queries used by the overdue and reminder sweeps."""

from datetime import datetime

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.billing.models import Invoice, InvoiceStatus
from src.infrastructure.database.repository import BaseRepository


class InvoiceRepository(BaseRepository[Invoice]):
    """Repository for invoices across all users.

    The sweeps run outside any request, so these queries are not scoped to
    a single user.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Invoice)

    async def find_sent_due_before(self, cutoff: datetime) -> list[Invoice]:
        """Return SENT invoices whose due date is strictly before ``cutoff``."""
        stmt = (
            select(Invoice)
            .where(Invoice.status == InvoiceStatus.SENT, Invoice.due_date < cutoff)
            .order_by(Invoice.due_date, Invoice.id)
        )
        result = await self.session.execute(stmt)
        invoices = list(result.scalars().unique().all())
        logger.debug("Found {} sent invoices due before {}", len(invoices), cutoff)
        return invoices

    async def find_sent_due_between(
        self, start: datetime, end: datetime
    ) -> list[Invoice]:
        """Return SENT invoices with ``start <= due_date <= end``."""
        stmt = (
            select(Invoice)
            .where(
                Invoice.status == InvoiceStatus.SENT,
                Invoice.due_date >= start,
                Invoice.due_date <= end,
            )
            .order_by(Invoice.due_date, Invoice.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().unique().all())

    async def mark_overdue(self, invoice_id: str) -> bool:
        """Move an invoice from SENT to OVERDUE.

        Returns:
            bool: False when the invoice was no longer SENT, e.g. because a
                concurrent sweep transitioned it first.
        """
        updated = await self.update_many(
            {"status": InvoiceStatus.OVERDUE},
            Invoice.id == invoice_id,
            Invoice.status == InvoiceStatus.SENT,
        )
        return updated == 1
