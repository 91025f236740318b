"""
Module: inventory_kernel.selectors.sale_selector
Responsibility: Read-only access to sales and their items.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import SaleRecord
from inventory_kernel.models.sale import Sale
from inventory_kernel.selectors.base import BaseSelector


class SaleSelector(BaseSelector):
    """Sale lookups.  Items are eager-loaded by the Sale mapping."""

    def get(self, sale_id: UUID) -> SaleRecord | None:
        sale = self.session.get(Sale, sale_id)
        return SaleRecord.from_model(sale) if sale is not None else None

    def get_by_invoice(self, invoice_number: str) -> SaleRecord | None:
        sale = self.session.execute(
            select(Sale).where(Sale.invoice_number == invoice_number)
        ).scalar_one_or_none()
        return SaleRecord.from_model(sale) if sale is not None else None

    def history(self, unit_id: UUID, limit: int = 20) -> list[SaleRecord]:
        """A unit's most recent sales, newest first."""
        sales = self.session.execute(
            select(Sale)
            .where(Sale.unit_id == unit_id)
            .order_by(Sale.sale_date.desc(), Sale.created_at.desc(), Sale.invoice_number)
            .limit(limit)
        ).scalars().all()
        return [SaleRecord.from_model(sale) for sale in sales]
