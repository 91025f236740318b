"""
Module: inventory_kernel.selectors.inventory_selector
Responsibility: Display view of stock balances for the central warehouse and
    for each unit, with human-readable set/item quantities and low-stock flags.
Architecture position: Kernel > Selectors.

Unit-produced products have no inventory row.  They appear in a unit's
listing as virtual zero-quantity entries so the point of sale can offer them.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import CentralStockRecord, StockLevel
from inventory_kernel.domain.scopes import StockScope
from inventory_kernel.domain.units import UnitConverter
from inventory_kernel.models.product import Product, SourceType
from inventory_kernel.models.stock import CentralStock, Inventory
from inventory_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector):
    """Read-only stock levels."""

    def _level(self, scope: StockScope, row, product: Product) -> StockLevel:
        return StockLevel(
            scope=scope,
            product_id=product.id,
            product_name=product.name,
            quantity=row.quantity,
            formatted_quantity=UnitConverter.format(row.quantity, product),
            low_stock_threshold=row.low_stock_threshold,
            is_low_stock=row.quantity <= row.low_stock_threshold,
        )

    def unit_inventory(self, unit_id: UUID) -> list[StockLevel]:
        """
        Every product the unit can sell, ordered by product name.

        Tracked products appear when the unit holds a row for them.
        Unit-produced products always appear, as virtual entries.
        """
        scope = StockScope.unit(unit_id)
        rows = self.session.execute(
            select(Inventory, Product)
            .join(Product, Product.id == Inventory.product_id)
            .where(Inventory.unit_id == unit_id)
        ).all()

        levels = [self._level(scope, inv, product) for inv, product in rows]
        held = {level.product_id for level in levels}

        unit_produced = self.session.execute(
            select(Product).where(Product.source_type == SourceType.UNIT_PRODUCED)
        ).scalars().all()
        for product in unit_produced:
            if product.id in held:
                continue
            levels.append(
                StockLevel(
                    scope=scope,
                    product_id=product.id,
                    product_name=product.name,
                    quantity=0,
                    formatted_quantity=UnitConverter.format(0, product),
                    low_stock_threshold=0,
                    is_low_stock=False,
                    is_virtual=True,
                )
            )

        return sorted(levels, key=lambda level: (level.product_name, str(level.product_id)))

    def central_stock(self) -> list[StockLevel]:
        """All warehouse balances, ordered by product name."""
        scope = StockScope.central()
        rows = self.session.execute(
            select(CentralStock, Product)
            .join(Product, Product.id == CentralStock.product_id)
            .order_by(Product.name)
        ).all()
        return [self._level(scope, row, product) for row, product in rows]

    def central_record(self, product_id: UUID) -> CentralStockRecord | None:
        row = self.session.execute(
            select(CentralStock).where(CentralStock.product_id == product_id)
        ).scalar_one_or_none()
        return CentralStockRecord.from_model(row) if row is not None else None

    def low_stock(self, unit_id: UUID | None = None) -> list[StockLevel]:
        """Balances at or below their threshold; central when unit_id is None."""
        levels = self.central_stock() if unit_id is None else self.unit_inventory(unit_id)
        return [level for level in levels if level.is_low_stock]
