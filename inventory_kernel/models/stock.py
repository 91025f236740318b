"""
Module: inventory_kernel.models.stock
Responsibility: ORM persistence for stock balances -- one central-stock row
    per product and one inventory row per (unit, product).
Architecture position: Kernel > Models.  May import from db/base.py only.
    Rows are mutated exclusively by services/stock_ledger.py under a row lock.

Invariants enforced:
    - quantity >= 0, in items (DB check constraint, backstop for the ledger's
      own check).
    - central_stock.product_id is unique.
    - inventory (unit_id, product_id) is unique; the ledger relies on this
      to resolve concurrent lazy creation of the same row.

Failure modes:
    - IntegrityError on a negative quantity or duplicate row.  The ledger
      raises InsufficientStockError before either can reach the database.
"""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class CentralStock(TrackedBase):
    """Warehouse balance for one product."""

    __tablename__ = "central_stock"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_central_stock_quantity_non_negative"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
        unique=True,
    )

    quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    low_stock_threshold: Mapped[int] = mapped_column(nullable=False, default=10)

    # Most recent replenishment batch
    batch_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<CentralStock product={self.product_id} qty={self.quantity}>"


class Inventory(TrackedBase):
    """A unit's balance for one product.  Created lazily on first intake."""

    __tablename__ = "inventory"

    __table_args__ = (
        UniqueConstraint("unit_id", "product_id", name="uq_inventory_unit_product"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        Index("idx_inventory_unit", "unit_id"),
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("operating_units.id"),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    low_stock_threshold: Mapped[int] = mapped_column(nullable=False, default=10)

    def __repr__(self) -> str:
        return (
            f"<Inventory unit={self.unit_id} product={self.product_id} "
            f"qty={self.quantity}>"
        )
