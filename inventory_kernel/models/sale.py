"""
Module: inventory_kernel.models.sale
Responsibility: ORM persistence for sales and their line items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - invoice_number is unique.
    - Sale items are append-only and are only appended while the sale is
      pending.  A paid sale is frozen (ORM listeners in db/immutability.py).
    - sale_date is the business date the sale counts toward in the unit's
      daily report.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString


class PaymentStatus(str, Enum):
    """PENDING -> PAID.  PAID is terminal."""

    PENDING = "pending"
    PAID = "paid"


class Sale(TrackedBase):
    """A checkout at one unit."""

    __tablename__ = "sales"

    __table_args__ = (
        CheckConstraint(
            "payment_status IN ('pending', 'paid')",
            name="ck_sales_payment_status",
        ),
        Index("idx_sales_unit_date", "unit_id", "sale_date"),
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("operating_units.id"),
        nullable=False,
    )

    # Cashier; optional for self-service checkouts
    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    transaction_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    sale_date: Mapped[date] = mapped_column(nullable=False)

    items: Mapped[list["SaleItem"]] = relationship(
        back_populates="sale",
        order_by="SaleItem.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Sale {self.invoice_number} status={self.payment_status}>"

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID


class SaleItem(Base):
    """One product line of a sale.  Immutable once written."""

    __tablename__ = "sale_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        Index("idx_sale_items_sale", "sale_id"),
        Index("idx_sale_items_product", "product_id"),
    )

    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    # Items, never sets
    quantity: Mapped[int] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    sale: Mapped[Sale] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<SaleItem {self.sale_id}#{self.line_number} qty={self.quantity}>"
