"""
Module: inventory_kernel.models.product
Responsibility: ORM persistence for the product catalogue.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - sku is unique.
    - items_per_set >= 1 (DB check constraint).  Only meaningful for
      product_type = set; individual products are always counted 1:1.
    - Unit-produced products (source_type = unit_produced) never hold
      tracked stock.  The ledger refuses to move them and checkout treats
      them as always available.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class ProductType(str, Enum):
    """How a product is counted when sold or requested."""

    INDIVIDUAL = "individual"
    SET = "set"


class SourceType(str, Enum):
    """Where a product's stock comes from."""

    CENTRAL_STOCK = "central_stock"
    UNIT_PRODUCED = "unit_produced"


class Product(TrackedBase):
    """
    Catalogue entry.

    Contract:
        ``unit_of_measurement`` is the plural label of one item ("bottles").
        Stock quantities for this product are always stored in items.
    """

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("items_per_set >= 1", name="ck_products_items_per_set"),
        CheckConstraint(
            "product_type IN ('individual', 'set')",
            name="ck_products_product_type",
        ),
        CheckConstraint(
            "source_type IN ('central_stock', 'unit_produced')",
            name="ck_products_source_type",
        ),
        Index("idx_products_source_type", "source_type"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    unit_of_measurement: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="items",
    )

    product_type: Mapped[ProductType] = mapped_column(
        String(20),
        nullable=False,
        default=ProductType.INDIVIDUAL,
    )

    items_per_set: Mapped[int] = mapped_column(nullable=False, default=1)

    source_type: Mapped[SourceType] = mapped_column(
        String(20),
        nullable=False,
        default=SourceType.CENTRAL_STOCK,
    )

    selling_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<Product {self.sku}>"

    @property
    def is_unit_produced(self) -> bool:
        return self.source_type == SourceType.UNIT_PRODUCED

    @property
    def is_set(self) -> bool:
        return self.product_type == ProductType.SET
