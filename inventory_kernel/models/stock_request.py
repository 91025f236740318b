"""
Module: inventory_kernel.models.stock_request
Responsibility: ORM persistence for a unit's request to pull stock from the
    central warehouse.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity > 0, in items.
    - status is one of pending / approved / rejected.  Only pending requests
      may transition (enforced by StockRequestWorkflow under a row lock).
    - resolved_on is the business date of approval or rejection; daily
      reconciliation counts approved requests by this date.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class StockRequestStatus(str, Enum):
    """Lifecycle status.  PENDING -> APPROVED | REJECTED (both terminal)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StockRequest(TrackedBase):
    """A pending, approved or rejected request for central stock."""

    __tablename__ = "stock_requests"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_requests_quantity_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_stock_requests_valid_status",
        ),
        Index("idx_stock_requests_unit_status", "unit_id", "status"),
        Index("idx_stock_requests_resolved_on", "unit_id", "resolved_on"),
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

    # Items, never sets
    quantity: Mapped[int] = mapped_column(nullable=False)

    status: Mapped[StockRequestStatus] = mapped_column(
        String(20),
        nullable=False,
        default=StockRequestStatus.PENDING,
    )

    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_on: Mapped[date | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<StockRequest {self.id} status={self.status}>"

    @property
    def is_pending(self) -> bool:
        return self.status == StockRequestStatus.PENDING
