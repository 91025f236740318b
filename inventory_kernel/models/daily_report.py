"""
Module: inventory_kernel.models.daily_report
Responsibility: ORM persistence for closed trading days -- one report per
    (unit, date) with one item per product.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - unique(unit_id, report_date): a day closes once.  The constraint is the
      backstop for two concurrent generate() calls that both pass the
      duplicate pre-check.
    - A report is immutable except for ``remark``; its items are immutable
      (ORM listeners in db/immutability.py).

Audit relevance:
    Each item records the chain opening -> received -> sold -> damaged ->
    closing.  ReportDiagnostics re-derives closing from the other four and
    flags any row where the chain does not hold.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString


class ReportStatus(str, Enum):
    """Reports are written closed; there is no draft state."""

    CLOSED = "closed"


class DailyReport(TrackedBase):
    """Header row for one unit's trading day."""

    __tablename__ = "daily_reports"

    __table_args__ = (
        UniqueConstraint("unit_id", "report_date", name="uq_daily_reports_unit_date"),
        Index("idx_daily_reports_unit_date", "unit_id", "report_date"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("operating_units.id"),
        nullable=False,
    )

    report_date: Mapped[date] = mapped_column(nullable=False)

    total_sales_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    total_items_sold: Mapped[int] = mapped_column(nullable=False, default=0)

    total_stock_received: Mapped[int] = mapped_column(nullable=False, default=0)

    total_damages: Mapped[int] = mapped_column(nullable=False, default=0)

    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[ReportStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ReportStatus.CLOSED,
    )

    items: Mapped[list["DailyReportItem"]] = relationship(
        back_populates="report",
        order_by="DailyReportItem.product_id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<DailyReport unit={self.unit_id} date={self.report_date}>"


class DailyReportItem(Base):
    """Per-product stock chain for one report."""

    __tablename__ = "daily_report_items"

    __table_args__ = (
        UniqueConstraint(
            "daily_report_id", "product_id", name="uq_daily_report_items_product"
        ),
        Index("idx_daily_report_items_product", "product_id"),
    )

    daily_report_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("daily_reports.id"),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    opening_stock: Mapped[int] = mapped_column(nullable=False)

    stock_received: Mapped[int] = mapped_column(nullable=False, default=0)

    quantity_sold: Mapped[int] = mapped_column(nullable=False, default=0)

    damages: Mapped[int] = mapped_column(nullable=False, default=0)

    closing_stock: Mapped[int] = mapped_column(nullable=False)

    report: Mapped[DailyReport] = relationship(back_populates="items")

    @property
    def expected_closing(self) -> int:
        """Closing stock implied by the other four columns."""
        return self.opening_stock + self.stock_received - self.quantity_sold - self.damages
