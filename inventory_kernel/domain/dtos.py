"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable records returned by the ledger, the coordinator,
    the request workflow, the reconciliation engine, and the selectors.
    Callers never receive ORM entities; they receive these.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Quantities are integers in items.
    - Money is Decimal, never float.
    - Collections are tuples so a returned record cannot be mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from inventory_kernel.domain.scopes import StockScope

if TYPE_CHECKING:
    from inventory_kernel.models.daily_report import (
        DailyReport as DailyReportModel,
    )
    from inventory_kernel.models.daily_report import (
        DailyReportItem as DailyReportItemModel,
    )
    from inventory_kernel.models.sale import Sale as SaleModel
    from inventory_kernel.models.sale import SaleItem as SaleItemModel
    from inventory_kernel.models.stock import CentralStock as CentralStockModel
    from inventory_kernel.models.stock_request import (
        StockRequest as StockRequestModel,
    )


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerMovement:
    """
    Result of one ledger adjustment.

    Guarantees:
        - new_quantity >= 0.
        - delta == new_quantity - old_quantity.
    """

    scope: StockScope
    product_id: UUID
    old_quantity: int
    new_quantity: int

    @property
    def delta(self) -> int:
        return self.new_quantity - self.old_quantity


@dataclass(frozen=True)
class TransferResult:
    """Both legs of a transfer.  source.delta == -destination.delta."""

    source: LedgerMovement
    destination: LedgerMovement

    @property
    def quantity(self) -> int:
        return self.destination.delta


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaleLineSpec:
    """
    One requested checkout line.

    ``quantity`` is in items.  ``unit_price`` defaults to the product's
    selling price when omitted.
    """

    product_id: UUID
    quantity: int
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class SaleItemRecord:
    id: UUID
    sale_id: UUID
    line_number: int
    product_id: UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    @classmethod
    def from_model(cls, model: SaleItemModel) -> SaleItemRecord:
        return cls(
            id=model.id,
            sale_id=model.sale_id,
            line_number=model.line_number,
            product_id=model.product_id,
            quantity=model.quantity,
            unit_price=model.unit_price,
            total_price=model.total_price,
        )


@dataclass(frozen=True)
class SaleRecord:
    """A sale with its items, as committed."""

    id: UUID
    unit_id: UUID
    user_id: UUID | None
    invoice_number: str
    total_amount: Decimal
    payment_method: str
    payment_status: str
    transaction_reference: str | None
    sale_date: date
    items: tuple[SaleItemRecord, ...] = ()

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @classmethod
    def from_model(cls, model: SaleModel) -> SaleRecord:
        return cls(
            id=model.id,
            unit_id=model.unit_id,
            user_id=model.user_id,
            invoice_number=model.invoice_number,
            total_amount=model.total_amount,
            payment_method=model.payment_method,
            payment_status=_value(model.payment_status),
            transaction_reference=model.transaction_reference,
            sale_date=model.sale_date,
            items=tuple(SaleItemRecord.from_model(item) for item in model.items),
        )


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockRequestRecord:
    id: UUID
    unit_id: UUID
    product_id: UUID
    quantity: int
    status: str
    requested_by: UUID
    approved_by: UUID | None
    notes: str | None
    resolved_at: datetime | None
    resolved_on: date | None

    @classmethod
    def from_model(cls, model: StockRequestModel) -> StockRequestRecord:
        return cls(
            id=model.id,
            unit_id=model.unit_id,
            product_id=model.product_id,
            quantity=model.quantity,
            status=_value(model.status),
            requested_by=model.requested_by,
            approved_by=model.approved_by,
            notes=model.notes,
            resolved_at=model.resolved_at,
            resolved_on=model.resolved_on,
        )


@dataclass(frozen=True)
class CentralStockRecord:
    id: UUID
    product_id: UUID
    quantity: int
    low_stock_threshold: int
    batch_number: str | None

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    @classmethod
    def from_model(cls, model: CentralStockModel) -> CentralStockRecord:
        return cls(
            id=model.id,
            product_id=model.product_id,
            quantity=model.quantity,
            low_stock_threshold=model.low_stock_threshold,
            batch_number=model.batch_number,
        )


@dataclass(frozen=True)
class StockLevel:
    """
    Display view of one product's balance in one scope.

    ``is_virtual`` marks unit-produced products, which have no tracked row
    and are always sellable.
    """

    scope: StockScope
    product_id: UUID
    product_name: str
    quantity: int
    formatted_quantity: str
    low_stock_threshold: int
    is_low_stock: bool
    is_virtual: bool = False


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyReportItemRecord:
    product_id: UUID
    opening_stock: int
    stock_received: int
    quantity_sold: int
    damages: int
    closing_stock: int

    @property
    def expected_closing(self) -> int:
        return self.opening_stock + self.stock_received - self.quantity_sold - self.damages

    @classmethod
    def from_model(cls, model: DailyReportItemModel) -> DailyReportItemRecord:
        return cls(
            product_id=model.product_id,
            opening_stock=model.opening_stock,
            stock_received=model.stock_received,
            quantity_sold=model.quantity_sold,
            damages=model.damages,
            closing_stock=model.closing_stock,
        )


@dataclass(frozen=True)
class DailyReportRecord:
    id: UUID
    unit_id: UUID
    user_id: UUID
    report_date: date
    total_sales_amount: Decimal
    total_items_sold: int
    total_stock_received: int
    total_damages: int
    remark: str | None
    status: str
    items: tuple[DailyReportItemRecord, ...] = ()

    def item_for(self, product_id: UUID) -> DailyReportItemRecord | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    @classmethod
    def from_model(cls, model: DailyReportModel) -> DailyReportRecord:
        return cls(
            id=model.id,
            unit_id=model.unit_id,
            user_id=model.user_id,
            report_date=model.report_date,
            total_sales_amount=model.total_sales_amount,
            total_items_sold=model.total_items_sold,
            total_stock_received=model.total_stock_received,
            total_damages=model.total_damages,
            remark=model.remark,
            status=_value(model.status),
            items=tuple(DailyReportItemRecord.from_model(i) for i in model.items),
        )


@dataclass(frozen=True)
class Discrepancy:
    """
    One report item whose stock chain does not hold.

    kind is ``closing_mismatch`` (closing != opening + received - sold -
    damages) or ``negative_opening``.
    """

    kind: str
    report_id: UUID
    unit_id: UUID
    report_date: date
    product_id: UUID
    opening_stock: int
    stock_received: int
    quantity_sold: int
    damages: int
    closing_stock: int
    expected_closing: int

    @property
    def difference(self) -> int:
        return self.closing_stock - self.expected_closing


@dataclass(frozen=True)
class DiagnosisResult:
    reports_checked: int
    items_checked: int
    discrepancies: tuple[Discrepancy, ...] = ()

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies
