"""
ReconciliationEngine -- closes a unit's trading day into an immutable report.

Responsibility:
    For each product the unit holds, reconstructs the chain
    opening -> received -> sold -> damaged -> closing from the current
    inventory, the day's sales, the day's approved stock requests and the
    previous report, and writes one DailyReport with its items.

Architecture position:
    Services -- orchestration over kernel models and selectors.  Owns its
    transaction (auto_commit=True) the same way TransactionCoordinator does.

Invariants enforced:
    - One report per (unit, date).  The pre-check raises DuplicateReportError;
      the unique constraint catches the concurrent case and is translated to
      the same error.
    - Closing stock is the inventory balance read under a shared row lock,
      so no sale or transfer can change it while the report is built.
    - Opening stock carries over from the previous report's closing when
      that report has the product.  Otherwise it is back-computed from the
      day's movements; a negative result is clamped to zero and closing
      becomes max(0, received - sold - damages).
    - A written report is immutable apart from its remark.

Failure modes:
    - DuplicateReportError: the day is already closed for the unit.
    - InvalidQuantityError: a negative damages figure, or damages for a
      product the unit does not hold.
    - NotFoundError: unknown unit or report.

Audit relevance:
    ``daily_report_generated`` and ``report_opening_clamped`` log events,
    plus a REPORT_GENERATED audit event per report and
    REPORT_REMARK_UPDATED per remark change.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import DailyReportRecord, DiagnosisResult
from inventory_kernel.exceptions import (
    DuplicateReportError,
    InvalidQuantityError,
    NotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_event import AuditAction, SubjectType
from inventory_kernel.models.daily_report import (
    DailyReport,
    DailyReportItem,
    ReportStatus,
)
from inventory_kernel.models.sale import Sale, SaleItem
from inventory_kernel.models.stock import Inventory
from inventory_kernel.models.stock_request import StockRequest, StockRequestStatus
from inventory_kernel.models.unit import OperatingUnit
from inventory_kernel.selectors.report_selector import ReportSelector
from inventory_kernel.services.auditor_service import AuditorService
from inventory_services._transaction import run_in_transaction
from inventory_services.report_diagnostics import ReportDiagnostics

logger = get_logger("services.reconciliation_engine")


class ReconciliationEngine:
    """
    Daily report generation and lookup.

    Usage:
        engine = ReconciliationEngine(session, clock=clock)
        report = engine.generate(unit_id, manager_id, damages={beer.id: 2})
        engine.update_remark(report.id, "Two bottles broken", manager_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._auditor = AuditorService(session, self._clock)
        self._reports = ReportSelector(session)

    # -------------------------------------------------------------------------
    # Day totals
    # -------------------------------------------------------------------------

    def _sold_by_product(self, unit_id: UUID, report_date: date) -> dict[UUID, int]:
        rows = self._session.execute(
            select(SaleItem.product_id, func.sum(SaleItem.quantity))
            .join(Sale, Sale.id == SaleItem.sale_id)
            .where(Sale.unit_id == unit_id, Sale.sale_date == report_date)
            .group_by(SaleItem.product_id)
        ).all()
        return {product_id: int(total) for product_id, total in rows}

    def _sales_amount(self, unit_id: UUID, report_date: date) -> Decimal:
        total = self._session.execute(
            select(func.sum(Sale.total_amount)).where(
                Sale.unit_id == unit_id, Sale.sale_date == report_date
            )
        ).scalar()
        return Decimal(str(total)) if total is not None else Decimal("0")

    def _received_by_product(self, unit_id: UUID, report_date: date) -> dict[UUID, int]:
        rows = self._session.execute(
            select(StockRequest.product_id, func.sum(StockRequest.quantity))
            .where(
                StockRequest.unit_id == unit_id,
                StockRequest.status == StockRequestStatus.APPROVED,
                StockRequest.resolved_on == report_date,
            )
            .group_by(StockRequest.product_id)
        ).all()
        return {product_id: int(total) for product_id, total in rows}

    def _locked_inventory(self, unit_id: UUID) -> list[Inventory]:
        """Unit inventory rows under FOR SHARE, in product-id order."""
        return list(
            self._session.execute(
                select(Inventory)
                .where(Inventory.unit_id == unit_id)
                .order_by(Inventory.product_id)
                .with_for_update(read=True)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate(
        self,
        unit_id: UUID,
        actor_id: UUID,
        report_date: date | None = None,
        damages: Mapping[UUID, int] | None = None,
        remark: str | None = None,
    ) -> DailyReportRecord:
        """
        Close ``report_date`` (default: today) for ``unit_id``.

        Args:
            damages: Damaged items per product.  Every key must be a product
                in the unit's inventory.

        Returns:
            The written report with one item per product in the unit's
            inventory.
        """
        day = report_date or self._clock.today()
        damages = dict(damages or {})

        def _do() -> DailyReportRecord:
            for product_id, damaged in damages.items():
                if damaged < 0:
                    raise InvalidQuantityError(
                        damaged, f"damages for product {product_id} cannot be negative"
                    )
            if self._session.get(OperatingUnit, unit_id) is None:
                raise NotFoundError("OperatingUnit", str(unit_id))
            if self._reports.exists(unit_id, day):
                raise DuplicateReportError(str(unit_id), day.isoformat())

            inventory = self._locked_inventory(unit_id)
            unheld = damages.keys() - {row.product_id for row in inventory}
            if unheld:
                product_id = min(unheld, key=str)
                raise InvalidQuantityError(
                    damages[product_id],
                    f"damages for product {product_id} which unit {unit_id} does not hold",
                )

            sold = self._sold_by_product(unit_id, day)
            received = self._received_by_product(unit_id, day)
            prior = self._reports.latest_before(unit_id, day)

            items = []
            for row in inventory:
                product_sold = sold.get(row.product_id, 0)
                product_received = received.get(row.product_id, 0)
                product_damages = damages.get(row.product_id, 0)
                closing = row.quantity

                prior_item = prior.item_for(row.product_id) if prior is not None else None
                if prior_item is not None:
                    opening = prior_item.closing_stock
                else:
                    opening = closing + product_sold - product_received + product_damages
                    if opening < 0:
                        logger.warning(
                            "report_opening_clamped",
                            extra={
                                "product_id": str(row.product_id),
                                "computed_opening": opening,
                                "closing_stock": closing,
                            },
                        )
                        opening = 0
                        closing = max(0, product_received - product_sold - product_damages)

                items.append(
                    DailyReportItem(
                        product_id=row.product_id,
                        opening_stock=opening,
                        stock_received=product_received,
                        quantity_sold=product_sold,
                        damages=product_damages,
                        closing_stock=closing,
                    )
                )

            report = DailyReport(
                user_id=actor_id,
                unit_id=unit_id,
                report_date=day,
                total_sales_amount=self._sales_amount(unit_id, day),
                total_items_sold=sum(sold.values()),
                total_stock_received=sum(i.stock_received for i in items),
                total_damages=sum(i.damages for i in items),
                remark=remark,
                status=ReportStatus.CLOSED,
                created_by_id=actor_id,
                items=items,
            )
            try:
                with self._session.begin_nested():
                    self._session.add(report)
                    self._session.flush()
            except IntegrityError as exc:
                raise DuplicateReportError(str(unit_id), day.isoformat()) from exc

            self._auditor.record(
                action=AuditAction.REPORT_GENERATED,
                product_id=None,
                subject_type=SubjectType.DAILY_REPORT,
                subject_id=report.id,
                old_values=None,
                new_values={
                    "report_date": day.isoformat(),
                    "total_sales_amount": str(report.total_sales_amount),
                    "total_items_sold": report.total_items_sold,
                    "total_stock_received": report.total_stock_received,
                    "total_damages": report.total_damages,
                },
                description=remark,
                actor_id=actor_id,
            )

            logger.info(
                "daily_report_generated",
                extra={
                    "report_id": str(report.id),
                    "report_date": day.isoformat(),
                    "item_count": len(items),
                    "total_items_sold": report.total_items_sold,
                    "total_stock_received": report.total_stock_received,
                },
            )
            return DailyReportRecord.from_model(report)

        return run_in_transaction(
            self._session,
            "generate_daily_report",
            _do,
            logger=logger,
            auto_commit=self._auto_commit,
            actor_id=actor_id,
            unit_id=unit_id,
            report_date=day.isoformat(),
        )

    def update_remark(
        self,
        report_id: UUID,
        remark: str | None,
        actor_id: UUID,
    ) -> DailyReportRecord:
        """Replace the remark on a closed report; nothing else may change."""

        def _do() -> DailyReportRecord:
            report = self._session.execute(
                select(DailyReport)
                .where(DailyReport.id == report_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if report is None:
                raise NotFoundError("DailyReport", str(report_id))

            old_remark = report.remark
            report.remark = remark
            report.updated_by_id = actor_id
            self._session.flush()

            self._auditor.record(
                action=AuditAction.REPORT_REMARK_UPDATED,
                product_id=None,
                subject_type=SubjectType.DAILY_REPORT,
                subject_id=report.id,
                old_values={"remark": old_remark},
                new_values={"remark": remark},
                description=None,
                actor_id=actor_id,
            )
            return DailyReportRecord.from_model(report)

        return run_in_transaction(
            self._session,
            "update_report_remark",
            _do,
            logger=logger,
            auto_commit=self._auto_commit,
            actor_id=actor_id,
            report_id=str(report_id),
        )

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, report_id: UUID) -> DailyReportRecord:
        report = self._reports.get(report_id)
        if report is None:
            raise NotFoundError("DailyReport", str(report_id))
        return report

    def find(self, unit_id: UUID, report_date: date) -> DailyReportRecord | None:
        return self._reports.find(unit_id, report_date)

    def list(self, unit_id: UUID | None = None) -> list[DailyReportRecord]:
        return self._reports.list(unit_id)

    def diagnose(self, unit_id: UUID | None = None) -> DiagnosisResult:
        """Read-only consistency pass; see ReportDiagnostics."""
        return ReportDiagnostics(self._session).diagnose(unit_id)
