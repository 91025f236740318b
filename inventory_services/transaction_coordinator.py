"""
TransactionCoordinator -- one database transaction per stock operation.

Responsibility:
    The write-side entry point for sales, transfers, replenishment, manual
    intake and stock requests.  Each public method resolves its inputs,
    drives the StockLedger (and StockRequestWorkflow), and commits on success
    or rolls back on any failure.

Architecture position:
    Services -- orchestration over kernel services.  This is the layer an
    HTTP controller or CLI calls.  Reads settings values but never loads
    configuration itself.

Invariants enforced:
    - Atomicity: commit on success, rollback on failure (auto_commit=True).
      A checkout that fails on its third line leaves the first two untouched.
    - Lock order: checkout locks unit inventory rows in ascending product-id
      order; transfers and approvals lock through the ledger's scope order.
    - Lock failures surface as LockTimeoutError / DeadlockDetectedError
      (retryable), never as driver exceptions.
    - Quantities entering through sets/items are resolved once, here.

Failure modes:
    - InsufficientStockError, UntrackedProductError, SameUnitError,
      InvalidQuantityError, AmbiguousQuantityError, NotFoundError,
      InvalidStateTransitionError, LockTimeoutError, DeadlockDetectedError.

Audit relevance:
    Every operation logs ``<operation>_started``, ``<operation>_completed``
    and ``<operation>_failed`` with duration_ms, bound to a correlation id
    and the acting user.
"""

from __future__ import annotations

import secrets
import string
from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.actors import SYSTEM_ACTOR_ID
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    CentralStockRecord,
    LedgerMovement,
    SaleLineSpec,
    SaleRecord,
    StockRequestRecord,
    TransferResult,
)
from inventory_kernel.domain.scopes import StockScope
from inventory_kernel.domain.units import UnitConverter
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvalidStateTransitionError,
    NotFoundError,
    SameUnitError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_event import AuditAction, SubjectType
from inventory_kernel.models.product import Product
from inventory_kernel.models.sale import PaymentStatus, Sale, SaleItem
from inventory_kernel.models.stock import CentralStock
from inventory_kernel.models.unit import OperatingUnit
from inventory_kernel.services.auditor_service import AuditorService
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_services._transaction import run_in_transaction
from inventory_services.stock_request_workflow import StockRequestWorkflow

logger = get_logger("services.transaction_coordinator")

T = TypeVar("T")

_INVOICE_ALPHABET = string.ascii_uppercase + string.digits
_INVOICE_SUFFIX_LENGTH = 10


class TransactionCoordinator:
    """
    Transactional facade over the stock ledger.

    Usage:
        coordinator = TransactionCoordinator(session, clock=clock)
        sale = coordinator.checkout(
            unit_id, cashier_id,
            [SaleLineSpec(product_id=beer.id, quantity=3)],
            payment_method="cash",
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or LedgerSettings()
        self._auto_commit = auto_commit

        self._auditor = AuditorService(session, self._clock)
        self._sequences = SequenceService(session)
        self._ledger = StockLedger(
            session,
            self._auditor,
            default_low_stock_threshold=self._settings.default_low_stock_threshold,
        )
        self._workflow = StockRequestWorkflow(
            session, self._ledger, self._auditor, self._clock
        )

    @property
    def ledger(self) -> StockLedger:
        return self._ledger

    @property
    def workflow(self) -> StockRequestWorkflow:
        return self._workflow

    # -------------------------------------------------------------------------
    # Transaction envelope
    # -------------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor_id: UUID | None,
        fn: Callable[[], T],
        unit_id: UUID | None = None,
        **log_fields,
    ) -> T:
        return run_in_transaction(
            self._session,
            operation,
            fn,
            logger=logger,
            auto_commit=self._auto_commit,
            actor_id=actor_id,
            unit_id=unit_id,
            **log_fields,
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _require_unit(self, unit_id: UUID) -> OperatingUnit:
        unit = self._session.get(OperatingUnit, unit_id)
        if unit is None:
            raise NotFoundError("OperatingUnit", str(unit_id))
        return unit

    def _require_product(self, product_id: UUID) -> Product:
        product = self._session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", str(product_id))
        return product

    def _new_invoice_number(self) -> str:
        while True:
            suffix = "".join(
                secrets.choice(_INVOICE_ALPHABET) for _ in range(_INVOICE_SUFFIX_LENGTH)
            )
            candidate = f"{self._settings.invoice_prefix}-{suffix}"
            taken = self._session.execute(
                select(Sale.id).where(Sale.invoice_number == candidate)
            ).first()
            if taken is None:
                return candidate

    # -------------------------------------------------------------------------
    # Sales
    # -------------------------------------------------------------------------

    def _sell_lines(
        self,
        unit_id: UUID,
        invoice_number: str,
        lines: Sequence[SaleLineSpec],
        actor_id: UUID,
        first_line_number: int = 1,
    ) -> tuple[list[SaleItem], Decimal]:
        """
        Decrement stock for ``lines`` and build their SaleItem rows.

        Tracked lines hit the ledger in ascending product-id order so two
        checkouts sharing products lock their rows in the same order.
        Unit-produced lines skip the ledger.  Items keep the caller's order.
        """
        if not lines:
            raise InvalidQuantityError(0, "a sale needs at least one line")

        products: dict[UUID, Product] = {}
        for line in lines:
            if line.quantity <= 0:
                raise InvalidQuantityError(line.quantity)
            if line.product_id not in products:
                products[line.product_id] = self._require_product(line.product_id)

        scope = StockScope.unit(unit_id)
        tracked = [line for line in lines if not products[line.product_id].is_unit_produced]
        for line in sorted(tracked, key=lambda ln: str(ln.product_id)):
            self._ledger.adjust(
                scope,
                line.product_id,
                -line.quantity,
                actor_id=actor_id,
                action=AuditAction.STOCK_SOLD,
                description=f"Sale {invoice_number}",
            )

        sale_items = []
        amount = Decimal("0")
        for offset, line in enumerate(lines):
            product = products[line.product_id]
            unit_price = line.unit_price if line.unit_price is not None else product.selling_price
            total_price = unit_price * line.quantity
            sale_items.append(
                SaleItem(
                    line_number=first_line_number + offset,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    total_price=total_price,
                )
            )
            amount += total_price
        return sale_items, amount

    def checkout(
        self,
        unit_id: UUID,
        actor_id: UUID | None,
        items: Sequence[SaleLineSpec],
        payment_method: str,
    ) -> SaleRecord:
        """
        Record a sale and decrement the unit's inventory.

        Postconditions:
            - total_amount == sum(quantity * unit_price).
            - payment_status is paid for instant payment methods, else pending.
            - Any InsufficientStockError rolls back every line.
            - Without actor_id the sale and its stock events record
              SYSTEM_ACTOR_ID as actor; user_id stays NULL.
        """

        def _do() -> SaleRecord:
            self._require_unit(unit_id)
            actor = actor_id or SYSTEM_ACTOR_ID
            invoice_number = self._new_invoice_number()
            sale_items, amount = self._sell_lines(unit_id, invoice_number, items, actor)

            # The row is written complete: a paid sale accepts no later UPDATE.
            paid = self._settings.is_instant_payment(payment_method)
            sale = Sale(
                unit_id=unit_id,
                user_id=actor_id,
                invoice_number=invoice_number,
                total_amount=amount,
                payment_method=payment_method,
                payment_status=PaymentStatus.PAID if paid else PaymentStatus.PENDING,
                sale_date=self._clock.today(),
                created_by_id=actor,
                items=sale_items,
            )
            self._session.add(sale)
            self._session.flush()
            return SaleRecord.from_model(sale)

        return self._run(
            "checkout", actor_id, _do, unit_id=unit_id,
            line_count=len(items), payment_method=payment_method,
        )

    def add_sale_items(
        self,
        sale_id: UUID,
        actor_id: UUID,
        items: Sequence[SaleLineSpec],
    ) -> SaleRecord:
        """Append lines to a pending sale, decrementing stock the same way."""

        def _do() -> SaleRecord:
            sale = self._session.execute(
                select(Sale)
                .where(Sale.id == sale_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if sale is None:
                raise NotFoundError("Sale", str(sale_id))
            if sale.is_paid:
                raise InvalidStateTransitionError(
                    "Sale", str(sale_id), PaymentStatus.PAID.value, "add items to"
                )
            sale_items, amount = self._sell_lines(
                sale.unit_id, sale.invoice_number, items, actor_id,
                first_line_number=len(sale.items) + 1,
            )
            sale.items.extend(sale_items)
            sale.total_amount = sale.total_amount + amount
            sale.updated_by_id = actor_id
            self._session.flush()
            return SaleRecord.from_model(sale)

        return self._run("add_sale_items", actor_id, _do, line_count=len(items))

    def mark_sale_paid(
        self,
        invoice_number: str,
        transaction_reference: str | None,
        actor_id: UUID | None = None,
    ) -> SaleRecord:
        """
        Settle a pending sale (payment confirmation).

        Payment callbacks carry no user; without ``actor_id`` the event is
        attributed to the sale's creator.
        """

        def _do() -> SaleRecord:
            sale = self._session.execute(
                select(Sale)
                .where(Sale.invoice_number == invoice_number)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if sale is None:
                raise NotFoundError("Sale", invoice_number)
            if sale.is_paid:
                raise InvalidStateTransitionError(
                    "Sale", invoice_number, PaymentStatus.PAID.value, "mark paid"
                )
            actor = actor_id or sale.created_by_id
            sale.payment_status = PaymentStatus.PAID
            sale.transaction_reference = transaction_reference
            sale.updated_by_id = actor
            self._session.flush()

            self._auditor.record(
                action=AuditAction.SALE_PAID,
                product_id=None,
                subject_type=SubjectType.SALE,
                subject_id=sale.id,
                old_values={"payment_status": PaymentStatus.PENDING},
                new_values={
                    "payment_status": PaymentStatus.PAID,
                    "transaction_reference": transaction_reference,
                },
                description=f"Sale {invoice_number} paid",
                actor_id=actor,
            )
            return SaleRecord.from_model(sale)

        return self._run("mark_sale_paid", actor_id, _do, invoice_number=invoice_number)

    # -------------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------------

    def transfer_stock(
        self,
        from_unit: UUID,
        to_unit: UUID,
        product_id: UUID,
        quantity: int,
        actor_id: UUID,
    ) -> TransferResult:
        """Move items between two units.  Same-unit transfers fail before any lock."""

        def _do() -> TransferResult:
            if from_unit == to_unit:
                raise SameUnitError(str(from_unit))
            self._require_unit(from_unit)
            self._require_unit(to_unit)
            return self._ledger.transfer(
                StockScope.unit(from_unit),
                StockScope.unit(to_unit),
                product_id,
                quantity,
                actor_id=actor_id,
                description=f"Transfer from unit {from_unit} to unit {to_unit}",
            )

        return self._run(
            "transfer_stock", actor_id, _do, unit_id=from_unit,
            to_unit=str(to_unit), product_id=str(product_id), quantity=quantity,
        )

    def replenish_central_stock(
        self,
        product_id: UUID,
        quantity: int | None,
        actor_id: UUID,
        batch_number: str | None = None,
        low_stock_threshold: int | None = None,
        sets: int | None = None,
        items: int | None = None,
    ) -> CentralStockRecord:
        """
        Add supplier stock to the warehouse.

        Without ``batch_number`` one is allocated as
        ``BATCH-YYYYMMDD-NNNN`` from the business day's counter.
        """

        def _do() -> CentralStockRecord:
            product = self._require_product(product_id)
            total_items = UnitConverter.resolve_quantity(
                product, quantity=quantity, sets=sets, items=items
            )
            if total_items <= 0:
                raise InvalidQuantityError(total_items)

            batch = batch_number or self._sequences.next_batch_number(
                self._clock.today(), prefix=self._settings.batch_prefix
            )
            self._ledger.adjust(
                StockScope.central(),
                product_id,
                total_items,
                actor_id=actor_id,
                action=AuditAction.STOCK_REPLENISHED,
                description=f"Replenishment batch {batch}",
                low_stock_threshold=low_stock_threshold,
                batch_number=batch,
            )
            row = self._session.execute(
                select(CentralStock).where(CentralStock.product_id == product_id)
            ).scalar_one()
            return CentralStockRecord.from_model(row)

        return self._run(
            "replenish_central_stock", actor_id, _do, product_id=str(product_id),
        )

    def receive_unit_stock(
        self,
        unit_id: UUID,
        product_id: UUID,
        actor_id: UUID,
        quantity: int | None = None,
        sets: int | None = None,
        items: int | None = None,
        low_stock_threshold: int | None = None,
    ) -> LedgerMovement:
        """Manual intake at a unit from outside the warehouse."""

        def _do() -> LedgerMovement:
            self._require_unit(unit_id)
            product = self._require_product(product_id)
            total_items = UnitConverter.resolve_quantity(
                product, quantity=quantity, sets=sets, items=items
            )
            if total_items <= 0:
                raise InvalidQuantityError(total_items)
            return self._ledger.adjust(
                StockScope.unit(unit_id),
                product_id,
                total_items,
                actor_id=actor_id,
                action=AuditAction.STOCK_RECEIVED,
                description="Manual stock intake",
                low_stock_threshold=low_stock_threshold,
            )

        return self._run(
            "receive_unit_stock", actor_id, _do, unit_id=unit_id,
            product_id=str(product_id),
        )

    # -------------------------------------------------------------------------
    # Stock requests
    # -------------------------------------------------------------------------

    def create_stock_request(
        self,
        unit_id: UUID,
        product_id: UUID,
        actor_id: UUID,
        quantity: int | None = None,
        sets: int | None = None,
        items: int | None = None,
        notes: str | None = None,
    ) -> StockRequestRecord:
        return self._run(
            "create_stock_request", actor_id,
            lambda: self._workflow.create(
                unit_id, product_id, actor_id,
                quantity=quantity, sets=sets, items=items, notes=notes,
            ),
            unit_id=unit_id,
        )

    def approve_stock_request(self, request_id: UUID, approver_id: UUID) -> StockRequestRecord:
        return self._run(
            "approve_stock_request", approver_id,
            lambda: self._workflow.approve(request_id, approver_id),
            request_id=str(request_id),
        )

    def reject_stock_request(
        self,
        request_id: UUID,
        approver_id: UUID,
        notes: str | None = None,
    ) -> StockRequestRecord:
        return self._run(
            "reject_stock_request", approver_id,
            lambda: self._workflow.reject(request_id, approver_id, notes),
            request_id=str(request_id),
        )
