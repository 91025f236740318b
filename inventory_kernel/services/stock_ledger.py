"""
StockLedger -- the only code path that changes a stock quantity.

Responsibility:
    Row-locked ``adjust`` and ``transfer`` primitives over CentralStock and
    Inventory rows, each writing a before/after audit snapshot through the
    AuditSink in the same transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    TransactionCoordinator, StockRequestWorkflow, and tests.  Never commits.

Invariants enforced:
    - Non-negativity: no row is ever left below zero.  The check runs on
      the value read under the row lock, so it cannot race.
    - Conservation: ``transfer`` moves exactly ``quantity`` items from one
      scope to another; central + sum(units) for the product is unchanged.
      Only ``adjust`` changes that sum.
    - Lock order: multi-row operations lock rows in ``StockScope.sort_key``
      order (central first, then units by id), independent of direction.
    - Items only: every quantity here is already an item count.
    - Unit-produced products have no tracked stock and are rejected.

Failure modes:
    - InsufficientStockError when a decrement exceeds the locked balance.
    - UntrackedProductError for unit-produced products.
    - SameScopeError for a transfer onto itself.
    - InvalidQuantityError for a non-positive transfer quantity.
    - NotFoundError for an unknown product.

Audit relevance:
    One audit event per mutated scope per call, recording old and new
    quantities.  Zero-delta adjustments write nothing.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import LedgerMovement, TransferResult
from inventory_kernel.domain.scopes import StockScope
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    SameScopeError,
    UntrackedProductError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_event import AuditAction, SubjectType
from inventory_kernel.models.product import Product
from inventory_kernel.models.stock import CentralStock, Inventory
from inventory_kernel.services.auditor_service import AuditSink
from inventory_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")

StockRow = CentralStock | Inventory


class StockLedger(BaseService):
    """
    Row-locked stock mutations.

    Preconditions:
        The caller has an open transaction on ``session`` and will commit or
        roll back after the call.

    Usage:
        ledger = StockLedger(session, AuditorService(session, clock))
        ledger.adjust(StockScope.unit(unit_id), product_id, -3,
                      actor_id=cashier_id, action=AuditAction.STOCK_SOLD)
        session.commit()
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditSink,
        default_low_stock_threshold: int = 10,
    ):
        super().__init__(session)
        self._auditor = auditor
        self._default_low_stock_threshold = default_low_stock_threshold

    # -------------------------------------------------------------------------
    # Row access
    # -------------------------------------------------------------------------

    def _tracked_product(self, product_id: UUID) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", str(product_id))
        if product.is_unit_produced:
            raise UntrackedProductError(str(product_id))
        return product

    @staticmethod
    def _row_query(scope: StockScope, product_id: UUID):
        if scope.is_central:
            return select(CentralStock).where(CentralStock.product_id == product_id)
        return select(Inventory).where(
            Inventory.unit_id == scope.unit_id,
            Inventory.product_id == product_id,
        )

    def _lock_row(self, scope: StockScope, product_id: UUID) -> StockRow | None:
        """SELECT ... FOR UPDATE, refreshing any cached instance."""
        return self.session.execute(
            self._row_query(scope, product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create_row(
        self,
        scope: StockScope,
        product_id: UUID,
        actor_id: UUID,
    ) -> StockRow:
        """
        Create a zero-quantity row, tolerating a concurrent creator.

        The insert runs in a savepoint.  If another transaction created the
        row first, the unique constraint fires, the savepoint is rolled back
        and the winner's row is locked instead.
        """
        if scope.is_central:
            row = CentralStock(
                product_id=product_id,
                quantity=0,
                low_stock_threshold=self._default_low_stock_threshold,
                created_by_id=actor_id,
            )
        else:
            row = Inventory(
                unit_id=scope.unit_id,
                product_id=product_id,
                quantity=0,
                low_stock_threshold=self._default_low_stock_threshold,
                created_by_id=actor_id,
            )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "stock_row_created",
                extra={"scope": str(scope), "product_id": str(product_id)},
            )
            return row
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "stock_row_creation_race_retry",
                extra={"scope": str(scope), "product_id": str(product_id)},
            )
            existing = self._lock_row(scope, product_id)
            if existing is None:
                raise
            return existing

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    def _record(
        self,
        scope: StockScope,
        row: StockRow,
        product_id: UUID,
        old_quantity: int,
        action: AuditAction,
        description: str | None,
        actor_id: UUID,
        extra_values: dict | None = None,
    ) -> None:
        subject_type = SubjectType.CENTRAL_STOCK if scope.is_central else SubjectType.INVENTORY
        new_values = {"quantity": row.quantity}
        if extra_values:
            new_values.update(extra_values)
        self._auditor.record(
            action=action,
            product_id=product_id,
            subject_type=subject_type,
            subject_id=row.id,
            old_values={"quantity": old_quantity},
            new_values=new_values,
            description=description,
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def adjust(
        self,
        scope: StockScope,
        product_id: UUID,
        delta_items: int,
        *,
        actor_id: UUID,
        action: AuditAction = AuditAction.STOCK_ADJUSTED,
        description: str | None = None,
        low_stock_threshold: int | None = None,
        batch_number: str | None = None,
    ) -> LedgerMovement:
        """
        Change one scope's balance by ``delta_items``.

        Postconditions:
            - The row is locked until the caller's transaction ends.
            - ``new_quantity == old_quantity + delta_items >= 0``.
            - A missing row is created at zero when ``delta_items > 0``.

        Args:
            low_stock_threshold: Optionally replace the row's threshold.
            batch_number: Central scope only; recorded as the latest batch.

        Raises:
            InsufficientStockError: The balance would go negative.
            UntrackedProductError: The product is unit-produced.
        """
        self._tracked_product(product_id)

        if delta_items == 0:
            current = self.quantity_of(scope, product_id)
            return LedgerMovement(scope, product_id, current, current)

        row = self._lock_row(scope, product_id)
        if row is None:
            if delta_items < 0:
                raise InsufficientStockError(
                    product_id=str(product_id),
                    scope=str(scope),
                    requested=-delta_items,
                    available=0,
                )
            row = self._create_row(scope, product_id, actor_id)

        old_quantity = row.quantity
        new_quantity = old_quantity + delta_items
        if new_quantity < 0:
            raise InsufficientStockError(
                product_id=str(product_id),
                scope=str(scope),
                requested=-delta_items,
                available=old_quantity,
            )

        row.quantity = new_quantity
        row.updated_by_id = actor_id
        extra_values = {}
        if low_stock_threshold is not None:
            row.low_stock_threshold = low_stock_threshold
            extra_values["low_stock_threshold"] = low_stock_threshold
        if batch_number is not None and scope.is_central:
            row.batch_number = batch_number
            extra_values["batch_number"] = batch_number
        self.session.flush()

        self._record(
            scope, row, product_id, old_quantity, action, description, actor_id,
            extra_values,
        )

        logger.info(
            "stock_adjusted",
            extra={
                "scope": str(scope),
                "product_id": str(product_id),
                "delta": delta_items,
                "old_quantity": old_quantity,
                "new_quantity": new_quantity,
                "action": action.value,
            },
        )
        return LedgerMovement(scope, product_id, old_quantity, new_quantity)

    def transfer(
        self,
        from_scope: StockScope,
        to_scope: StockScope,
        product_id: UUID,
        quantity_items: int,
        *,
        actor_id: UUID,
        description: str | None = None,
    ) -> TransferResult:
        """
        Move ``quantity_items`` from one scope to another.

        Both existing rows are locked in ``sort_key`` order before either is
        read, so a transfer A->B and a concurrent B->A queue on the same first
        row.  The source balance is checked before the destination is touched.

        Raises:
            InvalidQuantityError: quantity_items <= 0.
            SameScopeError: from_scope == to_scope.
            InsufficientStockError: The source holds fewer items.
        """
        if quantity_items <= 0:
            raise InvalidQuantityError(quantity_items)
        if from_scope == to_scope:
            raise SameScopeError(str(from_scope))

        self._tracked_product(product_id)

        locked: dict[StockScope, StockRow | None] = {}
        for scope in sorted((from_scope, to_scope), key=lambda s: s.sort_key):
            locked[scope] = self._lock_row(scope, product_id)

        source = locked[from_scope]
        available = source.quantity if source is not None else 0
        if available < quantity_items:
            raise InsufficientStockError(
                product_id=str(product_id),
                scope=str(from_scope),
                requested=quantity_items,
                available=available,
            )

        destination = locked[to_scope]
        if destination is None:
            destination = self._create_row(to_scope, product_id, actor_id)

        source_old = source.quantity
        destination_old = destination.quantity
        source.quantity = source_old - quantity_items
        destination.quantity = destination_old + quantity_items
        source.updated_by_id = actor_id
        destination.updated_by_id = actor_id
        self.session.flush()

        self._record(
            from_scope, source, product_id, source_old,
            AuditAction.STOCK_TRANSFERRED_OUT, description, actor_id,
            {"to": str(to_scope)},
        )
        self._record(
            to_scope, destination, product_id, destination_old,
            AuditAction.STOCK_TRANSFERRED_IN, description, actor_id,
            {"from": str(from_scope)},
        )

        logger.info(
            "stock_transferred",
            extra={
                "from_scope": str(from_scope),
                "to_scope": str(to_scope),
                "product_id": str(product_id),
                "quantity": quantity_items,
            },
        )
        return TransferResult(
            source=LedgerMovement(from_scope, product_id, source_old, source.quantity),
            destination=LedgerMovement(
                to_scope, product_id, destination_old, destination.quantity
            ),
        )

    def quantity_of(self, scope: StockScope, product_id: UUID) -> int:
        """Unlocked read for display.  Missing rows read as zero."""
        row = self.session.execute(
            self._row_query(scope, product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return row.quantity if row is not None else 0
