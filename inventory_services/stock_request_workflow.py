"""
StockRequestWorkflow -- pending -> approved | rejected.

Responsibility:
    Creates unit requests for central stock and resolves them.  Approval
    moves the requested items from the central warehouse to the unit through
    the StockLedger in the same transaction as the status change.

Architecture position:
    Services -- orchestration over kernel services.  Flushes, never commits:
    TransactionCoordinator owns the transaction.

Invariants enforced:
    - Only pending requests transition; approved and rejected are terminal.
    - The request row is locked (``SELECT ... FOR UPDATE``) before its status
      is read, so two approvers cannot both move stock for one request.
    - Approval is all-or-nothing: if central stock is short, the
      InsufficientStockError propagates before the status changes and the
      caller's rollback leaves the request pending.
    - Requested quantities are stored in items.

Failure modes:
    - NotFoundError for unknown requests, units, or products.
    - InvalidStateTransitionError when the request is not pending.
    - InsufficientStockError when the warehouse holds too few items.
    - UntrackedProductError when requesting a unit-produced product.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import StockRequestRecord
from inventory_kernel.domain.scopes import StockScope
from inventory_kernel.domain.units import UnitConverter
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvalidStateTransitionError,
    NotFoundError,
    UntrackedProductError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_event import AuditAction, SubjectType
from inventory_kernel.models.product import Product
from inventory_kernel.models.stock_request import StockRequest, StockRequestStatus
from inventory_kernel.models.unit import OperatingUnit
from inventory_kernel.services.auditor_service import AuditSink
from inventory_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.stock_request_workflow")


class StockRequestWorkflow:
    """
    Lifecycle of stock requests.

    Usage:
        workflow = StockRequestWorkflow(session, ledger, auditor, clock)
        request = workflow.create(unit_id, product_id, manager_id, sets=2)
        workflow.approve(request.id, admin_id)
        session.commit()
    """

    def __init__(
        self,
        session: Session,
        ledger: StockLedger,
        auditor: AuditSink,
        clock: Clock | None = None,
    ):
        self._session = session
        self._ledger = ledger
        self._auditor = auditor
        self._clock = clock or SystemClock()

    def _lock_request(self, request_id: UUID) -> StockRequest:
        request = self._session.execute(
            select(StockRequest)
            .where(StockRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise NotFoundError("StockRequest", str(request_id))
        return request

    @staticmethod
    def _require_pending(request: StockRequest, attempted: str) -> None:
        if not request.is_pending:
            raise InvalidStateTransitionError(
                entity_type="StockRequest",
                entity_id=str(request.id),
                current_status=str(getattr(request.status, "value", request.status)),
                attempted=attempted,
            )

    def create(
        self,
        unit_id: UUID,
        product_id: UUID,
        actor_id: UUID,
        quantity: int | None = None,
        sets: int | None = None,
        items: int | None = None,
        notes: str | None = None,
    ) -> StockRequestRecord:
        """Record a pending request.  The quantity is resolved to items here."""
        if self._session.get(OperatingUnit, unit_id) is None:
            raise NotFoundError("OperatingUnit", str(unit_id))
        product = self._session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", str(product_id))
        if product.is_unit_produced:
            raise UntrackedProductError(str(product_id))

        total_items = UnitConverter.resolve_quantity(
            product, quantity=quantity, sets=sets, items=items
        )
        if total_items <= 0:
            raise InvalidQuantityError(total_items)

        request = StockRequest(
            unit_id=unit_id,
            product_id=product_id,
            quantity=total_items,
            status=StockRequestStatus.PENDING,
            requested_by=actor_id,
            notes=notes,
            created_by_id=actor_id,
        )
        self._session.add(request)
        self._session.flush()

        logger.info(
            "stock_request_created",
            extra={
                "request_id": str(request.id),
                "unit_id": str(unit_id),
                "product_id": str(product_id),
                "quantity": total_items,
            },
        )
        return StockRequestRecord.from_model(request)

    def approve(self, request_id: UUID, approver_id: UUID) -> StockRequestRecord:
        """
        Approve a pending request and move its items to the unit.

        Lock order: request row, then central stock, then the unit's row.
        """
        request = self._lock_request(request_id)
        self._require_pending(request, "approve")

        self._ledger.transfer(
            StockScope.central(),
            StockScope.unit(request.unit_id),
            request.product_id,
            request.quantity,
            actor_id=approver_id,
            description=f"Stock request {request.id} approved",
        )

        request.status = StockRequestStatus.APPROVED
        request.approved_by = approver_id
        request.resolved_at = self._clock.now()
        request.resolved_on = self._clock.today()
        request.updated_by_id = approver_id
        self._session.flush()

        self._auditor.record(
            action=AuditAction.STOCK_REQUEST_APPROVED,
            product_id=request.product_id,
            subject_type=SubjectType.STOCK_REQUEST,
            subject_id=request.id,
            old_values={"status": StockRequestStatus.PENDING},
            new_values={"status": StockRequestStatus.APPROVED, "quantity": request.quantity},
            description=None,
            actor_id=approver_id,
        )

        logger.info(
            "stock_request_approved",
            extra={
                "request_id": str(request.id),
                "unit_id": str(request.unit_id),
                "quantity": request.quantity,
            },
        )
        return StockRequestRecord.from_model(request)

    def reject(
        self,
        request_id: UUID,
        approver_id: UUID,
        notes: str | None = None,
    ) -> StockRequestRecord:
        """Reject a pending request.  No stock moves."""
        request = self._lock_request(request_id)
        self._require_pending(request, "reject")

        request.status = StockRequestStatus.REJECTED
        request.approved_by = approver_id
        request.resolved_at = self._clock.now()
        request.resolved_on = self._clock.today()
        request.updated_by_id = approver_id
        if notes is not None:
            request.notes = notes
        self._session.flush()

        self._auditor.record(
            action=AuditAction.STOCK_REQUEST_REJECTED,
            product_id=request.product_id,
            subject_type=SubjectType.STOCK_REQUEST,
            subject_id=request.id,
            old_values={"status": StockRequestStatus.PENDING},
            new_values={"status": StockRequestStatus.REJECTED},
            description=notes,
            actor_id=approver_id,
        )

        logger.info("stock_request_rejected", extra={"request_id": str(request.id)})
        return StockRequestRecord.from_model(request)

    def get(self, request_id: UUID) -> StockRequestRecord:
        request = self._session.get(StockRequest, request_id)
        if request is None:
            raise NotFoundError("StockRequest", str(request_id))
        return StockRequestRecord.from_model(request)

    def list(
        self,
        unit_id: UUID | None = None,
        status: StockRequestStatus | str | None = None,
    ) -> list[StockRequestRecord]:
        """Requests newest first, optionally filtered by unit and status."""
        stmt = select(StockRequest).order_by(StockRequest.created_at.desc())
        if unit_id is not None:
            stmt = stmt.where(StockRequest.unit_id == unit_id)
        if status is not None:
            stmt = stmt.where(StockRequest.status == StockRequestStatus(status))
        return [
            StockRequestRecord.from_model(r)
            for r in self._session.execute(stmt).scalars().all()
        ]
